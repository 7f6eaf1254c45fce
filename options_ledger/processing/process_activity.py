"""
process_activity.py
-------------------
Runs the reconciliation pipeline over a batch of legs, and orchestrates
reading a broker export and writing the cleaned CSVs.
"""
import csv
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

import pandas as pd

from options_ledger.config import CLOSED_TRADES_FILE, OPEN_POSITIONS_FILE, UNMATCHED_FILE
from options_ledger.models import ClosedTrade, OpenLot, TransactionLeg
from options_ledger.parsers import BaseBrokerParser, GenericParser, RobinhoodParser
from options_ledger.processing.classify import split_legs
from options_ledger.processing.transactions import (
    aggregate,
    lots_to_frame,
    match,
    partition,
    trades_to_frame,
)

logger = logging.getLogger(__name__)

EXCEL_SUFFIXES = (".xlsx", ".xls")


@dataclass
class Reconciliation:
    """Outcome of one engine run over an imported batch."""
    lots: List[OpenLot]
    open_positions: List[OpenLot]
    closed_history: List[ClosedTrade]
    heuristic_legs: int = 0
    opening_legs: int = 0
    closing_legs: int = 0
    unmatched: List[ClosedTrade] = field(default_factory=list)

    @property
    def realized_pnl(self):
        return sum((t.realized_pnl for t in self.closed_history), Decimal("0"))

    def open_positions_frame(self) -> pd.DataFrame:
        return lots_to_frame(self.open_positions)

    def closed_history_frame(self) -> pd.DataFrame:
        return trades_to_frame(self.closed_history)


def reconcile(legs: Sequence[TransactionLeg], sort_by_date: bool = False) -> Reconciliation:
    """
    Classify, aggregate, match and partition one batch of legs.

    Lots are consumed in the order they are discovered. Pass
    ``sort_by_date=True`` to stable-sort opening legs by transaction date
    first, giving strict chronological FIFO.
    """
    opening, closing, heuristic = split_legs(legs)
    if sort_by_date:
        opening = sorted(opening, key=lambda leg: leg.transaction_date)
    lots = aggregate(opening)
    trades = match(closing, lots)
    open_positions, closed_history = partition(lots, trades)
    result = Reconciliation(
        lots=lots,
        open_positions=open_positions,
        closed_history=closed_history,
        heuristic_legs=heuristic,
        opening_legs=len(opening),
        closing_legs=len(closing),
        unmatched=[t for t in closed_history if t.unmatched_quantity > 0],
    )
    logger.info(
        "Reconciled %d legs: %d lots, %d still open, %d closed (%d with unmatched quantity)",
        len(legs), len(lots), len(open_positions), len(closed_history), len(result.unmatched),
    )
    if heuristic:
        logger.info("%d legs classified without a recognized transaction code", heuristic)
    return result


def read_legs(file_path, parser: Optional[BaseBrokerParser] = None) -> List[TransactionLeg]:
    """
    Read a broker export (CSV, or .xlsx/.xls through pandas) into
    TransactionLegs.

    Header names are lower-cased. Without an explicit *parser*, each row is
    tried as a Robinhood description row first and as a generic
    column-per-field row second. Rows neither parser accepts are skipped.
    """
    path = Path(file_path)
    parsers = [parser] if parser is not None else [RobinhoodParser(), GenericParser()]
    legs = []
    skipped = 0
    for row_id, row in _iter_rows(path):
        for p in parsers:
            leg = p.parse_row(row, row_id)
            if leg is not None:
                legs.append(leg)
                break
        else:
            skipped += 1
    logger.debug("%s: %d option legs, %d rows skipped", path, len(legs), skipped)
    return legs


def _iter_rows(path: Path) -> Iterator[Tuple[str, Dict[str, str]]]:
    """Yield (row_id, row) pairs; row ids carry the spreadsheet line number."""
    if path.suffix.lower() in EXCEL_SUFFIXES:
        df = pd.read_excel(path, dtype=str).fillna("")
        df.columns = [str(c).strip().lower() for c in df.columns]
        for i, row in enumerate(df.to_dict(orient="records")):
            # header is line 1
            yield f"{path.name}:{i + 2}", row
        return

    with path.open(newline='', encoding='utf-8-sig') as f:
        reader = csv.DictReader(f)
        reader.fieldnames = [str(h).strip().lower() for h in (reader.fieldnames or [])]
        for row in reader:
            yield f"{path.name}:{reader.line_num}", row


def process_all(
    activity_file,
    out_dir,
    parser: Optional[BaseBrokerParser] = None,
    sort_by_date: bool = False,
) -> Reconciliation:
    """
    Read a broker activity export, reconcile opens/closes, and write:
      open_positions.csv, closed_trades.csv, unmatched.csv into out_dir.
    """
    activity_path = Path(activity_file)
    if not activity_path.is_file():
        raise FileNotFoundError(f"Activity file not found at {activity_path}")

    # 1) Parse rows into legs
    print("Reading transactions...")
    legs = read_legs(activity_path, parser)
    if not legs:
        print(f"Warning: No option transactions found in {activity_path}")

    # 2) Match opens/closes
    result = reconcile(legs, sort_by_date=sort_by_date)

    out_path = Path(out_dir)
    out_path.mkdir(parents=True, exist_ok=True)

    # 3) Write out CSVs
    open_file = out_path / OPEN_POSITIONS_FILE
    result.open_positions_frame().to_csv(open_file, index=False)
    print(f"✔ {OPEN_POSITIONS_FILE} written to {open_file}")

    trades_file = out_path / CLOSED_TRADES_FILE
    result.closed_history_frame().to_csv(trades_file, index=False)
    print(f"✔ {CLOSED_TRADES_FILE} written to {trades_file}")

    if result.unmatched:
        unmatched_file = out_path / UNMATCHED_FILE
        trades_to_frame(result.unmatched).to_csv(unmatched_file, index=False)
        print(f"✔ {UNMATCHED_FILE} written to {unmatched_file}")

    return result
