"""
classify.py
-----------
Decide whether a transaction leg opens or closes a position.

The decision table lives in ``config.OPENING_CODES`` / ``config.CLOSING_CODES``.
Legs with a blank or unknown code fall back to the side of the row: a sell is
taken as opening, anything else as closing. Statements without codes can be
misclassified by that rule (a long call bought to open reads as a close), so
``classify_leg`` reports which path decided.
"""
import logging
from typing import Iterable, List, NamedTuple, Tuple

from options_ledger.config import CLOSING_CODES, OPENING_CODES
from options_ledger.models import LegKind, Side, TransactionLeg

logger = logging.getLogger(__name__)


class Classification(NamedTuple):
    kind: LegKind
    by_code: bool


def normalize_code(code) -> str:
    return str(code or "").strip().upper()


def classify_leg(leg: TransactionLeg) -> Classification:
    code = normalize_code(leg.transaction_code)
    if code in OPENING_CODES:
        return Classification(LegKind.OPENING, True)
    if code in CLOSING_CODES:
        return Classification(LegKind.CLOSING, True)
    kind = LegKind.OPENING if leg.side == Side.SELL else LegKind.CLOSING
    logger.debug(
        "Row %s: code %r not in table, classified %s from side %s",
        leg.source_row_id, leg.transaction_code, kind.value, leg.side.value,
    )
    return Classification(kind, False)


def classify(leg: TransactionLeg) -> LegKind:
    """Return OPENING or CLOSING for *leg*. Never raises."""
    return classify_leg(leg).kind


def split_legs(legs: Iterable[TransactionLeg]) -> Tuple[List[TransactionLeg], List[TransactionLeg], int]:
    """
    Partition legs into (opening, closing) keeping input order.
    Also returns how many legs were decided by the side heuristic.
    """
    opening, closing = [], []
    heuristic = 0
    for leg in legs:
        kind, by_code = classify_leg(leg)
        if not by_code:
            heuristic += 1
        if kind is LegKind.OPENING:
            opening.append(leg)
        else:
            closing.append(leg)
    return opening, closing, heuristic
