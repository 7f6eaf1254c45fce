"""
transactions.py
-------------
Core routines to aggregate opening legs into lots, match closing legs against
them, and partition the result into open positions and closed history.
"""
import logging
from collections import OrderedDict
from decimal import Decimal
from typing import Dict, List, Sequence, Tuple

import pandas as pd

from options_ledger.config import CONTRACT_MULTIPLIER, LOT_ID_FORMAT
from options_ledger.models import (
    ClosedTrade,
    InstrumentKey,
    OpenLot,
    Side,
    TransactionLeg,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

LOT_COLUMNS = [
    'LOT ID', 'SYMBOL', 'OPTION TYPE', 'STRIKE PRICE', 'EXPIRATION',
    'POSITION', 'OPEN DATE', 'DTE AT OPEN', 'ENTRY PRICE', 'TOTAL QTY',
    'QTY', 'SOURCE ROWS', 'BROKER',
]

TRADE_COLUMNS = [
    'TRADE ID', 'SYMBOL', 'OPTION TYPE', 'STRIKE PRICE', 'EXPIRATION',
    'POSITION', 'CLOSE DATE', 'CODE', 'QTY', 'MATCHED QTY', 'UNMATCHED QTY',
    'CLOSE PRICE', 'REALIZED PNL', 'PAIRED LOTS', 'PRICE KNOWN',
    'SOURCE ROW', 'BROKER',
]


def aggregate(opening_legs: Sequence[TransactionLeg]) -> List[OpenLot]:
    """
    Merge opening legs sharing (instrument, side, price, date) into one lot.
    Lots come out in the order their group was first seen. Legs with a
    quantity below one contribute nothing and never create a lot.
    """
    groups: "OrderedDict[tuple, OpenLot]" = OrderedDict()
    for leg in opening_legs:
        qty = max(leg.quantity, 0)
        if qty == 0:
            logger.warning(
                "Row %s: opening quantity %d ignored for %s",
                leg.source_row_id, leg.quantity, leg.instrument,
            )
            continue
        price = leg.effective_price()
        key = (leg.instrument, leg.side, price, leg.transaction_date)
        lot = groups.get(key)
        if lot is None:
            lot = OpenLot(
                lot_id=LOT_ID_FORMAT.format(len(groups) + 1),
                instrument=leg.instrument,
                side=leg.side,
                entry_price=price,
                entry_date=leg.transaction_date,
                total_quantity=0,
                remaining_quantity=0,
                broker=leg.broker,
            )
            groups[key] = lot
        lot.total_quantity += qty
        lot.remaining_quantity += qty
        lot.contributing_row_ids.append(leg.source_row_id)
    return list(groups.values())


def _lots_by_instrument(lots: Sequence[OpenLot]) -> Dict[InstrumentKey, List[OpenLot]]:
    lookup: Dict[InstrumentKey, List[OpenLot]] = {}
    for lot in lots:
        lookup.setdefault(lot.instrument, []).append(lot)
    return lookup


def match(closing_legs: Sequence[TransactionLeg], lots: Sequence[OpenLot]) -> List[ClosedTrade]:
    """
    Greedily pair each closing leg with open lots of the same instrument,
    consuming lots in the order they were created (FIFO-by-discovery).
    Decrements ``remaining_quantity`` on the lots in place.
    """
    lookup = _lots_by_instrument(lots)
    trades = []
    for leg in closing_legs:
        close_price = leg.effective_price()
        price_known = close_price is not None
        quantity = max(leg.quantity, 0)
        if quantity != leg.quantity:
            logger.warning(
                "Row %s: closing quantity %d treated as 0 for %s",
                leg.source_row_id, leg.quantity, leg.instrument,
            )
        qty_to_match = quantity
        realized = ZERO
        paired: List[Tuple[str, int]] = []
        side = None

        for lot in lookup.get(leg.instrument, []):
            if qty_to_match == 0:
                break
            if lot.remaining_quantity <= 0:
                continue
            take = min(lot.remaining_quantity, qty_to_match)
            entry = lot.entry_price if lot.entry_price is not None else ZERO
            exit_ = close_price if close_price is not None else ZERO
            realized += (entry - exit_) * CONTRACT_MULTIPLIER * take
            paired.append((lot.lot_id, take))
            lot.remaining_quantity -= take
            qty_to_match -= take
            price_known = price_known and lot.price_known
            if side is None:
                side = lot.side

        if qty_to_match:
            logger.warning(
                "Row %s: %d of %d contracts of %s had no open lot to close",
                leg.source_row_id, qty_to_match, quantity, leg.instrument,
            )

        trades.append(ClosedTrade(
            trade_id=leg.leg_key(),
            instrument=leg.instrument,
            side=side if side is not None else leg.side.inverse(),
            close_price=close_price,
            close_date=leg.transaction_date,
            quantity=quantity,
            matched_quantity=quantity - qty_to_match,
            unmatched_quantity=qty_to_match,
            realized_pnl=realized,
            paired_lots=paired,
            source_row_id=leg.source_row_id,
            transaction_code=leg.transaction_code,
            broker=leg.broker,
            price_known=price_known,
        ))
    return trades


def partition(lots: Sequence[OpenLot], trades: Sequence[ClosedTrade]) -> Tuple[List[OpenLot], List[ClosedTrade]]:
    """Return (lots still holding contracts, every closed trade)."""
    open_positions = [lot for lot in lots if lot.remaining_quantity > 0]
    return open_positions, list(trades)


def format_strike(strike):
    """Return strike as integer if whole, else float with 2 decimals."""
    if strike is None:
        return None
    f = float(strike)
    return int(f) if f.is_integer() else round(f, 2)


def _money(value, places=2):
    return None if value is None else round(float(value), places)


def _position(side: Side) -> str:
    return 'Long' if side == Side.BUY else 'Short'


def lots_to_frame(lots: Sequence[OpenLot]) -> pd.DataFrame:
    """Tabulate lots. QTY is the remaining quantity."""
    rows = []
    for lot in lots:
        inst = lot.instrument
        rows.append({
            'LOT ID': lot.lot_id,
            'SYMBOL': inst.symbol,
            'OPTION TYPE': inst.option_kind.value.title(),
            'STRIKE PRICE': format_strike(inst.strike),
            'EXPIRATION': pd.Timestamp(inst.expiry),
            'POSITION': _position(lot.side),
            'OPEN DATE': pd.Timestamp(lot.entry_date),
            'DTE AT OPEN': (inst.expiry - lot.entry_date).days,
            'ENTRY PRICE': _money(lot.entry_price, 4),
            'TOTAL QTY': lot.total_quantity,
            'QTY': lot.remaining_quantity,
            'SOURCE ROWS': ';'.join(str(r) for r in lot.contributing_row_ids),
            'BROKER': lot.broker,
        })
    return pd.DataFrame(rows, columns=LOT_COLUMNS)


def trades_to_frame(trades: Sequence[ClosedTrade]) -> pd.DataFrame:
    rows = []
    for trade in trades:
        inst = trade.instrument
        rows.append({
            'TRADE ID': trade.trade_id,
            'SYMBOL': inst.symbol,
            'OPTION TYPE': inst.option_kind.value.title(),
            'STRIKE PRICE': format_strike(inst.strike),
            'EXPIRATION': pd.Timestamp(inst.expiry),
            'POSITION': _position(trade.side),
            'CLOSE DATE': pd.Timestamp(trade.close_date),
            'CODE': trade.transaction_code,
            'QTY': trade.quantity,
            'MATCHED QTY': trade.matched_quantity,
            'UNMATCHED QTY': trade.unmatched_quantity,
            'CLOSE PRICE': _money(trade.close_price, 4),
            'REALIZED PNL': _money(trade.realized_pnl),
            'PAIRED LOTS': ';'.join(f"{lot_id}x{qty}" for lot_id, qty in trade.paired_lots),
            'PRICE KNOWN': trade.price_known,
            'SOURCE ROW': trade.source_row_id,
            'BROKER': trade.broker,
        })
    return pd.DataFrame(rows, columns=TRADE_COLUMNS)


def check_consistency(lots: Sequence[OpenLot], trades: Sequence[ClosedTrade]) -> pd.DataFrame:
    """
    For each instrument, verify that:
      - quantity consumed from lots equals quantity matched on closes
      - opened quantity equals consumed plus still-open quantity
      - closed quantity equals matched plus unmatched quantity
    Returns the offending instruments (empty frame when consistent).
    """
    lot_df = pd.DataFrame(
        [(str(lot.instrument), lot.total_quantity, lot.consumed_quantity, lot.remaining_quantity)
         for lot in lots],
        columns=['INSTRUMENT', 'opened', 'consumed', 'still_open'],
    )
    trade_df = pd.DataFrame(
        [(str(t.instrument), t.quantity, t.matched_quantity, t.unmatched_quantity)
         for t in trades],
        columns=['INSTRUMENT', 'closed', 'matched', 'unmatched'],
    )
    check = lot_df.groupby('INSTRUMENT').sum().join(
        trade_df.groupby('INSTRUMENT').sum(), how='outer'
    ).fillna(0)
    check['consumed_diff'] = check['consumed'] - check['matched']
    check['open_diff'] = check['opened'] - (check['consumed'] + check['still_open'])
    check['close_diff'] = check['closed'] - (check['matched'] + check['unmatched'])
    bad = (check[['consumed_diff', 'open_diff', 'close_diff']] != 0).any(axis=1)
    return check[bad].reset_index()
