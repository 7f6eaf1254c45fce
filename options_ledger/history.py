"""
history.py
----------
Merge freshly reconciled closed trades into a previously stored history.

Trade ids are derived from the closing row itself, so importing the same
statement twice upserts the same records instead of appending duplicates.
Callers still need to hold their store's read-merge-write as one critical
section; nothing here locks.
"""
from typing import Iterable, List, Tuple

import pandas as pd

from options_ledger.models import ClosedTrade


def merge_history(existing: Iterable[ClosedTrade], incoming: Iterable[ClosedTrade]) -> Tuple[List[ClosedTrade], int, int]:
    """
    Upsert *incoming* into *existing* by ``trade_id``.
    Returns (merged, added, replaced). Existing order is kept and new trades
    are appended in arrival order.
    """
    merged = {t.trade_id: t for t in existing}
    added = replaced = 0
    for trade in incoming:
        if trade.trade_id in merged:
            replaced += 1
        else:
            added += 1
        merged[trade.trade_id] = trade
    return list(merged.values()), added, replaced


def merge_history_frames(existing: pd.DataFrame, incoming: pd.DataFrame) -> pd.DataFrame:
    """Same upsert for tabulated history, e.g. a stored closed_trades.csv."""
    if existing is None or existing.empty:
        return incoming.reset_index(drop=True)
    combined = pd.concat([existing, incoming], ignore_index=True)
    return combined.drop_duplicates(subset=['TRADE ID'], keep='last').reset_index(drop=True)
