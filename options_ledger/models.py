"""
models.py
--------
Data types flowing through the reconciliation pipeline: instrument identity,
extracted transaction legs, aggregated open lots and closed trades.
"""
from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Tuple

from .config import CONTRACT_MULTIPLIER


class Side(str, Enum):
    BUY = "buy"
    SELL = "sell"

    def inverse(self) -> "Side":
        return Side.SELL if self is Side.BUY else Side.BUY


class OptionKind(str, Enum):
    CALL = "call"
    PUT = "put"


class LegKind(str, Enum):
    OPENING = "opening"
    CLOSING = "closing"


@dataclass(frozen=True)
class InstrumentKey:
    """Identifies one option series. Side is not part of the identity."""
    symbol: str
    option_kind: OptionKind
    strike: Decimal
    expiry: date

    def __str__(self) -> str:
        return f"{self.symbol} {self.expiry:%Y-%m-%d} {self.strike} {self.option_kind.value.title()}"


@dataclass(frozen=True)
class TransactionLeg:
    """
    One option transaction row as delivered by a broker parser.

    ``unit_price`` is the per-contract premium. ``None`` means the price was
    not extracted, whereas ``Decimal(0)`` is a literal zero (e.g. assignment).
    """
    instrument: InstrumentKey
    side: Side
    quantity: int
    unit_price: Optional[Decimal]
    transaction_code: str
    transaction_date: date
    source_row_id: str
    broker: Optional[str] = None
    total_amount: Optional[Decimal] = None

    def effective_price(self) -> Optional[Decimal]:
        """Stated price, else |total_amount| / (quantity * 100), else None."""
        if self.unit_price is not None:
            return self.unit_price
        if self.total_amount is not None and self.quantity > 0:
            return abs(self.total_amount) / (self.quantity * CONTRACT_MULTIPLIER)
        return None

    def leg_key(self) -> str:
        """Stable identifier, identical across re-imports of the same row."""
        inst = self.instrument
        raw = "|".join([
            inst.symbol, inst.option_kind.value, str(inst.strike),
            inst.expiry.isoformat(), self.transaction_date.isoformat(),
            self.broker or "", str(self.source_row_id),
        ])
        return hashlib.sha1(raw.encode("utf-8")).hexdigest()[:16]


@dataclass
class OpenLot:
    lot_id: str
    instrument: InstrumentKey
    side: Side
    entry_price: Optional[Decimal]
    entry_date: date
    total_quantity: int
    remaining_quantity: int
    contributing_row_ids: List[str] = field(default_factory=list)
    broker: Optional[str] = None

    @property
    def price_known(self) -> bool:
        return self.entry_price is not None

    @property
    def consumed_quantity(self) -> int:
        return self.total_quantity - self.remaining_quantity


@dataclass
class ClosedTrade:
    """
    Result of one closing leg. ``realized_pnl`` is positive when the holder
    of the original lot made money, whether that lot was long or short.
    """
    trade_id: str
    instrument: InstrumentKey
    side: Side
    close_price: Optional[Decimal]
    close_date: date
    quantity: int
    matched_quantity: int
    unmatched_quantity: int
    realized_pnl: Decimal
    paired_lots: List[Tuple[str, int]] = field(default_factory=list)
    source_row_id: str = ""
    transaction_code: str = ""
    broker: Optional[str] = None
    price_known: bool = True

    @property
    def paired_lot_ids(self) -> List[str]:
        return [lot_id for lot_id, _ in self.paired_lots]

    @property
    def fully_matched(self) -> bool:
        return self.unmatched_quantity == 0
