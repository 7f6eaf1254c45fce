from datetime import date
from decimal import Decimal

import pytest

from options_ledger.models import InstrumentKey, OptionKind, Side, TransactionLeg

PLTR_PUT = InstrumentKey("PLTR", OptionKind.PUT, Decimal("150"), date(2026, 2, 20))

_row_counter = {"n": 0}


def make_leg(
    code="STO",
    qty=1,
    price="2.00",
    side=None,
    instrument=PLTR_PUT,
    on=date(2026, 1, 15),
    row_id=None,
    broker="Robinhood",
    amount=None,
):
    """Build a TransactionLeg with sensible defaults for tests."""
    if side is None:
        side = Side.SELL if code in ("STO", "SELL", "STC") else Side.BUY
    if row_id is None:
        _row_counter["n"] += 1
        row_id = f"row-{_row_counter['n']}"
    return TransactionLeg(
        instrument=instrument,
        side=side,
        quantity=qty,
        unit_price=Decimal(price) if price is not None else None,
        transaction_code=code,
        transaction_date=on,
        source_row_id=row_id,
        broker=broker,
        total_amount=Decimal(amount) if amount is not None else None,
    )


@pytest.fixture()
def pltr_put():
    return PLTR_PUT
