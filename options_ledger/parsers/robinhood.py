"""
Robinhood activity parser: option details live in the Description column.
"""
import re
from datetime import date
from decimal import Decimal
from typing import Dict, Optional

from options_ledger.config import DEFAULT_BROKER
from options_ledger.models import InstrumentKey, OptionKind, Side, TransactionLeg

from .base import BaseBrokerParser
from .helpers import detect_broker, get_value, parse_currency, parse_date, parse_quantity, resolve_price

# e.g. "PLTR 2/20/2026 Put $157.50", anywhere in the text
CONTRACT_RE = re.compile(
    r'(?P<symbol>\w+)\s+(?P<expiry>\d{1,2}/\d{1,2}/\d{4})\s+'
    r'(?P<type>Put|Call)\s+\$(?P<strike>[\d.,]+)',
    re.IGNORECASE,
)
# e.g. "3 PLTR Options Assigned"
QTY_IN_TEXT = (
    re.compile(r'(\d+)\s+(?:\w+\s+)?Options?\b', re.IGNORECASE),
    re.compile(r'^(\d+)\b'),
)

DESCRIPTION_COLS = ['description', 'desc']
INSTRUMENT_COLS = ['instrument', 'symbol', 'ticker']
CODE_COLS = ['trans code', 'trans_code', 'transaction code', 'type', 'trans']
DATE_COLS = ['activity date', 'process date', 'settle date',
             'activity_date', 'process_date', 'settle_date']


class RobinhoodParser(BaseBrokerParser):
    """
    Parses rows of a Robinhood activity CSV, e.g.
      Activity Date, Process Date, Settle Date, Instrument, Description,
      Trans Code, Quantity, Price, Amount
      '1/15/2026', ..., 'PLTR', 'PLTR 2/20/2026 Put $150.00', 'STO', '3', '$2.00', '$599.84'
    Rows without a contract in the description (stock buys, fees,
    transfers) are skipped.
    """

    def __init__(self, default_date: Optional[date] = None):
        # rows without any date column fall back to this
        self.default_date = default_date or date.today()

    def parse_row(self, row: Dict[str, str], row_id: str) -> Optional[TransactionLeg]:
        description = get_value(row, DESCRIPTION_COLS)
        instrument = get_value(row, INSTRUMENT_COLS)
        code = get_value(row, CODE_COLS).upper()

        match = CONTRACT_RE.search(description) or CONTRACT_RE.search(instrument)
        if not match:
            return None

        expiry = parse_date(match['expiry'])
        strike = parse_currency(match['strike'])
        if expiry is None or strike is None or strike <= 0:
            return None

        quantity = parse_quantity(get_value(row, ['quantity', 'qty']))
        if quantity == 0 and description:
            quantity = _quantity_from_text(description)
        if quantity == 0:
            return None

        amount = parse_currency(get_value(row, ['amount']))
        price = parse_currency(get_value(row, ['price']))
        unit_price = resolve_price(price, amount, code)

        return TransactionLeg(
            instrument=InstrumentKey(
                symbol=match['symbol'].upper(),
                option_kind=OptionKind(match['type'].lower()),
                strike=strike,
                expiry=expiry,
            ),
            side=_side_from_code(code, amount),
            quantity=quantity,
            unit_price=unit_price,
            transaction_code=code,
            transaction_date=parse_date(get_value(row, DATE_COLS)) or self.default_date,
            source_row_id=row_id,
            broker=detect_broker(row) or DEFAULT_BROKER,
            total_amount=amount,
        )


def _quantity_from_text(text: str) -> int:
    for pattern in QTY_IN_TEXT:
        m = pattern.search(text)
        if m:
            return parse_quantity(m[1])
    return 0


def _side_from_code(code: str, amount: Optional[Decimal]) -> Side:
    """Buy/sell as stated by the code; a credit (positive amount) otherwise means sell."""
    if code in ('STO', 'STC', 'SELL') or code.startswith('STO'):
        return Side.SELL
    if code in ('BTO', 'BTC', 'BUY', 'OASGN'):
        return Side.BUY
    if amount is not None and amount > 0:
        return Side.SELL
    return Side.BUY
