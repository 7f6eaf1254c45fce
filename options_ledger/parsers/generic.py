"""
Generic parser for position-style exports with one column per field.
"""
from datetime import date
from typing import Dict, Optional

from options_ledger.config import DEFAULT_BROKER
from options_ledger.models import InstrumentKey, OptionKind, Side, TransactionLeg

from .base import BaseBrokerParser
from .helpers import detect_broker, get_value, parse_currency, parse_date, parse_quantity, resolve_price

SYMBOL_COLS = ['symbol', 'ticker', 'underlying', 'sym']
TYPE_COLS = ['option type', 'callput', 'option_type', 'type']
SIDE_COLS = ['side', 'action', 'buy/sell', 'position']
QTY_COLS = ['qty', 'quantity', 'contracts', 'size']
STRIKE_COLS = ['strike', 'strike price', 'strike_price']
EXPIRY_COLS = ['expiry', 'expiration', 'exp date', 'expiration date', 'expiry_date']
PRICE_COLS = ['entry', 'entry price', 'cost', 'avg entry', 'entry_price', 'trade price', 'price']
CODE_COLS = ['trans code', 'trans_code', 'transaction code', 'code']
DATE_COLS = ['activity date', 'trade date', 'date', 'process date', 'settle date',
             'activity_date', 'trade_date']


class GenericParser(BaseBrokerParser):
    """
    Columns are looked up by common header names:
      symbol | type (Call/Put/C/P) | side | qty | strike | expiry | price | code | date
    A negative quantity or a sell/short/credit side marks the leg as a sell.
    """

    def __init__(self, default_date: Optional[date] = None, default_broker: str = DEFAULT_BROKER):
        self.default_date = default_date or date.today()
        self.default_broker = default_broker

    def parse_row(self, row: Dict[str, str], row_id: str) -> Optional[TransactionLeg]:
        symbol = get_value(row, SYMBOL_COLS).upper()
        if not symbol:
            return None

        option_kind = _option_kind(get_value(row, TYPE_COLS))
        if option_kind is None:
            return None

        strike = parse_currency(get_value(row, STRIKE_COLS))
        expiry = parse_date(get_value(row, EXPIRY_COLS))
        qty_str = get_value(row, QTY_COLS)
        quantity = parse_quantity(qty_str)
        if strike is None or strike <= 0 or expiry is None or quantity == 0:
            return None

        side_str = get_value(row, SIDE_COLS).lower()
        is_sell = (
            qty_str.startswith('-')
            or any(word in side_str for word in ('sell', 'short', 'credit'))
        )
        price = parse_currency(get_value(row, PRICE_COLS))
        amount = parse_currency(get_value(row, ['amount', 'total']))
        code = get_value(row, CODE_COLS).upper()

        return TransactionLeg(
            instrument=InstrumentKey(symbol, option_kind, strike, expiry),
            side=Side.SELL if is_sell else Side.BUY,
            quantity=quantity,
            unit_price=resolve_price(abs(price) if price is not None else None, amount, code),
            transaction_code=code,
            transaction_date=parse_date(get_value(row, DATE_COLS)) or self.default_date,
            source_row_id=row_id,
            broker=detect_broker(row) or self.default_broker,
            total_amount=amount,
        )


def _option_kind(text: str) -> Optional[OptionKind]:
    t = text.strip().lower()
    if 'put' in t or t == 'p':
        return OptionKind.PUT
    if 'call' in t or t == 'c':
        return OptionKind.CALL
    return None
