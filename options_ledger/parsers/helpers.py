# options_ledger/parsers/helpers.py

import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, Optional

import pandas as pd

from options_ledger.config import KNOWN_BROKERS

MONTHS = ['Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun',
          'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec']


def parse_currency(x) -> Optional[Decimal]:
    """
    Convert strings like '$1,234.50' or '($450.00)' into a Decimal.
    Returns None for blanks or anything that is not a number.
    """
    s = str(x if x is not None else "").strip()
    if not s:
        return None
    negative = s.startswith("(") and s.endswith(")")
    s = s.strip("()").replace("$", "").replace(",", "").strip()
    try:
        value = Decimal(s)
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    return -value if negative else value


def resolve_price(price: Optional[Decimal], amount: Optional[Decimal], code: str = "") -> Optional[Decimal]:
    """
    Per-contract price for a leg, shared by every parser:
      - a positive price column wins
      - otherwise, with a cash amount on the row, None so the price is
        derived from the amount downstream
      - otherwise an explicit 0 (or an OASGN row) is a literal zero
      - otherwise None (unknown)
    """
    if price is not None and price > 0:
        return price
    if amount is not None:
        return None
    if price is not None or code == 'OASGN':
        return Decimal("0")
    return None


def parse_quantity(x) -> int:
    """Absolute integer quantity, 0 when it can't be read."""
    s = re.sub(r"[^0-9.\-]", "", str(x or ""))
    try:
        return abs(int(float(s)))
    except ValueError:
        return 0


def parse_date(s) -> Optional[date]:
    """
    Parse a statement date into a calendar date.

    Known formats tried in order:
      1) 'M/D/YYYY'     (e.g. '2/20/2026')
      2) 'M-D-YYYY'     (e.g. '02-20-2026')
      3) 'YYYY-MM-DD'
      4) 'Mon D YYYY'   (e.g. 'Feb 20 2026')
    then falls back to pandas. Returns None when nothing parses.
    """
    s = str(s or "").strip()
    if not s:
        return None

    m = re.match(r'^(\d{1,2})[/-](\d{1,2})[/-](\d{4})$', s)
    if m:
        return _safe_date(int(m[3]), int(m[1]), int(m[2]))
    m = re.match(r'^(\d{4})-(\d{2})-(\d{2})$', s)
    if m:
        return _safe_date(int(m[1]), int(m[2]), int(m[3]))
    m = re.match(r'^([A-Za-z]{3})\s+(\d{1,2})\s+(\d{4})$', s)
    if m and m[1].title() in MONTHS:
        return _safe_date(int(m[3]), MONTHS.index(m[1].title()) + 1, int(m[2]))

    # fallback
    ts = pd.to_datetime(s, errors="coerce")
    if pd.isna(ts):
        return None
    return ts.date()


def _safe_date(year, month, day) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def get_value(row: Dict[str, str], names: Iterable[str]) -> str:
    """First non-blank value among candidate column names (case-insensitive)."""
    lowered = {str(k).strip().lower(): v for k, v in row.items() if k is not None}
    for name in names:
        value = lowered.get(name.lower())
        if value is not None and str(value).strip():
            return str(value).strip()
    return ""


def detect_broker(row: Dict[str, str]) -> Optional[str]:
    """Return a broker name if one appears anywhere in the row's values."""
    all_text = " ".join(str(v) for v in row.values() if v is not None).lower()
    for broker in KNOWN_BROKERS:
        if re.search(r"(?<![a-z])" + re.escape(broker) + r"(?![a-z])", all_text):
            return broker[0].upper() + broker[1:]
    return None
