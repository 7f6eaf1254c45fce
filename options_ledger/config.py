"""
config.py
--------
Centralized reconciliation parameters.
"""
from decimal import Decimal

# One option contract covers 100 shares of the underlying
CONTRACT_MULTIPLIER = Decimal("100")

# Transaction codes that open a position
OPENING_CODES = frozenset({"STO", "SELL", "STO-OPEN"})

# Buy to close, buy to open (treated as closing a short) and assignment
CLOSING_CODES = frozenset({"BTC", "BTO", "OASGN", "BUY"})

# Lot ids are LOT-0001, LOT-0002, ... in aggregation order
LOT_ID_FORMAT = "LOT-{:04d}"

# Brokers recognized by name anywhere in a row
KNOWN_BROKERS = (
    "schwab", "td", "ameritrade", "robinhood",
    "fidelity", "e*trade", "ibkr", "interactive",
)
DEFAULT_BROKER = "Robinhood"

# --- Output files written by process_all ---
OPEN_POSITIONS_FILE = "open_positions.csv"
CLOSED_TRADES_FILE = "closed_trades.csv"
UNMATCHED_FILE = "unmatched.csv"
