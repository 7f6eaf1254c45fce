# options_ledger.parsers package
from .base import BaseBrokerParser
from .robinhood import RobinhoodParser
from .generic import GenericParser
from .helpers import parse_currency, parse_date, parse_quantity, detect_broker, resolve_price
