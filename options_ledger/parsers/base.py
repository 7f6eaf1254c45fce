"""
Base parser abstraction for broker activity rows.
"""
from abc import ABC, abstractmethod
from typing import Dict, Optional

from options_ledger.models import TransactionLeg


class BaseBrokerParser(ABC):
    @abstractmethod
    def parse_row(self, row: Dict[str, str], row_id: str) -> Optional[TransactionLeg]:  # noqa: U100
        """
        Parse one row of raw broker activity (header-keyed, lower-case keys)
        into a TransactionLeg, or None if the row is not an option trade.
        """
        pass
