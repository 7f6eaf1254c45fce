"""
options_ledger: reconcile brokerage option transactions into open lots and
closed trades with realized P&L.
"""
from .models import (
    ClosedTrade,
    InstrumentKey,
    LegKind,
    OpenLot,
    OptionKind,
    Side,
    TransactionLeg,
)
from .processing import (
    Reconciliation,
    aggregate,
    check_consistency,
    classify,
    match,
    partition,
    process_all,
    read_legs,
    reconcile,
)
from .history import merge_history

__version__ = "0.1.0"
