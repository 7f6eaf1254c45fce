# options_ledger.processing package
from .classify import classify, classify_leg, split_legs, Classification
from .transactions import (
    aggregate,
    match,
    partition,
    lots_to_frame,
    trades_to_frame,
    check_consistency,
)
from .process_activity import Reconciliation, reconcile, read_legs, process_all
