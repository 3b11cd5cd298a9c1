"""Classification, candidate selection, resolution and status tracking."""

from .candidates import CandidateSelector, amounts_match, find_candidates
from .classifier import TransactionClassifier, WorkQueues, dedupe_transactions
from .engine import ReconciliationEngine
from .resolver import MatchResolver, decide
from .status import StatusMachine, TransitionResult, TERMINAL_STATUSES, is_terminal

__all__ = [
    "CandidateSelector",
    "amounts_match",
    "find_candidates",
    "TransactionClassifier",
    "WorkQueues",
    "dedupe_transactions",
    "ReconciliationEngine",
    "MatchResolver",
    "decide",
    "StatusMachine",
    "TransitionResult",
    "TERMINAL_STATUSES",
    "is_terminal",
]
