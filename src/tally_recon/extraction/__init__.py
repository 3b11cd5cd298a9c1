"""Packaging extraction with retry/backoff and unit confirmation."""

from .retry import FailureKind, RetryDecision, RetryPolicy
from .workflow import (
    ConfirmationRequired,
    ConfirmationState,
    ExtractionConfirmation,
    ExtractionFailed,
    ExtractionItem,
    ExtractionOutcome,
    ExtractionWorkflow,
    PackagingResult,
)

__all__ = [
    "FailureKind",
    "RetryDecision",
    "RetryPolicy",
    "ConfirmationRequired",
    "ConfirmationState",
    "ExtractionConfirmation",
    "ExtractionFailed",
    "ExtractionItem",
    "ExtractionOutcome",
    "ExtractionWorkflow",
    "PackagingResult",
]
