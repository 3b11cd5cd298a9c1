"""Data models for reconciliation and packaging extraction."""

from .context import BusinessContext, resolve_business_context
from .packaging import (
    ExtractionFailure,
    ExtractionResponse,
    ExtractionSuccess,
    PackagingData,
    PackagingLevel,
    PrimaryPackaging,
    SecondaryPackaging,
    UnitConfirmation,
    merge_local_edits,
    parse_extraction_response,
)
from .transaction import (
    Classification,
    MatchCandidate,
    MatchOutcome,
    MatchResolution,
    PairingKind,
    ReconcileSummary,
    ReconciliationStatus,
    Transaction,
    TransactionKind,
)

__all__ = [
    "BusinessContext",
    "resolve_business_context",
    "ExtractionFailure",
    "ExtractionResponse",
    "ExtractionSuccess",
    "PackagingData",
    "PackagingLevel",
    "PrimaryPackaging",
    "SecondaryPackaging",
    "UnitConfirmation",
    "merge_local_edits",
    "parse_extraction_response",
    "Classification",
    "MatchCandidate",
    "MatchOutcome",
    "MatchResolution",
    "PairingKind",
    "ReconcileSummary",
    "ReconciliationStatus",
    "Transaction",
    "TransactionKind",
]
