"""Utility modules."""

from .exceptions import (
    ReconciliationError,
    ConfigurationError,
    TransactionSchemaError,
    TransactionNotFoundError,
    RepositoryError,
    ReconciliationCallError,
    StatusConflictError,
    MatchSelectionError,
    StaleCandidatesError,
    OperationInProgressError,
    ExtractionError,
    ExtractionTransportError,
    ExtractionUnavailable,
    ConfirmationAbandoned,
    InvalidUnitError,
)
from .inflight import InFlightGuard
from .logging_config import resolve_level, setup_logging, setup_logging_from_config

__all__ = [
    "ReconciliationError",
    "ConfigurationError",
    "TransactionSchemaError",
    "TransactionNotFoundError",
    "RepositoryError",
    "ReconciliationCallError",
    "StatusConflictError",
    "MatchSelectionError",
    "StaleCandidatesError",
    "OperationInProgressError",
    "ExtractionError",
    "ExtractionTransportError",
    "ExtractionUnavailable",
    "ConfirmationAbandoned",
    "InvalidUnitError",
    "InFlightGuard",
    "setup_logging",
    "resolve_level",
    "setup_logging_from_config",
]
