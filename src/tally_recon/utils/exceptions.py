"""Custom exceptions for the reconciliation engine."""

from typing import Optional


class ReconciliationError(Exception):
    """Base exception for reconciliation errors."""

    pass


class ConfigurationError(ReconciliationError):
    """Error in configuration."""

    pass


class TransactionSchemaError(ReconciliationError):
    """A transaction record could not be normalized."""

    pass


class TransactionNotFoundError(ReconciliationError):
    """Transaction lookup failed."""

    pass


class RepositoryError(ReconciliationError):
    """Transactions could not be fetched from the backing store."""

    pass


class ReconciliationCallError(ReconciliationError):
    """
    The remote reconcile operation rejected the request or did not answer.

    Local transaction state is never updated when this is raised, so the
    same action can simply be invoked again.
    """

    retryable = True

    def __init__(self, message: str, business_id: Optional[str] = None, kind: Optional[str] = None):
        super().__init__(message)
        self.business_id = business_id
        self.kind = kind


class StatusConflictError(ReconciliationError):
    """A status transition would leave a terminal state."""

    pass


class MatchSelectionError(ReconciliationError):
    """The operator picked a transaction that is not a candidate."""

    pass


class StaleCandidatesError(ReconciliationError):
    """Candidates were computed before the last reconcile call."""

    pass


class OperationInProgressError(ReconciliationError):
    """Another operation is already running for the same transaction or item."""

    def __init__(self, key: str):
        super().__init__(f"An operation is already in progress for {key}")
        self.key = key


class ExtractionError(ReconciliationError):
    """Base exception for packaging extraction errors."""

    pass


class ExtractionTransportError(ExtractionError):
    """The extraction service could not be reached (no response at all)."""

    pass


class ExtractionUnavailable(ExtractionError):
    """Extraction failed; the dependent action can continue without it."""

    retryable = True

    def __init__(self, message: str, attempts: int = 1, rate_limited: bool = False):
        super().__init__(message)
        self.attempts = attempts
        self.rate_limited = rate_limited


class ConfirmationAbandoned(ExtractionError):
    """The operator cancelled a pending unit confirmation."""

    pass


class InvalidUnitError(ExtractionError):
    """A blank or otherwise unusable unit was supplied for confirmation."""

    pass
