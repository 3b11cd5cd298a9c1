"""
Abstract collaborators consumed by the engine.

Concrete adapters live next to this module: an HTTP client for the
accounting platform and a file-backed repository for exports.
"""

from abc import ABC, abstractmethod

from ..models.packaging import ExtractionResponse
from ..models.transaction import PairingKind, ReconcileSummary, Transaction


class TransactionRepository(ABC):
    """Read access to a business's transactions."""

    @abstractmethod
    async def list_transactions(self, business_id: str, page: int = 1, limit: int = 200) -> list[Transaction]:
        """
        List transactions for a business.

        Args:
            business_id: Business to list for
            page: 1-based page number
            limit: Page size; must allow at least 200 records

        Returns:
            Normalized transactions in server order
        """
        pass

    @abstractmethod
    async def get_transaction(self, transaction_id: str, business_id: str) -> Transaction:
        """
        Fetch one transaction.

        Raises:
            TransactionNotFoundError: If it does not exist
        """
        pass


class ReconciliationService(ABC):
    """The remote, coarse-grained reconcile operation."""

    @abstractmethod
    async def reconcile(self, business_id: str, kind: PairingKind) -> ReconcileSummary:
        """
        Trigger bulk matching for one transaction kind. Idempotent.

        Raises:
            ReconciliationCallError: If the call is rejected or times out
        """
        pass


class ExtractionService(ABC):
    """Packaging/unit extraction from free-text item descriptions."""

    @abstractmethod
    async def extract(self, business_id: str, item_text: str) -> ExtractionResponse:
        """
        Extract packaging data.

        Returns:
            ExtractionSuccess or ExtractionFailure for any well-formed answer

        Raises:
            ExtractionTransportError: If no response was received at all
        """
        pass
