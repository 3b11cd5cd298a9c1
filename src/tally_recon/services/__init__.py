"""Collaborators: abstract services and their concrete adapters."""

from .base import ExtractionService, ReconciliationService, TransactionRepository
from .http_client import ApiClient
from .file_repository import FileTransactionRepository, summarize_by_kind, transactions_frame

__all__ = [
    "ExtractionService",
    "ReconciliationService",
    "TransactionRepository",
    "ApiClient",
    "FileTransactionRepository",
    "summarize_by_kind",
    "transactions_frame",
]
