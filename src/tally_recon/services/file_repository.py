"""
File-backed transaction repository.

Reads transaction exports (JSON from the platform API, or flat CSV) and
normalizes every record through Transaction.from_record.
"""

from pathlib import Path
from typing import Any, Optional
import json
import logging

import pandas as pd

from ..matching.classifier import TransactionClassifier
from ..models.transaction import Transaction
from ..utils.exceptions import TransactionNotFoundError, TransactionSchemaError
from .base import TransactionRepository

logger = logging.getLogger(__name__)


class FileTransactionRepository(TransactionRepository):
    """
    Repository over a JSON or CSV export file.

    The file is re-read on every call so the pool always reflects what is
    on disk.
    """

    def __init__(self, file_path: Path, encoding: str = "utf-8", delimiter: str = ","):
        """
        Initialize the repository.

        Args:
            file_path: Path to a .json or .csv export
            encoding: File encoding
            delimiter: CSV delimiter
        """
        self.file_path = Path(file_path)
        self.encoding = encoding
        self.delimiter = delimiter

    async def list_transactions(
        self, business_id: str, page: int = 1, limit: int = 200
    ) -> list[Transaction]:
        transactions = [
            t for t in self.load() if t.business_id is None or t.business_id == business_id
        ]
        start = max(page - 1, 0) * limit
        return transactions[start:start + limit]

    async def get_transaction(self, transaction_id: str, business_id: str) -> Transaction:
        for txn in self.load():
            if txn.id == transaction_id and (txn.business_id is None or txn.business_id == business_id):
                return txn
        raise TransactionNotFoundError(f"Transaction {transaction_id} not found in {self.file_path.name}")

    def load(self) -> list[Transaction]:
        """
        Read and normalize every record in the file.

        Records that cannot be normalized are logged and skipped.

        Raises:
            TransactionSchemaError: If the file cannot be read at all
        """
        records = self._read_records()
        transactions: list[Transaction] = []
        for idx, record in enumerate(records):
            try:
                transactions.append(Transaction.from_record(record))
            except TransactionSchemaError as e:
                logger.warning(f"Record {idx}: {e}, skipping")
                continue

        logger.debug(f"Loaded {len(transactions)} transactions from {self.file_path}")
        return transactions

    def _read_records(self) -> list[dict[str, Any]]:
        suffix = self.file_path.suffix.lower()
        if suffix == ".json":
            return self._read_json()
        if suffix == ".csv":
            return self._read_csv()
        raise TransactionSchemaError(f"Unsupported export format: {self.file_path.suffix}")

    def _read_json(self) -> list[dict[str, Any]]:
        try:
            with open(self.file_path, "r", encoding=self.encoding) as f:
                payload = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to read JSON export: {e}")
            raise TransactionSchemaError(f"Failed to read JSON export: {e}") from e

        if isinstance(payload, dict):
            payload = payload.get("transactions", [])
        if not isinstance(payload, list):
            raise TransactionSchemaError("JSON export must be a list or contain a 'transactions' list")
        return payload

    def _read_csv(self) -> list[dict[str, Any]]:
        try:
            df = pd.read_csv(
                self.file_path,
                encoding=self.encoding,
                delimiter=self.delimiter,
                dtype=str,
                keep_default_na=False,
            )
        except Exception as e:
            logger.error(f"Failed to read CSV export: {e}")
            raise TransactionSchemaError(f"Failed to read CSV export: {e}") from e

        records = []
        for _, row in df.iterrows():
            records.append({key: (value if value != "" else None) for key, value in row.to_dict().items()})
        return records


def transactions_frame(
    transactions: list[Transaction],
    classifier: Optional[TransactionClassifier] = None,
) -> pd.DataFrame:
    """
    Tabulate transactions with their classification.

    Args:
        transactions: Transactions to tabulate
        classifier: Classifier to use (default configuration if omitted)

    Returns:
        DataFrame with one row per transaction
    """
    classifier = classifier or TransactionClassifier()
    rows = []
    for txn in transactions:
        result = classifier.classify(txn)
        rows.append(
            {
                "id": txn.id,
                "kind": result.kind.value,
                "status": txn.reconciliation_status.value,
                "has_accounting_entries": txn.has_accounting_entries,
                "needs_reconciliation": result.needs_reconciliation,
                "needs_matching": result.needs_matching,
                "amount": float(txn.amount),
                "currency": txn.currency,
                "third_party_name": txn.third_party_name,
            }
        )
    columns = [
        "id",
        "kind",
        "status",
        "has_accounting_entries",
        "needs_reconciliation",
        "needs_matching",
        "amount",
        "currency",
        "third_party_name",
    ]
    return pd.DataFrame(rows, columns=columns)


def summarize_by_kind(frame: pd.DataFrame) -> pd.DataFrame:
    """Counts per kind and status."""
    if frame.empty:
        return pd.DataFrame(columns=["kind", "status", "total"])
    return (
        frame.groupby(["kind", "status"], sort=True)
        .size()
        .reset_index(name="total")
    )
