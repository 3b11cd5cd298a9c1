"""Derives transaction kind and reconciliation disposition from capture metadata."""

from dataclasses import dataclass, field
from typing import Iterable, Optional
import logging

from ..config import ClassificationConfig
from ..models.transaction import (
    Classification,
    PairingKind,
    ReconciliationStatus,
    Transaction,
    TransactionKind,
)
from .status import is_terminal

logger = logging.getLogger(__name__)


@dataclass
class WorkQueues:
    """Transactions of one statement section, grouped by what they need next."""

    section: PairingKind
    needs_verification: list[Transaction] = field(default_factory=list)
    needs_reconciliation: list[Transaction] = field(default_factory=list)
    receipts_to_match: list[Transaction] = field(default_factory=list)
    other: list[Transaction] = field(default_factory=list)


class TransactionClassifier:
    """
    Pure classifier over transaction metadata.

    Bank and card lines are opted out of reconciliation once they have
    accounting entries or reach a terminal status. Receipts are opted in
    only when explicitly marked unreconciled.
    """

    def __init__(self, config: Optional[ClassificationConfig] = None):
        self.config = config or ClassificationConfig()

    def kind_of(self, txn: Transaction) -> TransactionKind:
        source = txn.capture_source or ""
        mechanism = txn.capture_mechanism or ""

        if source in self.config.bank_sources:
            return TransactionKind.BANK
        if source in self.config.credit_card_sources:
            return TransactionKind.CREDIT_CARD
        if (
            source in self.config.receipt_sources
            or (self.config.receipt_source_substring and self.config.receipt_source_substring in source)
            or mechanism in self.config.receipt_mechanisms
        ):
            return TransactionKind.PURCHASE_RECEIPT

        logger.debug(
            f"Transaction {txn.id}: capture source {source!r} / mechanism {mechanism!r} "
            f"does not identify a kind, classified as other"
        )
        return TransactionKind.OTHER

    def classify(self, txn: Transaction) -> Classification:
        """
        Classify a transaction. Never raises.

        Args:
            txn: Transaction to classify

        Returns:
            Classification with kind and eligibility flags
        """
        try:
            kind = self.kind_of(txn)
            status = txn.reconciliation_status

            if kind in (TransactionKind.BANK, TransactionKind.CREDIT_CARD):
                needs_recon = not txn.has_accounting_entries and not is_terminal(status)
                return Classification(kind=kind, needs_reconciliation=needs_recon)

            if kind == TransactionKind.PURCHASE_RECEIPT:
                return Classification(
                    kind=kind,
                    needs_matching=status == ReconciliationStatus.UNRECONCILED,
                )

            return Classification(kind=kind)
        except Exception as e:
            logger.warning(f"Could not classify transaction {getattr(txn, 'id', '?')}: {e}")
            return Classification(kind=TransactionKind.OTHER)

    def needs_reconciliation(self, txn: Transaction) -> bool:
        return self.classify(txn).needs_reconciliation

    def needs_matching(self, txn: Transaction) -> bool:
        return self.classify(txn).needs_matching

    def partition(self, pool: Iterable[Transaction], section: PairingKind) -> WorkQueues:
        """
        Build the work queues for a statement section.

        Args:
            pool: Transactions fetched for the business
            section: Bank or cards

        Returns:
            WorkQueues for the section; duplicates are dropped
        """
        section_kind = (
            TransactionKind.BANK if section == PairingKind.BANK else TransactionKind.CREDIT_CARD
        )
        queues = WorkQueues(section=section)

        for txn in dedupe_transactions(pool):
            result = self.classify(txn)
            if result.kind == section_kind:
                if result.needs_reconciliation:
                    queues.needs_reconciliation.append(txn)
                elif txn.has_accounting_entries and not is_terminal(txn.reconciliation_status):
                    queues.needs_verification.append(txn)
            elif result.kind == TransactionKind.PURCHASE_RECEIPT:
                if result.needs_matching:
                    queues.receipts_to_match.append(txn)
            elif result.kind == TransactionKind.OTHER:
                queues.other.append(txn)

        logger.debug(
            f"Partitioned {section.value}: {len(queues.needs_reconciliation)} to reconcile, "
            f"{len(queues.needs_verification)} to verify, "
            f"{len(queues.receipts_to_match)} receipts to match"
        )
        return queues


def dedupe_transactions(pool: Iterable[Transaction]) -> list[Transaction]:
    """Drop repeated ids, keeping the first occurrence and pool order."""
    seen: set[str] = set()
    unique: list[Transaction] = []
    for txn in pool:
        if not txn.id or txn.id in seen:
            continue
        seen.add(txn.id)
        unique.append(txn)
    return unique
