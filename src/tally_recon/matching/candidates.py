"""
Candidate selection for reconciliation matching.

Amount and currency equality is the only discriminator. There is no ranking
by date or name, so the result is easy to explain to an operator.
"""

from decimal import Decimal
from typing import Iterable, Optional
import logging

from ..config import MatchingConfig
from ..models.transaction import (
    MatchCandidate,
    PairingKind,
    Transaction,
    TransactionKind,
)
from .classifier import TransactionClassifier

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = Decimal("0.01")


def amounts_match(a: Transaction, b: Transaction, tolerance: Decimal = DEFAULT_TOLERANCE) -> bool:
    """Absolute difference strictly below tolerance and identical currency."""
    return a.currency == b.currency and abs(a.amount - b.amount) < tolerance


def find_candidates(
    target: Transaction,
    pool: Iterable[Transaction],
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> list[MatchCandidate]:
    """
    Find pool transactions that match the target on amount and currency.

    Args:
        target: Transaction to find matches for
        pool: Transactions to search, in display order
        tolerance: Absolute amount tolerance in currency units

    Returns:
        Candidates in pool order
    """
    candidates: list[MatchCandidate] = []
    for txn in pool:
        if txn.id == target.id:
            continue
        if not amounts_match(target, txn, tolerance):
            continue
        candidates.append(
            MatchCandidate(
                target_id=target.id,
                transaction=txn,
                amount_difference=abs(txn.amount - target.amount),
            )
        )
    return candidates


class CandidateSelector:
    """Finds candidates in either direction, pre-filtering the pool by eligibility."""

    def __init__(
        self,
        classifier: Optional[TransactionClassifier] = None,
        config: Optional[MatchingConfig] = None,
    ):
        self.classifier = classifier or TransactionClassifier()
        self.config = config or MatchingConfig()

    @property
    def tolerance(self) -> Decimal:
        return Decimal(str(self.config.amount_tolerance))

    def find_candidates(self, target: Transaction, pool: Iterable[Transaction]) -> list[MatchCandidate]:
        return find_candidates(target, pool, self.tolerance)

    def receipts_for(self, line: Transaction, pool: Iterable[Transaction]) -> list[MatchCandidate]:
        """Receipts awaiting a match that a dragged bank/card line could pair with."""
        receipts = [t for t in pool if self.classifier.needs_matching(t)]
        candidates = self.find_candidates(line, receipts)
        logger.debug(f"Line {line.id}: {len(candidates)} receipt candidate(s) of {len(receipts)}")
        return candidates

    def lines_for(
        self,
        receipt: Transaction,
        pool: Iterable[Transaction],
        section: PairingKind,
    ) -> list[MatchCandidate]:
        """Bank or card lines needing reconciliation that a tapped receipt could pair with."""
        wanted = TransactionKind.BANK if section == PairingKind.BANK else TransactionKind.CREDIT_CARD
        lines = []
        for txn in pool:
            result = self.classifier.classify(txn)
            if result.kind == wanted and result.needs_reconciliation:
                lines.append(txn)
        candidates = self.find_candidates(receipt, lines)
        logger.debug(f"Receipt {receipt.id}: {len(candidates)} {section.value} candidate(s)")
        return candidates

    def counterparts_for(
        self,
        target: Transaction,
        pool: Iterable[Transaction],
        section: Optional[PairingKind] = None,
    ) -> list[MatchCandidate]:
        """Dispatch on the target's kind to the right direction."""
        pool = list(pool)
        kind = self.classifier.kind_of(target)
        if kind in (TransactionKind.BANK, TransactionKind.CREDIT_CARD):
            return self.receipts_for(target, pool)
        if kind == TransactionKind.PURCHASE_RECEIPT:
            if section is not None:
                return self.lines_for(target, pool, section)
            return self.lines_for(target, pool, PairingKind.BANK) + self.lines_for(
                target, pool, PairingKind.CARDS
            )
        return []

    def explain(self, target: Transaction, candidate: MatchCandidate) -> str:
        """Operator-facing reason for a candidate."""
        return (
            f"Amount and currency match: {candidate.transaction.amount} {candidate.transaction.currency} "
            f"vs {target.amount} {target.currency} (difference {candidate.amount_difference})"
        )
