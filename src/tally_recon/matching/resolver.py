"""
Match resolution: turn candidates into auto-match, disambiguation or no-match.

The remote reconcile operation is coarse: it re-runs bulk matching for a
whole kind (bank or cards). A successful call therefore means "matching
was triggered for this pair", and callers must re-fetch to see the result.
"""

from decimal import Decimal
from typing import Optional, Sequence, Union
import logging

from ..models.context import BusinessContext
from ..models.transaction import (
    MatchCandidate,
    MatchOutcome,
    MatchResolution,
    PairingKind,
    ReconciliationStatus,
    Transaction,
    TransactionKind,
)
from ..services.base import ReconciliationService
from ..utils.exceptions import MatchSelectionError, ReconciliationCallError
from .candidates import DEFAULT_TOLERANCE, amounts_match
from .classifier import TransactionClassifier
from .status import StatusMachine

logger = logging.getLogger(__name__)

NO_MATCH_MESSAGE = "No matching transaction found."
AMOUNT_MISMATCH_MESSAGE = "Amounts do not match. Please match transactions with equal amounts."


def decide(candidates: Sequence[MatchCandidate]) -> MatchOutcome:
    """Outcome for a candidate list, with no side effects."""
    if not candidates:
        return MatchOutcome.NONE
    if len(candidates) == 1:
        return MatchOutcome.AUTO
    return MatchOutcome.AMBIGUOUS


class MatchResolver:
    """Resolves candidates and issues the reconcile call when a pair is settled."""

    def __init__(
        self,
        reconciliation: ReconciliationService,
        classifier: Optional[TransactionClassifier] = None,
        status_machine: Optional[StatusMachine] = None,
        tolerance: Decimal = DEFAULT_TOLERANCE,
    ):
        self.reconciliation = reconciliation
        self.classifier = classifier or TransactionClassifier()
        self.status_machine = status_machine or StatusMachine()
        self.tolerance = tolerance

    async def resolve(
        self,
        context: BusinessContext,
        target: Transaction,
        candidates: Sequence[MatchCandidate],
        generation: int = 0,
    ) -> MatchResolution:
        """
        Resolve a candidate list for a target.

        Zero candidates reports no match, one candidate is reconciled
        straight away, and several candidates are handed back to the
        operator without any remote call.

        Raises:
            ReconciliationCallError: If the single-candidate reconcile call fails
        """
        candidates = list(candidates)
        outcome = decide(candidates)

        if outcome == MatchOutcome.NONE:
            logger.info(f"No candidates for transaction {target.id}")
            return MatchResolution(
                outcome=outcome,
                target=target,
                message=NO_MATCH_MESSAGE,
                generation=generation,
            )

        if outcome == MatchOutcome.AMBIGUOUS:
            logger.info(
                f"{len(candidates)} candidates for transaction {target.id}, operator must choose"
            )
            return MatchResolution(
                outcome=outcome,
                target=target,
                candidates=candidates,
                message=(
                    f"Found {len(candidates)} transactions with matching amount. "
                    f"Please choose one to match."
                ),
                generation=generation,
            )

        return await self._reconcile_pair(
            context, target, candidates[0].transaction, candidates, generation
        )

    async def confirm(
        self,
        context: BusinessContext,
        target: Transaction,
        chosen: Union[str, Transaction],
        candidates: Sequence[MatchCandidate],
        generation: int = 0,
    ) -> MatchResolution:
        """
        Reconcile the operator's pick from an ambiguous list.

        Raises:
            MatchSelectionError: If the pick is not one of the candidates
            ReconciliationCallError: If the reconcile call fails
        """
        chosen_id = chosen if isinstance(chosen, str) else chosen.id
        picked = next((c for c in candidates if c.id == chosen_id), None)
        if picked is None:
            raise MatchSelectionError(
                f"Transaction {chosen_id} is not a candidate for {target.id}"
            )

        resolution = await self._reconcile_pair(
            context, target, picked.transaction, list(candidates), generation
        )
        resolution.operator_confirmed = True
        return resolution

    async def drop(
        self,
        context: BusinessContext,
        dragged: Transaction,
        drop_target: Transaction,
        generation: int = 0,
    ) -> MatchResolution:
        """
        Decide whether dropping one transaction on another completes a match.

        Raises:
            ReconciliationCallError: If the reconcile call fails
        """
        if not amounts_match(dragged, drop_target, self.tolerance):
            logger.info(f"Drop of {dragged.id} on {drop_target.id} rejected: amounts differ")
            return MatchResolution(
                outcome=MatchOutcome.NONE,
                target=dragged,
                message=AMOUNT_MISMATCH_MESSAGE,
                generation=generation,
            )

        candidate = MatchCandidate(
            target_id=dragged.id,
            transaction=drop_target,
            amount_difference=abs(drop_target.amount - dragged.amount),
        )
        return await self._reconcile_pair(context, dragged, drop_target, [candidate], generation)

    def pairing_kind(self, target: Transaction, chosen: Transaction) -> PairingKind:
        """
        Scope of the reconcile call, taken from whichever side is a statement line.

        Raises:
            MatchSelectionError: If neither side is a bank or card line
        """
        for txn in (target, chosen):
            kind = PairingKind.for_kind(self.classifier.kind_of(txn))
            if kind is not None:
                return kind
        raise MatchSelectionError(
            f"Neither {target.id} nor {chosen.id} is a bank or credit card statement line"
        )

    def _split_pair(self, target: Transaction, chosen: Transaction) -> tuple[Transaction, Transaction]:
        """Order a pair as (statement line, receipt)."""
        if self.classifier.kind_of(target) == TransactionKind.PURCHASE_RECEIPT:
            return chosen, target
        return target, chosen

    async def _reconcile_pair(
        self,
        context: BusinessContext,
        target: Transaction,
        chosen: Transaction,
        candidates: list[MatchCandidate],
        generation: int,
    ) -> MatchResolution:
        kind = self.pairing_kind(target, chosen)
        line, receipt = self._split_pair(target, chosen)

        conflicts = [
            result
            for result in (
                self.status_machine.transition(
                    txn.id, txn.reconciliation_status, ReconciliationStatus.MATCHED
                )
                for txn in (line, receipt)
            )
            if result.conflict
        ]
        if conflicts:
            return MatchResolution(
                outcome=MatchOutcome.NONE,
                target=target,
                candidates=candidates,
                chosen=chosen,
                message="; ".join(f"{c.transaction_id}: {c.reason}" for c in conflicts),
                pairing_kind=kind,
                conflict=True,
                generation=generation,
            )

        logger.info(
            f"Reconciling {line.id} with {receipt.id} "
            f"(business {context.business_id}, {kind.value})"
        )
        try:
            summary = await self.reconciliation.reconcile(context.business_id, kind)
        except ReconciliationCallError:
            logger.error(f"Reconcile call failed for {line.id} / {receipt.id}")
            raise
        except Exception as e:
            logger.error(f"Reconcile call failed for {line.id} / {receipt.id}: {e}")
            raise ReconciliationCallError(
                f"Failed to reconcile transactions: {e}",
                business_id=context.business_id,
                kind=kind.value,
            ) from e

        return MatchResolution(
            outcome=MatchOutcome.AUTO,
            target=target,
            candidates=candidates,
            chosen=chosen,
            message=(
                f"Successfully matched {line.third_party_name or line.id} "
                f"with {receipt.third_party_name or receipt.id}"
            ),
            reconcile_triggered=True,
            pairing_kind=kind,
            summary=summary,
            generation=generation,
        )
