"""
Reconciliation engine orchestrating classification, candidate selection and resolution.

Every query re-fetches the pool from the repository; nothing is cached
between calls except the last seen status of each transaction, which is
used only to audit transitions.
"""

from datetime import datetime
from typing import Optional
import logging

from ..config import ReconConfig
from ..models.context import BusinessContext
from ..models.transaction import (
    MatchOutcome,
    MatchResolution,
    PairingKind,
    ReconcileSummary,
    ReconciliationStatus,
    Transaction,
    TransactionKind,
)
from ..services.base import ReconciliationService, TransactionRepository
from ..utils.exceptions import (
    ReconciliationCallError,
    StaleCandidatesError,
    TransactionNotFoundError,
)
from ..utils.inflight import InFlightGuard
from .candidates import CandidateSelector
from .classifier import TransactionClassifier, WorkQueues, dedupe_transactions
from .resolver import MatchResolver, decide, NO_MATCH_MESSAGE
from .status import StatusMachine

logger = logging.getLogger(__name__)


class ReconciliationEngine:
    """
    Entry point for the reconciliation workflow.

    Operations on the same target transaction are serialized by an
    in-flight guard: a second request while one is pending is rejected.
    """

    def __init__(
        self,
        repository: TransactionRepository,
        reconciliation: ReconciliationService,
        config: Optional[ReconConfig] = None,
    ):
        """
        Initialize the engine.

        Args:
            repository: Source of transactions
            reconciliation: Remote reconcile operation
            config: Application configuration
        """
        self.config = config or ReconConfig()
        self.repository = repository
        self.reconciliation = reconciliation
        self.classifier = TransactionClassifier(self.config.classification)
        self.selector = CandidateSelector(self.classifier, self.config.matching)
        self.status_machine = StatusMachine()
        self.resolver = MatchResolver(
            reconciliation,
            classifier=self.classifier,
            status_machine=self.status_machine,
            tolerance=self.selector.tolerance,
        )
        self.guard = InFlightGuard()
        self._generations: dict[str, int] = {}
        self._last_seen: dict[tuple[str, str], ReconciliationStatus] = {}

    def generation(self, context: BusinessContext) -> int:
        """Counter bumped after every reconcile call for the business."""
        return self._generations.get(context.business_id, 0)

    async def load_pool(self, context: BusinessContext) -> list[Transaction]:
        """
        Fetch a fresh transaction pool for the business.

        Status changes since the previous fetch are audited through the
        status machine.
        """
        pool = await self.repository.list_transactions(
            context.business_id, page=1, limit=self.config.matching.pool_page_size
        )
        pool = dedupe_transactions(pool)
        self._audit_transitions(context, pool)
        logger.debug(f"Loaded {len(pool)} transactions for business {context.business_id}")
        return pool

    async def work_queues(self, context: BusinessContext, section: PairingKind) -> WorkQueues:
        """Work queues for a statement section, from a fresh pool."""
        pool = await self.load_pool(context)
        return self.classifier.partition(pool, section)

    async def preview(
        self,
        context: BusinessContext,
        target_id: str,
        section: Optional[PairingKind] = None,
    ) -> MatchResolution:
        """
        Advisory resolution without any remote call.

        The outcome is what resolve would decide; nothing is reconciled.
        """
        pool = await self.load_pool(context)
        target = await self._find(context, target_id, pool)
        ineligible = self._ineligible(target, context)
        if ineligible is not None:
            return ineligible

        candidates = self.selector.counterparts_for(target, pool, section)
        outcome = decide(candidates)
        return MatchResolution(
            outcome=outcome,
            target=target,
            candidates=candidates,
            chosen=candidates[0].transaction if outcome == MatchOutcome.AUTO else None,
            message=NO_MATCH_MESSAGE if outcome == MatchOutcome.NONE else "",
            generation=self.generation(context),
        )

    async def find_matches(
        self,
        context: BusinessContext,
        target_id: str,
        section: Optional[PairingKind] = None,
    ) -> MatchResolution:
        """
        Compute candidates for a target and resolve them.

        A single candidate is reconciled immediately; several are returned
        for the operator to choose from.

        Raises:
            TransactionNotFoundError: If the target does not exist
            OperationInProgressError: If the target is already being resolved
            ReconciliationCallError: If the reconcile call fails
        """
        async with self.guard.hold(target_id):
            pool = await self.load_pool(context)
            target = await self._find(context, target_id, pool)
            ineligible = self._ineligible(target, context)
            if ineligible is not None:
                return ineligible

            candidates = self.selector.counterparts_for(target, pool, section)
            resolution = await self.resolver.resolve(
                context, target, candidates, generation=self.generation(context)
            )
            if resolution.reconcile_triggered:
                await self._invalidate_and_refresh(context)
            return resolution

    async def confirm_match(
        self,
        context: BusinessContext,
        resolution: MatchResolution,
        chosen_id: str,
    ) -> MatchResolution:
        """
        Reconcile the operator's choice from an ambiguous resolution.

        Raises:
            StaleCandidatesError: If a reconcile call happened since the
                resolution was computed
            MatchSelectionError: If chosen_id is not a candidate
            OperationInProgressError: If the target is already being resolved
            ReconciliationCallError: If the reconcile call fails
        """
        target = resolution.target
        async with self.guard.hold(target.id):
            if resolution.generation != self.generation(context):
                raise StaleCandidatesError(
                    f"Candidates for {target.id} are out of date; fetch them again"
                )
            result = await self.resolver.confirm(
                context,
                target,
                chosen_id,
                resolution.candidates,
                generation=resolution.generation,
            )
            if result.reconcile_triggered:
                await self._invalidate_and_refresh(context)
            return result

    async def drop(
        self,
        context: BusinessContext,
        dragged_id: str,
        target_id: str,
    ) -> MatchResolution:
        """
        Handle a drag-and-drop of one transaction onto another.

        Raises:
            TransactionNotFoundError: If either transaction does not exist
            OperationInProgressError: If either transaction is busy
            ReconciliationCallError: If the reconcile call fails
        """
        async with self.guard.hold_many(dragged_id, target_id):
            pool = await self.load_pool(context)
            dragged = await self._find(context, dragged_id, pool)
            drop_target = await self._find(context, target_id, pool)
            for txn in (dragged, drop_target):
                ineligible = self._ineligible(txn, context)
                if ineligible is not None:
                    return ineligible

            resolution = await self.resolver.drop(
                context, dragged, drop_target, generation=self.generation(context)
            )
            if resolution.reconcile_triggered:
                await self._invalidate_and_refresh(context)
            return resolution

    async def auto_reconcile(
        self, context: BusinessContext, section: PairingKind
    ) -> ReconcileSummary:
        """
        Trigger bulk matching for a whole section.

        Raises:
            OperationInProgressError: If an auto-reconcile for the section is running
            ReconciliationCallError: If the call fails
        """
        key = f"auto-reconcile:{context.business_id}:{section.value}"
        async with self.guard.hold(key):
            logger.info(f"Auto-reconciling {section.value} for business {context.business_id}")
            start = datetime.now()
            try:
                summary = await self.reconciliation.reconcile(context.business_id, section)
            except ReconciliationCallError:
                raise
            except Exception as e:
                raise ReconciliationCallError(
                    f"Failed to reconcile transactions: {e}",
                    business_id=context.business_id,
                    kind=section.value,
                ) from e

            await self._invalidate_and_refresh(context)
            elapsed = (datetime.now() - start).total_seconds()
            logger.info(
                f"Auto-reconcile {section.value} complete in {elapsed:.2f}s: "
                f"{summary.matched} matched"
            )
            return summary

    async def _invalidate_and_refresh(self, context: BusinessContext) -> None:
        self._generations[context.business_id] = self.generation(context) + 1
        try:
            await self.load_pool(context)
        except Exception as e:
            # The reconcile call itself succeeded; the next query re-fetches anyway
            logger.warning(f"Refresh after reconcile failed for {context.business_id}: {e}")

    async def _find(
        self, context: BusinessContext, transaction_id: str, pool: list[Transaction]
    ) -> Transaction:
        for txn in pool:
            if txn.id == transaction_id:
                return txn
        txn = await self.repository.get_transaction(transaction_id, context.business_id)
        if txn is None:
            raise TransactionNotFoundError(f"Transaction {transaction_id} not found")
        return txn

    def _ineligible(
        self, target: Transaction, context: BusinessContext
    ) -> Optional[MatchResolution]:
        """A no-match resolution for targets that must not be (re)matched."""
        result = self.classifier.classify(target)
        if result.kind in (TransactionKind.BANK, TransactionKind.CREDIT_CARD):
            if result.needs_reconciliation:
                return None
            reason = "already has accounting entries" if target.has_accounting_entries else (
                f"is already {target.reconciliation_status.value}"
            )
        elif result.kind == TransactionKind.PURCHASE_RECEIPT:
            if result.needs_matching:
                return None
            reason = f"is {target.reconciliation_status.value}, not unreconciled"
        else:
            reason = "is not a bank, credit card or receipt transaction"

        logger.info(f"Transaction {target.id} not eligible for matching: {reason}")
        return MatchResolution(
            outcome=MatchOutcome.NONE,
            target=target,
            message=f"Transaction {reason}.",
            generation=self.generation(context),
        )

    def _audit_transitions(self, context: BusinessContext, pool: list[Transaction]) -> None:
        for txn in pool:
            key = (context.business_id, txn.id)
            before = self._last_seen.get(key)
            if before is not None:
                self.status_machine.observe(txn.id, before, txn.reconciliation_status)
            self._last_seen[key] = txn.reconciliation_status
