"""
Forward-only reconciliation status machine.

The engine never writes statuses itself. It uses this module to decide
whether a requested move is legal and to audit the transitions it observes
after re-fetching transactions from the server.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
import logging

from ..models.transaction import ReconciliationStatus
from ..utils.exceptions import StatusConflictError

logger = logging.getLogger(__name__)

S = ReconciliationStatus

ALLOWED_TRANSITIONS: dict[ReconciliationStatus, frozenset[ReconciliationStatus]] = {
    S.UNSET: frozenset({S.UNRECONCILED, S.MATCHED, S.EXCEPTION, S.NOT_REQUIRED}),
    S.UNRECONCILED: frozenset({S.MATCHED, S.EXCEPTION, S.NOT_REQUIRED}),
    # Promotion by accounting posting, outside the matcher's authority
    S.MATCHED: frozenset({S.RECONCILED}),
    S.RECONCILED: frozenset(),
    S.EXCEPTION: frozenset(),
    S.NOT_REQUIRED: frozenset(),
}

TERMINAL_STATUSES: frozenset[ReconciliationStatus] = frozenset(
    {S.MATCHED, S.RECONCILED, S.EXCEPTION, S.NOT_REQUIRED}
)


def is_terminal(status: ReconciliationStatus) -> bool:
    """Terminal transactions are excluded from automatic matching."""
    return status in TERMINAL_STATUSES


@dataclass
class TransitionResult:
    """Outcome of a transition request or observation."""

    transaction_id: str
    from_status: ReconciliationStatus
    to_status: ReconciliationStatus
    applied: bool
    conflict: bool = False
    reason: str = ""
    at: datetime = field(default_factory=datetime.now)


class StatusMachine:
    """Validates transitions and keeps a log of conflicts."""

    def __init__(self) -> None:
        self.conflicts: list[TransitionResult] = []

    @staticmethod
    def can_transition(current: ReconciliationStatus, target: ReconciliationStatus) -> bool:
        return target in ALLOWED_TRANSITIONS[current]

    def transition(
        self,
        transaction_id: str,
        current: ReconciliationStatus,
        target: ReconciliationStatus,
    ) -> TransitionResult:
        """
        Check a move from current to target.

        A move to the same status is a no-op. An illegal move is a no-op
        that is logged and recorded as a conflict.
        """
        if current == target:
            return TransitionResult(transaction_id, current, target, applied=False, reason="unchanged")

        if self.can_transition(current, target):
            logger.debug(f"Transaction {transaction_id}: {current.value} -> {target.value}")
            return TransitionResult(transaction_id, current, target, applied=True)

        reason = (
            f"cannot leave terminal status {current.value}"
            if is_terminal(current)
            else f"{current.value} -> {target.value} is not a forward transition"
        )
        result = TransitionResult(
            transaction_id, current, target, applied=False, conflict=True, reason=reason
        )
        self.conflicts.append(result)
        logger.warning(f"Status conflict on transaction {transaction_id}: {reason}")
        return result

    def require_transition(
        self,
        transaction_id: str,
        current: ReconciliationStatus,
        target: ReconciliationStatus,
    ) -> TransitionResult:
        """Like transition() but raises on conflict."""
        result = self.transition(transaction_id, current, target)
        if result.conflict:
            raise StatusConflictError(f"Transaction {transaction_id}: {result.reason}")
        return result

    def observe(
        self,
        transaction_id: str,
        before: ReconciliationStatus,
        after: ReconciliationStatus,
    ) -> Optional[TransitionResult]:
        """
        Audit a status change seen after re-fetching from the server.

        Returns None when nothing changed.
        """
        if before == after:
            return None
        result = self.transition(transaction_id, before, after)
        if result.applied:
            logger.info(
                f"Transaction {transaction_id} moved {before.value} -> {after.value}"
            )
        return result
