"""
Packaging extraction with operator confirmation.

Per item the workflow moves Requesting -> {Success, NeedsConfirmation, Failed}
and NeedsConfirmation -> {Success, Aborted}. Failed never blocks the stock
action that asked for packaging data: the caller may retry or continue
without it.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Awaitable, Callable, Optional, Union
import asyncio
import logging

from ..config import ExtractionConfig
from ..models.context import BusinessContext
from ..models.packaging import (
    ExtractionFailure,
    ExtractionResponse,
    ExtractionSuccess,
    PackagingData,
)
from ..services.base import ExtractionService
from ..utils.exceptions import (
    ConfirmationAbandoned,
    ExtractionTransportError,
    ExtractionUnavailable,
    InvalidUnitError,
)
from ..utils.inflight import InFlightGuard
from .retry import FailureKind, RetryPolicy

logger = logging.getLogger(__name__)

UNAVAILABLE_MESSAGE = "Packaging extraction unavailable. Please try again."


@dataclass(frozen=True)
class ExtractionItem:
    """A stock item whose free-text description needs packaging data."""

    item_id: str
    text: str


@dataclass
class PackagingResult:
    """Finalized packaging data for an item."""

    item_id: str
    packaging: PackagingData
    response: ExtractionSuccess
    attempts: int = 1
    unit_confirmed: bool = False


@dataclass
class ExtractionFailed:
    """Extraction did not produce data; the caller may retry or continue without it."""

    item_id: str
    message: str
    error: ExtractionUnavailable
    attempts: int
    failure: Optional[ExtractionFailure] = None
    can_continue: bool = True
    retryable: bool = True


class ConfirmationState(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class ExtractionConfirmation:
    """
    Pending operator decision on an uncertain unit.

    Confirming merges the unit into the pending response locally; there is
    no second call to the service. Cancelling aborts the whole stock action.
    """

    def __init__(
        self,
        item_id: str,
        response: ExtractionSuccess,
        attempts: int = 1,
        on_close: Optional[Callable[["ExtractionConfirmation"], None]] = None,
    ):
        if response.unit_confirmation is None:
            raise ValueError("Response carries no unit confirmation payload")
        self.item_id = item_id
        self.response = response
        self.attempts = attempts
        self.state = ConfirmationState.PENDING
        self._on_close = on_close
        self._result: Optional[PackagingResult] = None
        self._waiter: Optional[asyncio.Future] = None

    @property
    def extracted_unit(self) -> str:
        return self.response.unit_confirmation.extracted_unit

    @property
    def normalized_unit(self) -> Optional[str]:
        return self.response.unit_confirmation.normalized_unit

    @property
    def question(self) -> str:
        return self.response.unit_confirmation.question

    @property
    def suggested_unit(self) -> str:
        """Pre-filled answer for the operator."""
        return self.normalized_unit or self.extracted_unit

    @property
    def is_pending(self) -> bool:
        return self.state == ConfirmationState.PENDING

    def confirm(self, unit: str) -> PackagingResult:
        """
        Apply the operator's unit and finalize the packaging data.

        Raises:
            ConfirmationAbandoned: If the confirmation was cancelled or dismissed
            InvalidUnitError: If the unit is blank; the confirmation stays pending
        """
        if self.state == ConfirmationState.CANCELLED:
            raise ConfirmationAbandoned(
                f"Unit confirmation for {self.item_id} was cancelled"
            )
        if self.state == ConfirmationState.CONFIRMED and self._result is not None:
            return self._result

        cleaned = (unit or "").strip()
        if not cleaned:
            raise InvalidUnitError("Please enter a valid unit")

        finalized = replace(
            self.response,
            packaging=self.response.packaging.with_primary_unit(cleaned),
            requires_confirmation=False,
            unit_confirmation=None,
        )
        self._result = PackagingResult(
            item_id=self.item_id,
            packaging=finalized.packaging,
            response=finalized,
            attempts=self.attempts,
            unit_confirmed=True,
        )
        self.state = ConfirmationState.CONFIRMED
        logger.info(
            f"Unit for {self.item_id} confirmed as {cleaned!r} (extracted {self.extracted_unit!r})"
        )
        if self._waiter is not None and not self._waiter.done():
            self._waiter.set_result(self._result)
        self._close()
        return self._result

    def cancel(self) -> None:
        """Abandon the confirmation. Later confirm() calls are refused."""
        if self.state != ConfirmationState.PENDING:
            return
        self.state = ConfirmationState.CANCELLED
        logger.info(f"Unit confirmation for {self.item_id} cancelled")
        if self._waiter is not None and not self._waiter.done():
            self._waiter.set_exception(
                ConfirmationAbandoned(f"Unit confirmation for {self.item_id} was cancelled")
            )
        self._close()

    async def wait(self) -> PackagingResult:
        """
        Suspend until the operator confirms or cancels.

        Raises:
            ConfirmationAbandoned: If cancelled or dismissed
        """
        if self.state == ConfirmationState.CONFIRMED and self._result is not None:
            return self._result
        if self.state == ConfirmationState.CANCELLED:
            raise ConfirmationAbandoned(
                f"Unit confirmation for {self.item_id} was cancelled"
            )
        if self._waiter is None:
            self._waiter = asyncio.get_running_loop().create_future()
        return await self._waiter

    def _close(self) -> None:
        if self._on_close is not None:
            self._on_close(self)
            self._on_close = None


@dataclass
class ConfirmationRequired:
    """The service needs the operator to confirm a unit before data is final."""

    item_id: str
    confirmation: ExtractionConfirmation
    attempts: int = 1


ExtractionOutcome = Union[PackagingResult, ConfirmationRequired, ExtractionFailed]


class ExtractionWorkflow:
    """Runs extraction with retry/backoff and tracks pending confirmations."""

    def __init__(
        self,
        service: ExtractionService,
        config: Optional[ExtractionConfig] = None,
        policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.service = service
        self.config = config or ExtractionConfig()
        self.policy = policy or RetryPolicy.from_config(self.config)
        self._sleep = sleep
        self.guard = InFlightGuard()
        self._pending: dict[str, ExtractionConfirmation] = {}
        self._dismissed: set[str] = set()
        self._attempts: dict[str, int] = {}

    async def extract_with_confirmation(
        self, context: BusinessContext, item: ExtractionItem
    ) -> ExtractionOutcome:
        """
        Extract packaging data for an item.

        A confirmation still pending from an earlier run for the same item
        is dismissed first. If the item is dismissed while the request is in
        flight, a unit confirmation comes back already cancelled.

        Returns:
            PackagingResult, ConfirmationRequired or ExtractionFailed

        Raises:
            OperationInProgressError: If the item is already being extracted
        """
        if item.item_id in self._pending:
            self.dismiss(item.item_id)

        async with self.guard.hold(self._key(item.item_id)):
            self._dismissed.discard(item.item_id)
            try:
                response, attempts = await self._extract_with_retry(context, item)
            except Exception as e:
                attempts = self._attempts.get(item.item_id, 1)
                logger.exception(
                    f"Unexpected packaging extraction error for {item.item_id} "
                    f"after {attempts} attempt(s)"
                )
                return ExtractionFailed(
                    item_id=item.item_id,
                    message=UNAVAILABLE_MESSAGE,
                    error=ExtractionUnavailable(f"{UNAVAILABLE_MESSAGE} ({e})", attempts=attempts),
                    attempts=attempts,
                )
            finally:
                self._attempts.pop(item.item_id, None)
            dismissed = item.item_id in self._dismissed
            self._dismissed.discard(item.item_id)

            if response is None:
                logger.warning(f"Packaging extraction unavailable for {item.item_id}")
                return ExtractionFailed(
                    item_id=item.item_id,
                    message=UNAVAILABLE_MESSAGE,
                    error=ExtractionUnavailable(UNAVAILABLE_MESSAGE, attempts=attempts),
                    attempts=attempts,
                )

            if isinstance(response, ExtractionFailure):
                rate_limited = self.policy.classify(response) == FailureKind.RATE_LIMITED
                message = response.display_message
                logger.warning(
                    f"Packaging extraction failed for {item.item_id}: {message} "
                    f"(request {response.request_id}, usage {response.current_usage}/{response.limit})"
                )
                return ExtractionFailed(
                    item_id=item.item_id,
                    message=message,
                    error=ExtractionUnavailable(message, attempts=attempts, rate_limited=rate_limited),
                    attempts=attempts,
                    failure=response,
                )

            if response.requires_confirmation and response.unit_confirmation is not None:
                if dismissed:
                    confirmation = ExtractionConfirmation(item.item_id, response, attempts=attempts)
                    confirmation.cancel()
                    return ConfirmationRequired(
                        item_id=item.item_id, confirmation=confirmation, attempts=attempts
                    )
                confirmation = ExtractionConfirmation(
                    item.item_id, response, attempts=attempts, on_close=self._forget
                )
                self._pending[item.item_id] = confirmation
                logger.info(
                    f"Unit {confirmation.extracted_unit!r} for {item.item_id} needs confirmation"
                )
                return ConfirmationRequired(
                    item_id=item.item_id, confirmation=confirmation, attempts=attempts
                )

            return PackagingResult(
                item_id=item.item_id,
                packaging=response.packaging,
                response=response,
                attempts=attempts,
            )

    def pending(self, item_id: str) -> Optional[ExtractionConfirmation]:
        return self._pending.get(item_id)

    def dismiss(self, item_id: str) -> bool:
        """
        Cancel a pending confirmation because its screen went away.

        An extraction still in flight for the item is marked so that its
        unit confirmation, if any, can never be applied.

        Returns:
            True if a pending confirmation or in-flight request was dismissed
        """
        confirmation = self._pending.pop(item_id, None)
        if confirmation is not None:
            confirmation.cancel()
            return True
        if self.guard.is_active(self._key(item_id)):
            logger.info(f"Extraction for {item_id} dismissed while in flight")
            self._dismissed.add(item_id)
            return True
        return False

    def dismiss_all(self) -> int:
        count = 0
        for item_id in set(self._pending) | set(self._attempts):
            if self.dismiss(item_id):
                count += 1
        return count

    @staticmethod
    def _key(item_id: str) -> str:
        return f"extract:{item_id}"

    def _forget(self, confirmation: ExtractionConfirmation) -> None:
        if self._pending.get(confirmation.item_id) is confirmation:
            del self._pending[confirmation.item_id]

    async def _extract_with_retry(
        self, context: BusinessContext, item: ExtractionItem
    ) -> tuple[Optional[ExtractionResponse], int]:
        """
        Call the service until it succeeds or the policy says stop.

        Returns:
            (last response or None when no response ever arrived, attempts made)
        """
        attempt = 0
        while True:
            self._attempts[item.item_id] = attempt + 1
            try:
                response = await self.service.extract(context.business_id, item.text)
            except ExtractionTransportError as e:
                decision = self.policy.decide(attempt, FailureKind.NETWORK)
                if decision.retry:
                    logger.warning(f"Network error, retrying once: {e}")
                    await self._pause(decision.delay_seconds)
                    attempt += 1
                    continue
                logger.error(f"Packaging extraction failed after retries: {e}")
                return None, attempt + 1

            if isinstance(response, ExtractionSuccess):
                return response, attempt + 1

            decision = self.policy.decide(attempt, self.policy.classify(response))
            if decision.retry:
                logger.info(
                    f"Rate limit hit, retrying in {int(decision.delay_seconds * 1000)}ms "
                    f"(attempt {attempt + 1}/{self.policy.max_retries})"
                )
                await self._pause(decision.delay_seconds)
                attempt += 1
                continue
            return response, attempt + 1

    async def _pause(self, seconds: float) -> None:
        if seconds > 0:
            await self._sleep(seconds)
