"""
Pure retry policy for calls to the extraction service.

The policy only answers "retry or stop, and after how long" from the
attempt index and the failure classification. It never sleeps and never
touches the network.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from ..config import ExtractionConfig
from ..models.packaging import ExtractionFailure

DEFAULT_RATE_LIMIT_MARKERS = ("temporarily busy", "try again", "temporarily unavailable")


class FailureKind(Enum):
    """How a failed attempt is treated by the retry policy."""

    RATE_LIMITED = "rate_limited"
    NETWORK = "network"
    OTHER = "other"


@dataclass(frozen=True)
class RetryDecision:
    """Whether to retry and the delay before the next attempt."""

    retry: bool
    delay_seconds: float = 0.0
    reason: str = ""


class RetryPolicy:
    """
    Exponential backoff for rate limiting, one immediate retry for network errors.

    With the defaults a run of rate-limit failures is retried after 1s, 2s
    and 4s and then gives up. A network failure is retried once, only when
    it happens on the very first attempt.
    """

    def __init__(
        self,
        max_retries: int = 3,
        initial_delay_ms: int = 1000,
        network_retries: int = 1,
        network_retry_delay_ms: int = 0,
        rate_limit_markers: Optional[Iterable[str]] = None,
    ):
        self.max_retries = max_retries
        self.initial_delay_ms = initial_delay_ms
        self.network_retries = network_retries
        self.network_retry_delay_ms = network_retry_delay_ms
        self.rate_limit_markers = tuple(
            m.lower() for m in (rate_limit_markers or DEFAULT_RATE_LIMIT_MARKERS)
        )

    @classmethod
    def from_config(cls, config: ExtractionConfig) -> "RetryPolicy":
        return cls(
            max_retries=config.max_retries,
            initial_delay_ms=config.initial_delay_ms,
            network_retries=config.network_retries,
            network_retry_delay_ms=config.network_retry_delay_ms,
            rate_limit_markers=config.rate_limit_markers,
        )

    def classify(self, failure: ExtractionFailure) -> FailureKind:
        """Rate-limited if flagged explicitly or the error text says so."""
        if failure.rate_limit:
            return FailureKind.RATE_LIMITED
        text = " ".join(p for p in (failure.error, failure.message or "") if p).lower()
        if any(marker in text for marker in self.rate_limit_markers):
            return FailureKind.RATE_LIMITED
        return FailureKind.OTHER

    def decide(self, attempt: int, failure: FailureKind) -> RetryDecision:
        """
        Decide what to do after a failed attempt.

        Args:
            attempt: 0-based index of the attempt that just failed
            failure: Classification of the failure

        Returns:
            RetryDecision
        """
        if failure == FailureKind.RATE_LIMITED:
            if attempt < self.max_retries:
                delay_ms = self.initial_delay_ms * (2 ** attempt)
                return RetryDecision(
                    retry=True,
                    delay_seconds=delay_ms / 1000,
                    reason=f"rate limited, retry {attempt + 1}/{self.max_retries}",
                )
            return RetryDecision(retry=False, reason="rate limit retries exhausted")

        if failure == FailureKind.NETWORK:
            if attempt < self.network_retries:
                return RetryDecision(
                    retry=True,
                    delay_seconds=self.network_retry_delay_ms / 1000,
                    reason="network error, retrying once",
                )
            return RetryDecision(retry=False, reason="network error after retry")

        return RetryDecision(retry=False, reason="non-retryable error")

    def backoff_schedule(self) -> list[float]:
        """Delays in seconds for a run of rate-limit failures."""
        return [self.initial_delay_ms * (2 ** n) / 1000 for n in range(self.max_retries)]
