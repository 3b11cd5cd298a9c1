"""At-most-one-in-flight guard keyed by transaction or item id."""

from contextlib import asynccontextmanager
from typing import AsyncIterator
import logging

from .exceptions import OperationInProgressError

logger = logging.getLogger(__name__)


class InFlightGuard:
    """
    Tracks which keys currently have an operation running.

    Check-and-claim happens without an await in between, so on a single
    event loop two coroutines can never both hold the same key.
    """

    def __init__(self) -> None:
        self._active: set[str] = set()

    def is_active(self, key: str) -> bool:
        return key in self._active

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        """
        Claim a key for the duration of the block.

        Raises:
            OperationInProgressError: If the key is already claimed
        """
        if key in self._active:
            logger.warning(f"Rejected concurrent operation for {key}")
            raise OperationInProgressError(key)
        self._active.add(key)
        try:
            yield
        finally:
            self._active.discard(key)

    @asynccontextmanager
    async def hold_many(self, *keys: str) -> AsyncIterator[None]:
        """
        Claim several keys together, all or none.

        Raises:
            OperationInProgressError: If any of the keys is already claimed
        """
        claimed = sorted(set(keys))
        for key in claimed:
            if key in self._active:
                logger.warning(f"Rejected concurrent operation for {key}")
                raise OperationInProgressError(key)
        self._active.update(claimed)
        try:
            yield
        finally:
            self._active.difference_update(claimed)
