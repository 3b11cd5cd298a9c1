"""Tests for the in-flight guard."""

import pytest

from tally_recon.utils.exceptions import OperationInProgressError
from tally_recon.utils.inflight import InFlightGuard


@pytest.mark.asyncio
async def test_key_released_after_block():
    guard = InFlightGuard()

    async with guard.hold("t1"):
        assert guard.is_active("t1")
        with pytest.raises(OperationInProgressError) as exc_info:
            async with guard.hold("t1"):
                pass
        assert exc_info.value.key == "t1"

        async with guard.hold("t2"):
            assert guard.is_active("t2")

    assert not guard.is_active("t1")
    assert not guard.is_active("t2")


@pytest.mark.asyncio
async def test_key_released_on_error():
    guard = InFlightGuard()

    with pytest.raises(RuntimeError):
        async with guard.hold("t1"):
            raise RuntimeError("boom")

    assert not guard.is_active("t1")


@pytest.mark.asyncio
async def test_hold_many_claims_all_or_none():
    guard = InFlightGuard()

    async with guard.hold("b"):
        with pytest.raises(OperationInProgressError) as exc_info:
            async with guard.hold_many("a", "b"):
                pass
        assert exc_info.value.key == "b"
        assert not guard.is_active("a")

    async with guard.hold_many("a", "b", "a"):
        assert guard.is_active("a")
        assert guard.is_active("b")

    assert not guard.is_active("a")
    assert not guard.is_active("b")
