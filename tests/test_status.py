"""Tests for the reconciliation status machine."""

import logging

import pytest

from tally_recon.matching.status import (
    TERMINAL_STATUSES,
    StatusMachine,
    is_terminal,
)
from tally_recon.models.transaction import ReconciliationStatus as S
from tally_recon.utils.exceptions import StatusConflictError


@pytest.fixture
def machine() -> StatusMachine:
    return StatusMachine()


class TestTransitions:
    """Test forward-only transitions."""

    @pytest.mark.parametrize(
        "current,target",
        [
            (S.UNSET, S.UNRECONCILED),
            (S.UNSET, S.MATCHED),
            (S.UNRECONCILED, S.MATCHED),
            (S.UNRECONCILED, S.EXCEPTION),
            (S.UNRECONCILED, S.NOT_REQUIRED),
            (S.MATCHED, S.RECONCILED),
        ],
    )
    def test_forward_moves_applied(self, machine, current, target):
        result = machine.transition("t1", current, target)
        assert result.applied
        assert not result.conflict
        assert machine.conflicts == []

    @pytest.mark.parametrize(
        "current,target",
        [
            (S.MATCHED, S.UNRECONCILED),
            (S.RECONCILED, S.MATCHED),
            (S.EXCEPTION, S.MATCHED),
            (S.NOT_REQUIRED, S.UNRECONCILED),
            (S.UNRECONCILED, S.UNSET),
        ],
    )
    def test_backward_moves_are_conflicts(self, machine, current, target, caplog):
        with caplog.at_level(logging.WARNING):
            result = machine.transition("t1", current, target)

        assert not result.applied
        assert result.conflict
        assert machine.conflicts == [result]
        assert "Status conflict on transaction t1" in caplog.text

    def test_same_status_is_noop(self, machine):
        result = machine.transition("t1", S.MATCHED, S.MATCHED)
        assert not result.applied
        assert not result.conflict

    def test_require_transition_raises(self, machine):
        with pytest.raises(StatusConflictError):
            machine.require_transition("t1", S.RECONCILED, S.UNRECONCILED)

    def test_terminal_set(self):
        assert TERMINAL_STATUSES == {S.MATCHED, S.RECONCILED, S.EXCEPTION, S.NOT_REQUIRED}
        assert not is_terminal(S.UNSET)
        assert not is_terminal(S.UNRECONCILED)


class TestObserve:
    """Test auditing of re-fetched statuses."""

    def test_unchanged(self, machine):
        assert machine.observe("t1", S.UNRECONCILED, S.UNRECONCILED) is None

    def test_forward_observed(self, machine):
        result = machine.observe("t1", S.UNRECONCILED, S.MATCHED)
        assert result.applied

    def test_regression_recorded(self, machine):
        result = machine.observe("t1", S.MATCHED, S.UNRECONCILED)
        assert result.conflict
        assert len(machine.conflicts) == 1
