"""Tests for candidate selection."""

from decimal import Decimal

import pytest

from tally_recon.config import MatchingConfig
from tally_recon.matching.candidates import CandidateSelector, amounts_match, find_candidates
from tally_recon.models.transaction import PairingKind, Transaction

from .fakes import bank_line, card_line, make_transaction, receipt


@pytest.fixture
def selector() -> CandidateSelector:
    return CandidateSelector()


class TestAmountEquality:
    """Test the amount/currency discriminator."""

    def test_within_tolerance(self):
        assert amounts_match(bank_line("a", "100.00"), receipt("b", "100.005"))

    def test_boundary_is_exclusive(self):
        assert not amounts_match(bank_line("a", "100.00"), receipt("b", "100.01"))

    def test_currency_must_be_identical(self):
        assert not amounts_match(bank_line("a", "100.00"), receipt("b", "100.00", currency="EUR"))

    def test_currency_case_is_significant(self):
        a = Transaction.from_record({"id": "a", "amount": "5", "currency": "usd"})
        b = Transaction.from_record({"id": "b", "amount": "5.00", "currency": "USD"})
        assert not amounts_match(a, b)

    def test_sign_matters(self):
        assert not amounts_match(bank_line("a", "-20.00"), receipt("b", "20.00"))


class TestFindCandidates:
    """Test find_candidates."""

    def test_pool_order_preserved(self):
        target = bank_line("b1", "42.00")
        pool = [receipt("r3", "42.00"), receipt("r1", "42.00"), receipt("r2", "10.00"), receipt("r0", "42.00")]

        result = find_candidates(target, pool)

        assert [c.id for c in result] == ["r3", "r1", "r0"]
        assert all(c.target_id == "b1" for c in result)

    def test_target_is_never_its_own_candidate(self):
        target = bank_line("b1", "42.00")
        assert find_candidates(target, [target, receipt("r1", "42.00")])[0].id == "r1"
        assert len(find_candidates(target, [target])) == 0

    def test_amount_difference_reported(self):
        result = find_candidates(bank_line("b1", "10.000"), [receipt("r1", "10.004")])
        assert result[0].amount_difference == Decimal("0.004")

    def test_symmetric(self):
        txns = [
            bank_line("b1", "10.00"),
            receipt("r1", "10.00"),
            receipt("r2", "10.009"),
            receipt("r3", "10.02"),
            card_line("c1", "10.00", currency="EUR"),
        ]
        for a in txns:
            for b in txns:
                forward = any(c.id == b.id for c in find_candidates(a, txns))
                backward = any(c.id == a.id for c in find_candidates(b, txns))
                assert forward == backward

    def test_configured_tolerance(self):
        selector = CandidateSelector(config=MatchingConfig(amount_tolerance=Decimal("1.00")))
        result = selector.find_candidates(bank_line("b1", "10.00"), [receipt("r1", "10.50")])
        assert [c.id for c in result] == ["r1"]


class TestDirections:
    """Test receipts_for / lines_for pre-filtering."""

    def test_receipts_for_line(self, selector):
        line = bank_line("b1", "25.00")
        pool = [
            line,
            receipt("r-open", "25.00"),
            receipt("r-matched", "25.00", status="matched"),
            receipt("r-unset", "25.00", status="unset"),
            bank_line("b2", "25.00"),
        ]

        assert [c.id for c in selector.receipts_for(line, pool)] == ["r-open"]

    def test_lines_for_receipt_by_section(self, selector):
        target = receipt("r1", "60.00")
        pool = [
            bank_line("b-open", "60.00"),
            bank_line("b-posted", "60.00", entries=True),
            card_line("c-open", "60.00"),
            card_line("c-done", "60.00", status="not_required"),
        ]

        assert [c.id for c in selector.lines_for(target, pool, PairingKind.BANK)] == ["b-open"]
        assert [c.id for c in selector.lines_for(target, pool, PairingKind.CARDS)] == ["c-open"]

    def test_counterparts_dispatch(self, selector):
        pool = [bank_line("b1", "9.99"), card_line("c1", "9.99"), receipt("r1", "9.99")]

        assert [c.id for c in selector.counterparts_for(pool[0], pool)] == ["r1"]
        assert [c.id for c in selector.counterparts_for(pool[2], pool)] == ["b1", "c1"]
        assert [c.id for c in selector.counterparts_for(pool[2], pool, PairingKind.CARDS)] == ["c1"]

    def test_other_has_no_counterparts(self, selector):
        other = make_transaction("o1", "9.99", "manual_entry")
        assert selector.counterparts_for(other, [receipt("r1", "9.99")]) == []

    def test_explain_mentions_amounts(self, selector):
        target = bank_line("b1", "12.00")
        candidate = selector.find_candidates(target, [receipt("r1", "12.00")])[0]
        assert "12.00 USD" in selector.explain(target, candidate)
