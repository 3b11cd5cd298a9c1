"""Tests for transaction classification and work queues."""

from decimal import Decimal

import pytest

from tally_recon.config import ClassificationConfig
from tally_recon.matching.classifier import TransactionClassifier, dedupe_transactions
from tally_recon.models.transaction import PairingKind, Transaction, TransactionKind

from .fakes import bank_line, card_line, make_transaction, receipt


@pytest.fixture
def classifier() -> TransactionClassifier:
    return TransactionClassifier()


class TestKind:
    """Test kind resolution from capture metadata."""

    @pytest.mark.parametrize(
        "source,expected",
        [
            ("bank_statement_ocr", TransactionKind.BANK),
            ("bank_statement_upload", TransactionKind.BANK),
            ("credit_card_statement_ocr", TransactionKind.CREDIT_CARD),
            ("credit_card_statement_upload", TransactionKind.CREDIT_CARD),
            ("purchase_invoice_ocr", TransactionKind.PURCHASE_RECEIPT),
            ("purchase_order_upload", TransactionKind.PURCHASE_RECEIPT),
            ("manual_entry", TransactionKind.OTHER),
            (None, TransactionKind.OTHER),
        ],
    )
    def test_kind_from_source(self, classifier, source, expected):
        txn = make_transaction("t", "1.00", source)
        assert classifier.classify(txn).kind == expected

    def test_ocr_mechanism_is_receipt(self, classifier):
        txn = make_transaction("t", "1.00", "email_forward", mechanism="ocr")
        assert classifier.classify(txn).kind == TransactionKind.PURCHASE_RECEIPT

    def test_bank_checked_before_receipt(self, classifier):
        txn = make_transaction("t", "1.00", "bank_statement_ocr", mechanism="ocr")
        assert classifier.classify(txn).kind == TransactionKind.BANK

    def test_configurable_sources(self):
        config = ClassificationConfig(bank_sources=["open_banking_feed"])
        classifier = TransactionClassifier(config)
        txn = make_transaction("t", "1.00", "open_banking_feed")
        assert classifier.classify(txn).kind == TransactionKind.BANK


class TestDisposition:
    """Test needs_reconciliation / needs_matching flags."""

    def test_bank_line_without_entries_needs_reconciliation(self, classifier):
        result = classifier.classify(bank_line("b1", "100.00"))
        assert result.needs_reconciliation is True
        assert result.needs_matching is False

    def test_unset_bank_line_needs_reconciliation(self, classifier):
        assert classifier.needs_reconciliation(bank_line("b1", "100.00", status="unset"))

    def test_entries_opt_out(self, classifier):
        assert not classifier.needs_reconciliation(bank_line("b1", "100.00", entries=True))
        assert not classifier.needs_reconciliation(card_line("c1", "100.00", entries=True))

    @pytest.mark.parametrize("status", ["matched", "reconciled", "exception", "not_required"])
    def test_terminal_statuses_opt_out(self, classifier, status):
        assert not classifier.needs_reconciliation(bank_line("b1", "100.00", status=status))
        assert not classifier.needs_reconciliation(card_line("c1", "100.00", status=status))

    def test_receipt_needs_matching_only_when_unreconciled(self, classifier):
        assert classifier.needs_matching(receipt("r1", "10.00"))
        assert not classifier.needs_matching(receipt("r2", "10.00", status="unset"))
        assert not classifier.needs_matching(receipt("r3", "10.00", status="matched"))
        assert not classifier.needs_matching(receipt("r4", "10.00", status="UNRECONCILED"))
        assert not classifier.needs_reconciliation(receipt("r1", "10.00"))

    def test_other_has_no_disposition(self, classifier):
        result = classifier.classify(make_transaction("o1", "5.00", "manual_entry"))
        assert result.kind == TransactionKind.OTHER
        assert not result.needs_reconciliation
        assert not result.needs_matching


class TestTotality:
    """Classification never raises."""

    def test_malformed_source_type(self, classifier):
        txn = Transaction(id="x", amount=Decimal("1"), currency="USD", capture_source=123)
        assert classifier.classify(txn).kind == TransactionKind.OTHER

    def test_not_a_transaction(self, classifier):
        result = classifier.classify(object())
        assert result.kind == TransactionKind.OTHER
        assert not result.needs_reconciliation

    def test_deterministic(self, classifier):
        txn = bank_line("b1", "100.00")
        assert classifier.classify(txn) == classifier.classify(txn)


class TestPartition:
    """Test work queue construction."""

    def test_bank_section(self, classifier):
        pool = [
            bank_line("b-open", "100.00"),
            bank_line("b-posted", "50.00", entries=True),
            bank_line("b-done", "75.00", status="matched"),
            card_line("c-open", "20.00"),
            receipt("r-open", "100.00"),
            receipt("r-no-status", "100.00", status="unset"),
            make_transaction("o-1", "1.00", "manual_entry"),
        ]

        queues = classifier.partition(pool, PairingKind.BANK)

        assert [t.id for t in queues.needs_reconciliation] == ["b-open"]
        assert [t.id for t in queues.needs_verification] == ["b-posted"]
        assert [t.id for t in queues.receipts_to_match] == ["r-open"]
        assert [t.id for t in queues.other] == ["o-1"]

    def test_cards_section(self, classifier):
        pool = [bank_line("b1", "10.00"), card_line("c1", "10.00")]

        queues = classifier.partition(pool, PairingKind.CARDS)

        assert [t.id for t in queues.needs_reconciliation] == ["c1"]

    def test_entries_never_in_reconciliation_queue(self, classifier):
        pool = [bank_line(f"b{i}", "10.00", entries=(i % 2 == 0)) for i in range(6)]

        queues = classifier.partition(pool, PairingKind.BANK)

        assert all(not t.has_accounting_entries for t in queues.needs_reconciliation)
        assert len(queues.needs_reconciliation) == 3

    def test_duplicates_dropped(self, classifier):
        pool = [bank_line("b1", "10.00"), bank_line("b1", "10.00"), bank_line("b2", "10.00")]

        queues = classifier.partition(pool, PairingKind.BANK)

        assert [t.id for t in queues.needs_reconciliation] == ["b1", "b2"]


def test_dedupe_keeps_first_occurrence():
    first = bank_line("b1", "10.00", name="first")
    second = bank_line("b1", "10.00", name="second")

    result = dedupe_transactions([first, receipt("r1", "1.00"), second])

    assert [t.third_party_name for t in result if t.id == "b1"] == ["first"]
    assert len(result) == 2
