"""Tests for the file-backed transaction repository."""

import json

import pytest

from tally_recon.models.transaction import ReconciliationStatus
from tally_recon.services.file_repository import (
    FileTransactionRepository,
    summarize_by_kind,
    transactions_frame,
)
from tally_recon.utils.exceptions import TransactionNotFoundError, TransactionSchemaError

CSV_EXPORT = """id,amount,currency,capture_source,capture_mechanism,has_accounting_entries,reconciliation_status,third_party_name,business_id
b1,100.00,USD,bank_statement_ocr,ocr,false,unreconciled,Acme Bank,biz-1
b2,55.10,USD,bank_statement_upload,,true,,Acme Bank,biz-1
r1,100.00,USD,purchase_invoice_ocr,ocr,false,unreconciled,Office Depot,biz-1
bad,,USD,purchase_invoice_ocr,ocr,false,unreconciled,Broken,biz-1
x1,9.00,USD,bank_statement_ocr,,false,unreconciled,Other Biz,biz-2
"""


@pytest.fixture
def csv_file(tmp_path):
    path = tmp_path / "export.csv"
    path.write_text(CSV_EXPORT)
    return path


@pytest.fixture
def json_file(tmp_path):
    path = tmp_path / "export.json"
    path.write_text(
        json.dumps(
            {
                "transactions": [
                    {
                        "id": "b1",
                        "metadata": {
                            "businessId": "biz-1",
                            "capture": {"source": "credit_card_statement_ocr"},
                            "reconciliation": {"status": "unreconciled"},
                        },
                        "summary": {"totalAmount": 12.5, "currency": "GBP"},
                    },
                    {"id": "r1", "amount": "12.50", "currency": "GBP", "capture_source": "purchase_invoice_ocr"},
                ]
            }
        )
    )
    return path


class TestLoad:
    """Test reading exports."""

    def test_csv(self, csv_file):
        transactions = FileTransactionRepository(csv_file).load()

        assert [t.id for t in transactions] == ["b1", "b2", "r1", "x1"]
        b1 = transactions[0]
        assert b1.currency == "USD"
        assert b1.has_accounting_entries is False
        b2 = transactions[1]
        assert b2.has_accounting_entries is True
        assert b2.capture_mechanism is None
        assert b2.reconciliation_status == ReconciliationStatus.UNSET

    def test_bad_rows_skipped_with_warning(self, csv_file, caplog):
        FileTransactionRepository(csv_file).load()
        assert "skipping" in caplog.text

    def test_json_wrapped(self, json_file):
        transactions = FileTransactionRepository(json_file).load()

        assert [t.id for t in transactions] == ["b1", "r1"]
        assert transactions[0].business_id == "biz-1"

    def test_json_list(self, tmp_path):
        path = tmp_path / "export.json"
        path.write_text(json.dumps([{"id": "a", "amount": 1, "currency": "USD"}]))

        assert FileTransactionRepository(path).load()[0].currency == "USD"

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "export.json"
        path.write_text("{not json")

        with pytest.raises(TransactionSchemaError):
            FileTransactionRepository(path).load()

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "export.xlsx"
        path.write_bytes(b"")

        with pytest.raises(TransactionSchemaError):
            FileTransactionRepository(path).load()


class TestRepositoryInterface:
    @pytest.mark.asyncio
    async def test_list_filters_business_and_paginates(self, csv_file):
        repository = FileTransactionRepository(csv_file)

        first = await repository.list_transactions("biz-1", page=1, limit=2)
        second = await repository.list_transactions("biz-1", page=2, limit=2)

        assert [t.id for t in first] == ["b1", "b2"]
        assert [t.id for t in second] == ["r1"]

    @pytest.mark.asyncio
    async def test_get(self, csv_file):
        repository = FileTransactionRepository(csv_file)

        assert (await repository.get_transaction("r1", "biz-1")).third_party_name == "Office Depot"
        with pytest.raises(TransactionNotFoundError):
            await repository.get_transaction("x1", "biz-1")


def test_summary_frame(csv_file):
    transactions = FileTransactionRepository(csv_file).load()

    frame = transactions_frame(transactions)
    counts = summarize_by_kind(frame)

    assert len(frame) == 4
    assert frame.loc[frame["id"] == "b1", "needs_reconciliation"].item()
    bank = counts[(counts["kind"] == "bank") & (counts["status"] == "unreconciled")]
    assert bank["total"].item() == 2


def test_summary_of_nothing():
    assert summarize_by_kind(transactions_frame([])).empty
