"""Data models for transactions, match candidates and resolutions."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional
import logging

from ..utils.exceptions import TransactionSchemaError

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


class TransactionKind(Enum):
    """Category derived from capture metadata."""

    BANK = "bank"
    CREDIT_CARD = "credit_card"
    PURCHASE_RECEIPT = "purchase_receipt"
    OTHER = "other"


class PairingKind(Enum):
    """Scope of the remote reconcile operation."""

    BANK = "bank"
    CARDS = "cards"

    @classmethod
    def for_kind(cls, kind: TransactionKind) -> Optional["PairingKind"]:
        if kind == TransactionKind.BANK:
            return cls.BANK
        if kind == TransactionKind.CREDIT_CARD:
            return cls.CARDS
        return None


class ReconciliationStatus(Enum):
    """Reconciliation lifecycle state as stored on the transaction."""

    UNSET = "unset"
    UNRECONCILED = "unreconciled"
    MATCHED = "matched"
    RECONCILED = "reconciled"
    EXCEPTION = "exception"
    NOT_REQUIRED = "not_required"

    @classmethod
    def parse(cls, value: Any) -> "ReconciliationStatus":
        """
        Map a stored value to a status; missing or unknown values are UNSET.

        Values are case-sensitive: "UNRECONCILED" is not a known status.
        """
        if value is None or value == "":
            return cls.UNSET
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip())
        except ValueError:
            logger.warning(f"Unknown reconciliation status {value!r}, treating as unset")
            return cls.UNSET


@dataclass
class Transaction:
    """
    Normalized transaction as seen by the reconciliation engine.

    Instances are read-only from the engine's point of view. Status changes
    happen server-side and are picked up by re-fetching.
    """

    id: str

    # Signed amount in currency units
    amount: Decimal
    currency: str

    # Capture metadata used to derive the kind
    capture_source: Optional[str] = None
    capture_mechanism: Optional[str] = None

    # True iff at least one debit or credit entry is recorded
    has_accounting_entries: bool = False

    reconciliation_status: ReconciliationStatus = ReconciliationStatus.UNSET

    third_party_name: str = ""
    description: str = ""
    transaction_date: Optional[datetime] = None
    business_id: Optional[str] = None

    schema_version: int = SCHEMA_VERSION

    # Original record for audit trail
    raw_data: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Transaction":
        """
        Normalize a stored record into a Transaction.

        Accepts the platform's nested shape (metadata/summary/accounting)
        and the flat export shape (capture_source, amount, ...).

        Raises:
            TransactionSchemaError: If the id or amount is missing or invalid
        """
        if not isinstance(record, dict):
            raise TransactionSchemaError(f"Transaction record must be a mapping, got {type(record).__name__}")

        if "summary" in record or "metadata" in record:
            return cls._from_nested(record)
        return cls._from_flat(record)

    @classmethod
    def _from_nested(cls, record: dict[str, Any]) -> "Transaction":
        metadata = _mapping(record.get("metadata"))
        summary = _mapping(record.get("summary"))
        capture = _mapping(metadata.get("capture"))
        reconciliation = _mapping(metadata.get("reconciliation"))
        accounting = _mapping(record.get("accounting"))

        txn_id = record.get("id") or metadata.get("id")
        has_entries = bool(accounting.get("debits")) or bool(accounting.get("credits"))

        return cls(
            id=_require_id(txn_id),
            amount=_parse_amount(summary.get("totalAmount"), txn_id),
            currency=_parse_currency(summary.get("currency")),
            capture_source=_optional_str(capture.get("source")),
            capture_mechanism=_optional_str(capture.get("mechanism")),
            has_accounting_entries=has_entries,
            reconciliation_status=ReconciliationStatus.parse(reconciliation.get("status")),
            third_party_name=_optional_str(summary.get("thirdPartyName")) or "",
            description=_optional_str(summary.get("description")) or "",
            transaction_date=_parse_date(summary.get("transactionDate")),
            business_id=_optional_str(metadata.get("businessId")),
            raw_data=record,
        )

    @classmethod
    def _from_flat(cls, record: dict[str, Any]) -> "Transaction":
        txn_id = record.get("id")
        return cls(
            id=_require_id(txn_id),
            amount=_parse_amount(record.get("amount"), txn_id),
            currency=_parse_currency(record.get("currency")),
            capture_source=_optional_str(record.get("capture_source")),
            capture_mechanism=_optional_str(record.get("capture_mechanism")),
            has_accounting_entries=_parse_bool(record.get("has_accounting_entries")),
            reconciliation_status=ReconciliationStatus.parse(record.get("reconciliation_status")),
            third_party_name=_optional_str(record.get("third_party_name")) or "",
            description=_optional_str(record.get("description")) or "",
            transaction_date=_parse_date(record.get("transaction_date")),
            business_id=_optional_str(record.get("business_id")),
            schema_version=int(record.get("schema_version") or SCHEMA_VERSION),
            raw_data=record,
        )


@dataclass(frozen=True)
class Classification:
    """Result of classifying a single transaction."""

    kind: TransactionKind
    needs_reconciliation: bool = False
    needs_matching: bool = False


@dataclass(frozen=True)
class MatchCandidate:
    """A pool transaction that plausibly matches a target. Never persisted."""

    target_id: str
    transaction: Transaction
    amount_difference: Decimal
    amount_matches: bool = True
    currency_matches: bool = True

    @property
    def id(self) -> str:
        return self.transaction.id


class MatchOutcome(Enum):
    """Outcome of resolving a candidate list."""

    AUTO = "auto"
    AMBIGUOUS = "ambiguous"
    NONE = "none"


@dataclass
class ReconcileSummary:
    """Answer from the remote reconcile operation."""

    business_id: str
    kind: PairingKind
    matched: int = 0
    triggered_at: datetime = field(default_factory=datetime.now)


@dataclass
class MatchResolution:
    """What the resolver decided for one target."""

    outcome: MatchOutcome
    target: Transaction
    candidates: list[MatchCandidate] = field(default_factory=list)
    chosen: Optional[Transaction] = None
    message: str = ""

    # Set when the reconcile operation was invoked
    reconcile_triggered: bool = False
    pairing_kind: Optional[PairingKind] = None
    summary: Optional[ReconcileSummary] = None

    # The operator picked the counterpart from an ambiguous list
    operator_confirmed: bool = False

    # Status conflict detected before any remote call
    conflict: bool = False

    # Pool generation the candidates were computed against
    generation: int = 0

    @property
    def needs_operator(self) -> bool:
        """True when the operator has to pick one of the candidates."""
        return self.outcome == MatchOutcome.AMBIGUOUS


def _mapping(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _require_id(value: Any) -> str:
    txn_id = _optional_str(value)
    if not txn_id:
        raise TransactionSchemaError("Transaction record has no id")
    return txn_id


def _parse_amount(value: Any, txn_id: Any) -> Decimal:
    if value is None or value == "" or isinstance(value, bool):
        raise TransactionSchemaError(f"Transaction {txn_id} has no amount")
    try:
        if isinstance(value, str):
            value = value.replace(",", "").strip()
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise TransactionSchemaError(f"Transaction {txn_id} has invalid amount {value!r}") from e
    if not amount.is_finite():
        raise TransactionSchemaError(f"Transaction {txn_id} has invalid amount {value!r}")
    return amount


def _parse_currency(value: Any) -> str:
    return _optional_str(value) or ""


def _parse_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "y")
    return bool(value)


def _parse_date(value: Any) -> Optional[datetime]:
    """Epoch milliseconds or ISO-8601 string."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        logger.debug(f"Unparseable transaction date {value!r}")
        return None
