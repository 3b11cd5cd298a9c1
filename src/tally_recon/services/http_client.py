"""
HTTP adapter for the accounting platform.

Implements transaction listing, the coarse reconcile trigger and packaging
extraction on top of a single httpx.AsyncClient. Bearer tokens are sent on
every request; the token itself is never logged.
"""

from typing import Any, Optional
import logging

import httpx

from ..config import ApiConfig
from ..models.packaging import ExtractionResponse, parse_extraction_response
from ..models.transaction import PairingKind, ReconcileSummary, Transaction
from ..utils.exceptions import (
    ExtractionTransportError,
    ReconciliationCallError,
    RepositoryError,
    TransactionNotFoundError,
    TransactionSchemaError,
)
from .base import ExtractionService, ReconciliationService, TransactionRepository

logger = logging.getLogger(__name__)


class ApiClient(TransactionRepository, ReconciliationService, ExtractionService):
    """
    Client for the platform's transactions, reconcile and extraction APIs.

    Use as an async context manager, or call aclose() when done.
    """

    def __init__(
        self,
        config: Optional[ApiConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or ApiConfig()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Content-Type": "application/json"}
            token = self.config.resolve_token()
            if token:
                headers["Authorization"] = f"Bearer {token}"
            self._client = httpx.AsyncClient(
                base_url=self.config.base_url,
                timeout=self.config.timeout_seconds,
                headers=headers,
                transport=self._transport,
            )
        return self._client

    async def list_transactions(
        self, business_id: str, page: int = 1, limit: int = 200
    ) -> list[Transaction]:
        response = await self._get(
            self.config.endpoints.transactions,
            params={"businessId": business_id, "page": page, "limit": limit},
        )
        payload = _json_body(response, self.config.endpoints.transactions)
        if isinstance(payload, dict):
            data = payload.get("data") if isinstance(payload.get("data"), dict) else payload
            records = data.get("transactions")
        else:
            records = payload

        if not isinstance(records, list):
            raise RepositoryError("Transactions response does not contain a transactions list")

        transactions = []
        for record in records:
            try:
                transactions.append(Transaction.from_record(record))
            except TransactionSchemaError as e:
                logger.warning(f"Skipping malformed transaction record: {e}")
                continue

        logger.debug(f"Fetched {len(transactions)} transactions (page {page}, limit {limit})")
        return transactions

    async def get_transaction(self, transaction_id: str, business_id: str) -> Transaction:
        path = self.config.endpoints.transaction.format(transaction_id=transaction_id)
        response = await self._get(path, params={"businessId": business_id}, allow_not_found=True)
        if response.status_code == 404:
            raise TransactionNotFoundError(f"Transaction {transaction_id} not found")

        payload = _json_body(response, path)
        if isinstance(payload, dict) and isinstance(payload.get("transaction"), dict):
            payload = payload["transaction"]
        if not isinstance(payload, dict):
            raise TransactionSchemaError(f"Unexpected response for transaction {transaction_id}")
        return Transaction.from_record(payload)

    async def reconcile(self, business_id: str, kind: PairingKind) -> ReconcileSummary:
        path = self.config.endpoints.reconcile.format(kind=kind.value)
        try:
            response = await self._http().post(path, json={"businessId": business_id})
        except httpx.TimeoutException as e:
            raise ReconciliationCallError(
                "Reconcile request timed out", business_id=business_id, kind=kind.value
            ) from e
        except httpx.HTTPError as e:
            raise ReconciliationCallError(
                f"Reconcile request failed: {e}", business_id=business_id, kind=kind.value
            ) from e

        if response.status_code not in (200, 201, 202):
            raise ReconciliationCallError(
                f"HTTP {response.status_code}: {response.text[:100]}",
                business_id=business_id,
                kind=kind.value,
            )

        payload = _json_or_empty(response)
        matched = 0
        if isinstance(payload, dict):
            data = payload.get("data") if isinstance(payload.get("data"), dict) else payload
            try:
                matched = int(data.get("matched") or 0)
            except (TypeError, ValueError):
                matched = 0

        logger.info(f"Reconcile {kind.value} for {business_id}: {matched} matched")
        return ReconcileSummary(business_id=business_id, kind=kind, matched=matched)

    async def extract(self, business_id: str, item_text: str) -> ExtractionResponse:
        try:
            response = await self._http().post(
                self.config.endpoints.packaging_extract,
                json={"businessId": business_id, "text": item_text},
            )
        except httpx.TimeoutException as e:
            raise ExtractionTransportError("Connection to extraction service timed out") from e
        except httpx.TransportError as e:
            raise ExtractionTransportError(f"Cannot reach extraction service: {str(e)[:100]}") from e

        try:
            payload = response.json()
        except ValueError:
            payload = {"error": f"HTTP {response.status_code}: {response.text[:100]}"}

        status_code = None if response.is_success else response.status_code
        return parse_extraction_response(payload, status_code=status_code)

    async def _get(
        self, path: str, params: dict[str, Any], allow_not_found: bool = False
    ) -> httpx.Response:
        try:
            response = await self._http().get(path, params=params)
        except httpx.HTTPError as e:
            logger.error(f"GET {path} failed: {e}")
            raise RepositoryError(f"Request to {path} failed: {e}") from e

        if response.status_code == 404 and allow_not_found:
            return response
        if response.status_code >= 400:
            raise RepositoryError(
                f"HTTP {response.status_code} from {path}: {response.text[:100]}"
            )
        return response


def _json_body(response: httpx.Response, path: str) -> Any:
    try:
        return response.json()
    except ValueError as e:
        raise RepositoryError(
            f"Unparseable response from {path}: {response.text[:100]}"
        ) from e


def _json_or_empty(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return {}
