"""
Solana JSON-RPC ledger client.

Lists signatures for a watched account with getSignaturesForAddress and
fetches JSON-encoded transactions with getTransaction. Transient failures
are retried with backoff before surfacing as LedgerConnectionError.
"""

from typing import Any, Dict, List, Optional

import httpx
import structlog

from ledger_aggregator.transactions.clients.base import (
    BaseLedgerClient,
    LedgerAPIError,
    LedgerConnectionError,
    LedgerRateLimitError,
    MalformedRecordError,
    RecordNotFoundError,
)
from ledger_aggregator.transactions.config import MAX_PAGE_SIZE, RetryConfig
from ledger_aggregator.transactions.models import (
    SignatureInfo,
    TransactionDetail,
    is_valid_signature,
)
from ledger_aggregator.transactions.retry import retry_with_backoff

logger = structlog.get_logger()

# Slot skipped, long-term storage miss, ledger jump, history unavailable
NOT_FOUND_RPC_CODES = frozenset({-32004, -32007, -32009, -32011})


class SolanaLedgerClient(BaseLedgerClient):
    """Ledger client speaking Solana JSON-RPC over HTTP."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        commitment: str = "finalized",
        address: Optional[str] = None,
        retry: Optional[RetryConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: JSON-RPC endpoint
            timeout: Request timeout in seconds
            commitment: 'confirmed' or 'finalized'
            address: Watched account; resolved from the node identity if None
            retry: Retry policy for transient errors
            http_client: Preconfigured httpx client (tests inject a mock transport)
        """
        super().__init__(base_url, timeout, commitment)
        self.address = address
        self.retry = retry or RetryConfig()
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._request_id = 0

    def get_source_name(self) -> str:
        return "solana"

    async def close(self) -> None:
        await self._client.aclose()

    async def resolve_address(self) -> str:
        """
        Return the watched account, discovering it on first use.

        Without a configured address the watched account is the owner of
        the RPC node's identity account.
        """
        if self.address:
            return self.address

        identity = await self._call("getIdentity", [])
        if not isinstance(identity, dict) or not identity.get("identity"):
            raise LedgerAPIError("getIdentity returned no identity")

        account = await self._call(
            "getAccountInfo",
            [identity["identity"], {"commitment": self.commitment, "encoding": "base64"}],
        )
        value = account.get("value") if isinstance(account, dict) else None
        if not isinstance(value, dict) or not value.get("owner"):
            raise LedgerAPIError(
                f"Identity account {identity['identity']} has no owner"
            )

        self.address = value["owner"]
        logger.info(
            "client.watched_address_resolved",
            identity=identity["identity"],
            address=self.address,
        )
        return self.address

    async def list_new_identifiers(
        self, since: Optional[str], page_size: int = MAX_PAGE_SIZE
    ) -> List[SignatureInfo]:
        address = await self.resolve_address()

        options: Dict[str, Any] = {
            "limit": min(page_size, MAX_PAGE_SIZE),
            "commitment": self.commitment,
        }
        if since is not None:
            options["until"] = since

        result = await self._call("getSignaturesForAddress", [address, options])
        if not isinstance(result, list):
            raise LedgerConnectionError("getSignaturesForAddress returned a non-list result")

        page: List[SignatureInfo] = []
        for item in result:
            try:
                info = SignatureInfo.from_rpc_item(item)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("client.listing_entry_dropped", item=item, error=str(e))
                continue
            if not is_valid_signature(info.signature):
                logger.warning(
                    "client.listing_entry_dropped",
                    item=item,
                    error="invalid signature",
                )
                continue
            page.append(info)

        # The node returns newest first
        page.reverse()
        return page

    async def fetch_detail(self, signature: str) -> TransactionDetail:
        result = await self._call(
            "getTransaction",
            [
                signature,
                {
                    "encoding": "json",
                    "commitment": self.commitment,
                    "maxSupportedTransactionVersion": 0,
                },
            ],
        )
        if result is None:
            raise RecordNotFoundError(f"Transaction {signature} not found")
        if not isinstance(result, dict):
            raise MalformedRecordError(f"{signature}: unexpected result type")
        return self.parse_transaction(signature, result)

    async def _call(self, method: str, params: List[Any]) -> Any:
        """Send one JSON-RPC request, retrying transient failures."""

        async def send() -> Any:
            self._request_id += 1
            payload = {
                "jsonrpc": "2.0",
                "id": self._request_id,
                "method": method,
                "params": params,
            }
            try:
                response = await self._client.post(self.base_url, json=payload)
            except httpx.TimeoutException as e:
                raise LedgerConnectionError(f"{method} timed out") from e
            except httpx.HTTPError as e:
                raise LedgerConnectionError(f"{method} failed: {e}") from e

            if response.status_code == 429:
                raise LedgerRateLimitError(f"{method} rate limited")
            if response.status_code >= 500:
                raise LedgerConnectionError(
                    f"{method} failed with HTTP {response.status_code}"
                )
            if response.status_code != 200:
                raise LedgerAPIError(f"{method} failed with HTTP {response.status_code}")

            try:
                body = response.json()
            except ValueError as e:
                raise LedgerConnectionError(f"{method} returned invalid JSON") from e
            if not isinstance(body, dict):
                raise LedgerConnectionError(f"{method} returned a non-object response")
            error = body.get("error")
            if error:
                if isinstance(error, dict) and error.get("code") in NOT_FOUND_RPC_CODES:
                    raise RecordNotFoundError(f"{method} RPC error: {error}")
                raise LedgerConnectionError(f"{method} RPC error: {error}")
            return body.get("result")

        return await retry_with_backoff(
            send,
            self.retry,
            operation_name=method,
            retry_on=(LedgerConnectionError,),
        )
