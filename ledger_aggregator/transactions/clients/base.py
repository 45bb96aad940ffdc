"""
Base ledger client interface.

Defines the contract that all ledger clients must implement and the
shared conversion from a fetched transaction into a TransactionDetail.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ledger_aggregator.transactions.models import (
    INT64_MAX,
    INT64_MIN,
    SignatureInfo,
    TransactionDetail,
)


class BaseLedgerClient(ABC):
    """
    Abstract base class for ledger clients.

    Implementations wrap a paginated ledger RPC and expose listing of new
    signatures and fetching of one transaction's details.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: float = 30.0,
        commitment: str = "finalized",
    ):
        """
        Initialize the client.

        Args:
            base_url: Ledger RPC endpoint
            timeout: Request timeout in seconds
            commitment: Commitment level for listings and fetches
        """
        self.base_url = base_url
        self.timeout = timeout
        self.commitment = commitment

    @abstractmethod
    async def list_new_identifiers(
        self, since: Optional[str], page_size: int = 1000
    ) -> List[SignatureInfo]:
        """
        List signatures newer than the cursor.

        Args:
            since: Cursor signature; None lists the newest page
            page_size: Maximum number of signatures to return

        Returns:
            Signatures ordered oldest first

        Raises:
            LedgerConnectionError: On network, timeout or RPC errors
        """
        pass

    @abstractmethod
    async def fetch_detail(self, signature: str) -> TransactionDetail:
        """
        Fetch one transaction and build its detail record.

        Raises:
            RecordNotFoundError: If the ledger no longer has the transaction
            MalformedRecordError: If the transaction lacks the expected shape
            LedgerConnectionError: On network, timeout or RPC errors
        """
        pass

    @abstractmethod
    def get_source_name(self) -> str:
        """
        Get the name of this ledger source.

        Returns:
            Source identifier (e.g., 'solana', 'mock')
        """
        pass

    async def close(self) -> None:
        """Release network resources held by the client."""
        return None

    def parse_transaction(self, signature: str, result: Dict[str, Any]) -> TransactionDetail:
        """
        Build a TransactionDetail from a JSON-encoded getTransaction result.

        The first two account keys become sender and receiver, the first
        instruction's data becomes the payload. A missing block time is
        stored as 0.

        Raises:
            MalformedRecordError: If any of those pieces is missing
        """
        transaction = result.get("transaction")
        if not isinstance(transaction, dict):
            raise MalformedRecordError(f"{signature}: transaction is not JSON encoded")

        message = transaction.get("message")
        if not isinstance(message, dict):
            raise MalformedRecordError(f"{signature}: missing message")

        account_keys = message.get("accountKeys")
        if not isinstance(account_keys, list) or len(account_keys) < 2:
            raise MalformedRecordError(f"{signature}: fewer than two account keys")
        if not all(isinstance(key, str) for key in account_keys[:2]):
            raise MalformedRecordError(f"{signature}: account keys are not raw strings")

        instructions = message.get("instructions")
        if not isinstance(instructions, list) or not instructions:
            raise MalformedRecordError(f"{signature}: no instructions")
        first = instructions[0]
        if not isinstance(first, dict) or not isinstance(first.get("data"), str):
            raise MalformedRecordError(f"{signature}: first instruction has no data")

        block_time = result.get("blockTime")
        if block_time is not None and not isinstance(block_time, int):
            raise MalformedRecordError(f"{signature}: block time is not an integer")
        if block_time is not None and not INT64_MIN <= block_time <= INT64_MAX:
            raise MalformedRecordError(f"{signature}: block time out of range")

        return TransactionDetail(
            sender=account_keys[0],
            receiver=account_keys[1],
            data=first["data"],
            timestamp=block_time or 0,
        )


class LedgerAPIError(Exception):
    """Base exception for ledger client errors."""

    pass


class LedgerConnectionError(LedgerAPIError):
    """Raised on transient failures: network, timeout or RPC error responses."""

    pass


class LedgerRateLimitError(LedgerConnectionError):
    """Raised when the RPC node rate limits the client."""

    pass


class RecordNotFoundError(LedgerAPIError):
    """Raised when the ledger no longer resolves a signature."""

    pass


class MalformedRecordError(LedgerAPIError):
    """Raised when a fetched transaction lacks the expected structure."""

    pass
