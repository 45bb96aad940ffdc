"""Ledger client implementations."""

from ledger_aggregator.transactions.clients.base import (
    BaseLedgerClient,
    LedgerAPIError,
    LedgerConnectionError,
    LedgerRateLimitError,
    MalformedRecordError,
    RecordNotFoundError,
)
from ledger_aggregator.transactions.clients.mock_client import MockLedgerClient
from ledger_aggregator.transactions.clients.solana_client import SolanaLedgerClient

__all__ = [
    "BaseLedgerClient",
    "LedgerAPIError",
    "LedgerConnectionError",
    "LedgerRateLimitError",
    "MalformedRecordError",
    "RecordNotFoundError",
    "MockLedgerClient",
    "SolanaLedgerClient",
]
