"""
Transaction ingestion and query module.

Polls a ledger for new transaction signatures, keeps their details in an
in-memory store and answers queries over that store.
"""

from ledger_aggregator.transactions.clients.base import BaseLedgerClient
from ledger_aggregator.transactions.clients.mock_client import MockLedgerClient
from ledger_aggregator.transactions.clients.solana_client import SolanaLedgerClient
from ledger_aggregator.transactions.metrics import IngestionMetrics
from ledger_aggregator.transactions.models import TransactionDetail
from ledger_aggregator.transactions.poller import TransactionPoller
from ledger_aggregator.transactions.store import RecordStore

__all__ = [
    "BaseLedgerClient",
    "MockLedgerClient",
    "SolanaLedgerClient",
    "IngestionMetrics",
    "TransactionDetail",
    "TransactionPoller",
    "RecordStore",
]
