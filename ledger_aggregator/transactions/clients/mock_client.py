"""
Mock ledger client for local development.

Generates a steadily growing synthetic ledger so the poller and the
query API can be exercised without a reachable RPC node.
"""

import asyncio
import random
import time
from typing import Dict, List, Optional

import base58

from ledger_aggregator.transactions.clients.base import (
    BaseLedgerClient,
    LedgerConnectionError,
    MalformedRecordError,
    RecordNotFoundError,
)
from ledger_aggregator.transactions.models import SignatureInfo, TransactionDetail


class MockLedgerClient(BaseLedgerClient):
    """
    Mock client that appends a few synthetic transactions per listing.

    Occasional listing failures and malformed records can be simulated.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: float = 30.0,
        commitment: str = "finalized",
        records_per_poll: int = 5,
        failure_rate: float = 0.0,
        malformed_rate: float = 0.0,
        latency_ms: int = 50,
        seed: Optional[int] = None,
    ):
        """
        Initialize mock client.

        Args:
            base_url: Ignored (mock doesn't make real requests)
            timeout: Ignored
            commitment: Ignored
            records_per_poll: New transactions appended per listing call
            failure_rate: Probability a listing call fails (0.0 to 1.0)
            malformed_rate: Probability a transaction is malformed (0.0 to 1.0)
            latency_ms: Simulated network latency in milliseconds
            seed: Seed for reproducible data
        """
        super().__init__(base_url, timeout, commitment)
        self.records_per_poll = records_per_poll
        self.failure_rate = failure_rate
        self.malformed_rate = malformed_rate
        self.latency_ms = latency_ms
        self._random = random.Random(seed)
        self._ledger: List[str] = []
        self._details: Dict[str, Optional[TransactionDetail]] = {}
        self._wallets = [self._random_key(32) for _ in range(8)]

    def get_source_name(self) -> str:
        return "mock"

    async def list_new_identifiers(
        self, since: Optional[str], page_size: int = 1000
    ) -> List[SignatureInfo]:
        await self._simulate_latency()

        if self._random.random() < self.failure_rate:
            raise LedgerConnectionError("Simulated RPC connection failure")

        for _ in range(self.records_per_poll):
            self._append_transaction()

        if since is not None and since in self._ledger:
            newer = self._ledger[self._ledger.index(since) + 1 :]
        else:
            newer = list(self._ledger)

        return [SignatureInfo(signature=sig) for sig in newer[-page_size:]]

    async def fetch_detail(self, signature: str) -> TransactionDetail:
        await self._simulate_latency()

        if signature not in self._details:
            raise RecordNotFoundError(f"Transaction {signature} not found")
        detail = self._details[signature]
        if detail is None:
            raise MalformedRecordError(f"{signature}: first instruction has no data")
        return detail

    def _append_transaction(self) -> str:
        signature = self._random_key(64)
        self._ledger.append(signature)

        if self._random.random() < self.malformed_rate:
            self._details[signature] = None
        else:
            sender, receiver = self._random.sample(self._wallets, 2)
            self._details[signature] = TransactionDetail(
                sender=sender,
                receiver=receiver,
                data=self._random_key(12),
                timestamp=int(time.time()),
            )
        return signature

    def _random_key(self, length: int) -> str:
        return base58.b58encode(self._random.randbytes(length)).decode("ascii")

    async def _simulate_latency(self):
        """Simulate network latency."""
        if self.latency_ms > 0:
            await asyncio.sleep(self.latency_ms / 1000.0)
