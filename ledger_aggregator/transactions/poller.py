"""
Ledger ingestion poller.

Repeatedly lists signatures newer than the cursor, drains the page oldest
first into the record store, then advances the cursor. Failures are
isolated: a failed listing is retried on the next cycle, a failed record is
skipped and the rest of the page still drains.
"""

import asyncio
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Dict, List, Optional, TypeVar

import structlog

from ledger_aggregator.transactions.clients.base import (
    BaseLedgerClient,
    LedgerConnectionError,
    MalformedRecordError,
    RecordNotFoundError,
)
from ledger_aggregator.transactions.clients.mock_client import MockLedgerClient
from ledger_aggregator.transactions.clients.solana_client import SolanaLedgerClient
from ledger_aggregator.transactions.config import IngestionConfig, get_ingestion_config
from ledger_aggregator.transactions.cursor import CursorTracker
from ledger_aggregator.transactions.metrics import CycleStatus, IngestionMetrics
from ledger_aggregator.transactions.models import SignatureInfo
from ledger_aggregator.transactions.store import RecordStore, get_record_store
from ledger_aggregator.transactions.utils import format_time

logger = structlog.get_logger()

T = TypeVar("T")


class PollerState(str, Enum):
    """Where the ingestion loop currently is."""

    STOPPED = "stopped"
    POLLING = "polling"
    DRAINING = "draining"


class TransactionPoller:
    """
    Background ingestion loop.

    Owns the cursor and is the only writer of the record store.
    """

    def __init__(
        self,
        client: Optional[BaseLedgerClient] = None,
        config: Optional[IngestionConfig] = None,
        store: Optional[RecordStore] = None,
    ):
        """
        Initialize the poller.

        Args:
            client: Ledger client (defaults to the configured client type)
            config: Ingestion configuration (defaults to loaded config)
            store: Record store to write into (defaults to the global store)
        """
        self.config = config or get_ingestion_config()
        self.client = client or self._create_default_client()
        self.store = store if store is not None else get_record_store()
        self.cursor = CursorTracker(self.store)
        self.metrics = IngestionMetrics(self.config.metrics_history_size)
        self.state = PollerState.STOPPED

        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._last_poll_time: Optional[datetime] = None

        logger.info(
            "poller.initialized",
            client_type=self.client.get_source_name(),
            poll_interval_seconds=self.config.poll_interval_seconds,
            page_size=self.config.page_size,
            commitment=self.config.commitment,
        )

    def _create_default_client(self) -> BaseLedgerClient:
        """Create default ledger client based on config."""
        if self.config.client_type == "mock":
            return MockLedgerClient(base_url=self.config.rpc_url)
        return SolanaLedgerClient(
            base_url=self.config.rpc_url,
            timeout=self.config.rpc_timeout,
            commitment=self.config.commitment,
            address=self.config.watched_address,
            retry=self.config.retry,
        )

    @property
    def running(self) -> bool:
        return self._running

    async def start(self):
        """Start the polling loop in the background."""
        if self._running:
            logger.warning("poller.already_running")
            return

        self._running = True
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._polling_loop())
        logger.info(
            "poller.started",
            interval_seconds=self.config.poll_interval_seconds,
        )

    async def stop(self):
        """
        Stop the polling loop.

        The loop notices the stop signal at its next iteration boundary; if
        it has not exited within the shutdown timeout it is cancelled, which
        leaves the cursor at its last committed value.
        """
        if not self._running:
            logger.debug("poller.not_running")
            return

        self._running = False
        logger.info("poller.stopping")
        if self._stop_event:
            self._stop_event.set()

        if self._task:
            try:
                await asyncio.wait_for(
                    asyncio.shield(self._task), timeout=self.config.shutdown_timeout
                )
            except asyncio.TimeoutError:
                logger.warning("poller.stop_timeout_cancelling")
                self._task.cancel()
                try:
                    await self._task
                except asyncio.CancelledError:
                    pass
            self._task = None

        self.state = PollerState.STOPPED
        logger.info("poller.stopped", cursor=self.cursor.cursor)

    async def _polling_loop(self):
        """Run cycles until stopped, sleeping a fixed interval after each one."""
        assert self._stop_event is not None
        while not self._stop_event.is_set():
            try:
                await self.poll_once()
            except Exception as e:
                logger.error(
                    "polling_loop_error",
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )

            try:
                await asyncio.wait_for(
                    self._stop_event.wait(), timeout=self.config.poll_interval_seconds
                )
            except asyncio.TimeoutError:
                pass

        logger.info("polling_loop_exited")

    async def poll_once(self) -> Dict[str, Any]:
        """
        Execute a single ingestion cycle: list, drain, advance the cursor.

        Returns:
            Dictionary with cycle results
        """
        self.cursor.discard()
        since = self.cursor.cursor
        source = self.client.get_source_name()
        run_id = self.metrics.start_cycle(source=source, cursor=since)
        self.state = PollerState.POLLING

        logger.info("poll.started", run_id=run_id, source=source, cursor=since)

        try:
            page = await self._call(
                self.client.list_new_identifiers(since, self.config.page_size),
                "list_new_identifiers",
            )
        except Exception as e:
            logger.error(
                "poll.list_failed",
                run_id=run_id,
                cursor=since,
                error=str(e),
                error_type=type(e).__name__,
            )
            self.metrics.record_error(f"List failed: {e}")
            self.metrics.end_cycle(CycleStatus.FAILED, since)
            return {
                "run_id": run_id,
                "status": CycleStatus.FAILED.value,
                "cursor": since,
                "error": str(e),
            }

        self.metrics.record_listed(len(page))
        logger.info("poll.page_listed", run_id=run_id, count=len(page))

        if page:
            self.state = PollerState.DRAINING
            await self._drain(page, run_id)

        cursor = self.cursor.commit()
        self.state = PollerState.POLLING
        self._last_poll_time = datetime.now(timezone.utc)

        current = self.metrics.get_current_cycle()
        skipped = current.records_skipped if current else 0
        if not page:
            status = CycleStatus.EMPTY
        elif skipped:
            status = CycleStatus.PARTIAL
        else:
            status = CycleStatus.SUCCESS

        cycle = self.metrics.end_cycle(status, cursor)
        result = {
            "run_id": run_id,
            "status": status.value,
            "cursor": cursor,
            "signatures_listed": len(page),
            "records_stored": cycle.records_stored if cycle else 0,
            "records_skipped": skipped,
            "duration_seconds": cycle.duration_seconds if cycle else 0,
        }

        logger.info(
            "poll.completed",
            run_id=run_id,
            status=status.value,
            listed=len(page),
            stored=result["records_stored"],
            skipped=skipped,
            cursor=cursor,
            store_size=len(self.store),
        )
        return result

    async def _drain(self, page: List[SignatureInfo], run_id: str) -> None:
        """Fetch and store every signature of the page, oldest first."""
        for idx, info in enumerate(page, 1):
            signature = info.signature
            try:
                detail = await self._call(
                    self.client.fetch_detail(signature), "fetch_detail"
                )
            except RecordNotFoundError as e:
                self.metrics.record_not_found()
                logger.warning(
                    "storage.skipped",
                    run_id=run_id,
                    signature=signature,
                    idx=idx,
                    reason="not_found",
                    error=str(e),
                )
            except MalformedRecordError as e:
                self.metrics.record_malformed()
                logger.warning(
                    "storage.skipped",
                    run_id=run_id,
                    signature=signature,
                    idx=idx,
                    reason="malformed",
                    error=str(e),
                )
            except Exception as e:
                self.metrics.record_failed()
                self.metrics.record_error(f"Fetch {signature} failed: {e}")
                logger.error(
                    "storage.failed",
                    run_id=run_id,
                    signature=signature,
                    idx=idx,
                    error=str(e),
                    error_type=type(e).__name__,
                )
            else:
                is_new = self.store.insert(signature, detail)
                self.metrics.record_stored()
                logger.info(
                    "storage.stored",
                    signature=signature,
                    time=format_time(detail.timestamp),
                    new=is_new,
                )
            self.cursor.observe(signature)

    async def _call(self, call: Awaitable[T], operation: str) -> T:
        """Await a client call under the per-call timeout, recording latency."""
        start = time.perf_counter()
        try:
            return await asyncio.wait_for(call, timeout=self.config.call_timeout)
        except asyncio.TimeoutError as e:
            raise LedgerConnectionError(
                f"{operation} exceeded {self.config.call_timeout}s"
            ) from e
        finally:
            self.metrics.record_rpc_call(time.perf_counter() - start)

    def get_status(self) -> Dict[str, Any]:
        """
        Get current poller status and metrics.

        Returns:
            Status dictionary
        """
        current = self.metrics.get_current_cycle()
        last = self.metrics.get_last_cycle()
        return {
            "running": self._running,
            "state": self.state.value,
            "cursor": self.cursor.cursor,
            "store_size": len(self.store),
            "last_poll_time": (
                self._last_poll_time.isoformat() if self._last_poll_time else None
            ),
            "current_cycle": current.to_dict() if current else None,
            "last_cycle": last.to_dict() if last else None,
            "metrics_24h": self.metrics.get_aggregate_metrics(hours=24).to_dict(),
            "success_rate_24h": self.metrics.get_success_rate(hours=24),
            "config": {
                "poll_interval_seconds": self.config.poll_interval_seconds,
                "page_size": self.config.page_size,
                "commitment": self.config.commitment,
                "source": self.client.get_source_name(),
            },
        }


# Global poller instance
_poller_instance: Optional[TransactionPoller] = None


def get_poller() -> TransactionPoller:
    """
    Get or create the global poller instance.

    Returns:
        TransactionPoller singleton
    """
    global _poller_instance
    if _poller_instance is None:
        _poller_instance = TransactionPoller()
    return _poller_instance
