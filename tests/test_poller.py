"""
Tests for the ingestion poller.

Tests page draining, per-record failure isolation, cursor advancement,
listing failures, per-call timeouts, cancellation and the background loop.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from ledger_aggregator.transactions.clients.base import (
    LedgerConnectionError,
    MalformedRecordError,
    RecordNotFoundError,
)
from ledger_aggregator.transactions.clients.mock_client import MockLedgerClient
from ledger_aggregator.transactions.clients.solana_client import SolanaLedgerClient
from ledger_aggregator.transactions.config import IngestionConfig
from ledger_aggregator.transactions.metrics import CycleStatus
from ledger_aggregator.transactions.poller import PollerState, TransactionPoller
from tests.ledger_fixtures import ScriptedLedgerClient, make_detail, make_signature


async def wait_until(predicate, timeout: float = 2.0):
    """Poll a condition until it holds or the timeout expires."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


@pytest.mark.asyncio
class TestPollOnce:
    """Tests for a single list/drain/commit cycle."""

    async def test_end_to_end_page_with_malformed_record(self, store, fast_config):
        sig_a, sig_b = make_signature(1), make_signature(2)
        client = ScriptedLedgerClient(
            pages=[[sig_a, sig_b]],
            details={
                sig_a: make_detail(1, timestamp=1620000000),
                sig_b: MalformedRecordError("no instructions"),
            },
        )
        poller = TransactionPoller(client=client, config=fast_config, store=store)

        result = await poller.poll_once()

        assert store.get(sig_a).model_dump() == {
            "sender": "S1",
            "receiver": "R1",
            "data": "D1",
            "timestamp": 1620000000,
        }
        assert store.get(sig_b) is None
        assert result["status"] == "partial"
        assert result["records_stored"] == 1
        assert result["records_skipped"] == 1
        assert result["cursor"] == sig_b

    async def test_store_holds_exactly_successful_records(self, store, fast_config):
        sigs = [make_signature(n) for n in range(1, 7)]
        client = ScriptedLedgerClient(
            pages=[sigs],
            details={
                sigs[0]: make_detail(1),
                sigs[1]: RecordNotFoundError("pruned"),
                sigs[2]: make_detail(3),
                sigs[3]: MalformedRecordError("one account key"),
                sigs[4]: LedgerConnectionError("reset by peer"),
                sigs[5]: make_detail(6),
            },
        )
        poller = TransactionPoller(client=client, config=fast_config, store=store)

        await poller.poll_once()

        assert client.fetch_calls == sigs
        stored = {sig for sig in sigs if sig in store}
        assert stored == {sigs[0], sigs[2], sigs[5]}

        cycle = poller.metrics.get_last_cycle()
        assert cycle.records_stored == 3
        assert cycle.records_not_found == 1
        assert cycle.records_malformed == 1
        assert cycle.records_failed == 1
        assert cycle.status == CycleStatus.PARTIAL

    async def test_unexpected_fetch_error_is_isolated(self, store, fast_config):
        sig_a, sig_b = make_signature(1), make_signature(2)
        client = ScriptedLedgerClient(
            pages=[[sig_a, sig_b]],
            details={sig_a: RuntimeError("decoder bug"), sig_b: make_detail(2)},
        )
        poller = TransactionPoller(client=client, config=fast_config, store=store)

        result = await poller.poll_once()

        assert sig_b in store
        assert result["cursor"] == sig_b

    async def test_cursor_advances_page_by_page(self, store, fast_config):
        s1, s2, s3 = make_signature(1), make_signature(2), make_signature(3)
        client = ScriptedLedgerClient(
            pages=[[s1, s2], [s3]],
            details={s1: make_detail(1), s2: make_detail(2), s3: make_detail(3)},
        )
        poller = TransactionPoller(client=client, config=fast_config, store=store)

        await poller.poll_once()
        await poller.poll_once()
        await poller.poll_once()

        assert client.list_calls == [None, s2, s3]
        assert client.fetch_calls == [s1, s2, s3]

    async def test_cursor_advances_past_failed_tail(self, store, fast_config):
        s1, s2 = make_signature(1), make_signature(2)
        client = ScriptedLedgerClient(
            pages=[[s1, s2]],
            details={s1: make_detail(1), s2: RecordNotFoundError("pruned")},
        )
        poller = TransactionPoller(client=client, config=fast_config, store=store)

        await poller.poll_once()
        await poller.poll_once()

        assert client.list_calls == [None, s2]

    async def test_list_failure_keeps_cursor(self, store, fast_config):
        s1, s2 = make_signature(1), make_signature(2)
        client = ScriptedLedgerClient(
            pages=[[s1], LedgerConnectionError("503"), [s2]],
            details={s1: make_detail(1), s2: make_detail(2)},
        )
        poller = TransactionPoller(client=client, config=fast_config, store=store)

        await poller.poll_once()
        failed = await poller.poll_once()
        await poller.poll_once()

        assert failed["status"] == "failed"
        assert failed["cursor"] == s1
        assert client.list_calls == [None, s1, s1]
        assert s2 in store
        assert poller.metrics.get_history()[1].status == CycleStatus.FAILED

    async def test_empty_page(self, store, fast_config):
        client = ScriptedLedgerClient(pages=[[]])
        poller = TransactionPoller(client=client, config=fast_config, store=store)

        result = await poller.poll_once()

        assert result["status"] == "empty"
        assert result["cursor"] is None
        assert client.fetch_calls == []

    async def test_hung_fetch_times_out(self, store):
        s1, s2 = make_signature(1), make_signature(2)
        client = ScriptedLedgerClient(pages=[[s1, s2]], details={s2: make_detail(2)})

        original_fetch = client.fetch_detail

        async def fetch(signature):
            if signature == s1:
                await asyncio.sleep(10)
            return await original_fetch(signature)

        client.fetch_detail = fetch
        config = IngestionConfig(poll_interval_seconds=0.01, call_timeout=0.05)
        poller = TransactionPoller(client=client, config=config, store=store)

        result = await poller.poll_once()

        assert s1 not in store
        assert s2 in store
        assert result["cursor"] == s2
        assert poller.metrics.get_last_cycle().records_failed == 1

    async def test_cancelled_drain_does_not_commit_cursor(self, store, fast_config):
        s1, s2 = make_signature(1), make_signature(2)
        client = ScriptedLedgerClient(pages=[[s1, s2]], details={s1: make_detail(1)})
        blocked = asyncio.Event()

        original_fetch = client.fetch_detail

        async def fetch(signature):
            if signature == s2:
                blocked.set()
                await asyncio.sleep(10)
            return await original_fetch(signature)

        client.fetch_detail = fetch
        poller = TransactionPoller(client=client, config=fast_config, store=store)

        task = asyncio.create_task(poller.poll_once())
        await asyncio.wait_for(blocked.wait(), timeout=2.0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert s1 in store
        assert poller.cursor.cursor is None

    async def test_reingesting_same_record_is_idempotent(self, store, fast_config):
        s1 = make_signature(1)
        client = ScriptedLedgerClient(pages=[[s1], [s1]], details={s1: make_detail(1)})
        poller = TransactionPoller(client=client, config=fast_config, store=store)

        await poller.poll_once()
        await poller.poll_once()

        assert len(store) == 1
        assert store.get(s1) == make_detail(1)


@pytest.mark.asyncio
class TestPollerLoop:
    """Tests for the background loop and its shutdown."""

    async def test_start_stop(self, store, fast_config):
        s1 = make_signature(1)
        client = ScriptedLedgerClient(pages=[[s1]], details={s1: make_detail(1)})
        poller = TransactionPoller(client=client, config=fast_config, store=store)

        await poller.start()
        assert poller.running is True

        await wait_until(lambda: len(client.list_calls) >= 3)
        await poller.stop()

        assert poller.running is False
        assert poller.state == PollerState.STOPPED
        assert s1 in store
        assert client.list_calls[1:3] == [s1, s1]

    async def test_loop_survives_listing_failures(self, store, fast_config):
        s1 = make_signature(1)
        client = ScriptedLedgerClient(
            pages=[LedgerConnectionError("down"), LedgerConnectionError("down"), [s1]],
            details={s1: make_detail(1)},
        )
        poller = TransactionPoller(client=client, config=fast_config, store=store)

        await poller.start()
        await wait_until(lambda: s1 in store)
        await poller.stop()

        assert client.list_calls[:3] == [None, None, None]

    async def test_loop_survives_unexpected_errors(self, store, fast_config):
        poller = TransactionPoller(
            client=ScriptedLedgerClient(), config=fast_config, store=store
        )
        poller.poll_once = AsyncMock(side_effect=RuntimeError("boom"))

        await poller.start()
        await wait_until(lambda: poller.poll_once.call_count >= 3)
        await poller.stop()

        assert poller.running is False

    async def test_stop_cancels_hung_cycle(self, store):
        s1 = make_signature(1)
        client = ScriptedLedgerClient(pages=[[s1]], details={s1: make_detail(1)})

        async def hang(signature):
            await asyncio.sleep(10)

        client.fetch_detail = hang
        config = IngestionConfig(
            poll_interval_seconds=0.01, call_timeout=30.0, shutdown_timeout=0.05
        )
        poller = TransactionPoller(client=client, config=config, store=store)

        await poller.start()
        await wait_until(lambda: poller.state == PollerState.DRAINING)
        await poller.stop()

        assert poller.running is False
        assert poller.cursor.cursor is None
        assert len(store) == 0

    async def test_double_start_is_ignored(self, store, fast_config):
        poller = TransactionPoller(
            client=ScriptedLedgerClient(), config=fast_config, store=store
        )
        await poller.start()
        first_task = poller._task
        await poller.start()

        assert poller._task is first_task
        await poller.stop()

    async def test_stop_when_not_running(self, store, fast_config):
        poller = TransactionPoller(
            client=ScriptedLedgerClient(), config=fast_config, store=store
        )
        await poller.stop()
        assert poller.running is False


@pytest.mark.asyncio
class TestPollerStatus:
    async def test_get_status(self, store, fast_config):
        s1 = make_signature(1)
        client = ScriptedLedgerClient(pages=[[s1]], details={s1: make_detail(1)})
        poller = TransactionPoller(client=client, config=fast_config, store=store)

        await poller.poll_once()
        status = poller.get_status()

        assert status["running"] is False
        assert status["cursor"] == s1
        assert status["store_size"] == 1
        assert status["last_cycle"]["status"] == "success"
        assert status["metrics_24h"]["total_stored"] == 1
        assert status["success_rate_24h"] == 1.0
        assert status["config"]["source"] == "scripted"

    async def test_success_rate_counts_failed_listings(self, store, fast_config):
        client = ScriptedLedgerClient(pages=[LedgerConnectionError("down"), []])
        poller = TransactionPoller(client=client, config=fast_config, store=store)

        await poller.poll_once()
        await poller.poll_once()

        assert poller.metrics.get_success_rate() == pytest.approx(0.5)


class TestDefaultClient:
    def test_mock_client_from_config(self, store):
        poller = TransactionPoller(
            config=IngestionConfig(client_type="mock"), store=store
        )
        assert isinstance(poller.client, MockLedgerClient)

    @pytest.mark.asyncio
    async def test_solana_client_from_config(self, store):
        config = IngestionConfig(
            client_type="solana",
            rpc_url="https://rpc.test/",
            commitment="confirmed",
            watched_address="Watched1111",
        )
        poller = TransactionPoller(config=config, store=store)

        assert isinstance(poller.client, SolanaLedgerClient)
        assert poller.client.commitment == "confirmed"
        assert poller.client.address == "Watched1111"
        await poller.client.close()
