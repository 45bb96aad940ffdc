"""
Tests for retry with exponential backoff.
"""

import pytest

from ledger_aggregator.transactions.clients.base import (
    LedgerConnectionError,
    MalformedRecordError,
)
from ledger_aggregator.transactions.config import RetryConfig
from ledger_aggregator.transactions.retry import retry_with_backoff


@pytest.mark.asyncio
class TestRetryLogic:
    async def test_retry_success_on_first_attempt(self):
        """Test successful operation on first attempt."""
        call_count = 0

        async def operation():
            nonlocal call_count
            call_count += 1
            return "success"

        config = RetryConfig(max_attempts=3, initial_delay=0.01)
        result = await retry_with_backoff(operation, config)

        assert result == "success"
        assert call_count == 1

    async def test_retry_success_after_failures(self):
        """Test successful operation after transient failures."""
        call_count = 0

        async def operation():
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise LedgerConnectionError("Temporary failure")
            return "success"

        config = RetryConfig(max_attempts=5, initial_delay=0.01, jitter=False)
        result = await retry_with_backoff(operation, config)

        assert result == "success"
        assert call_count == 3

    async def test_retry_exhausted(self):
        """Test that retry gives up after max attempts."""
        call_count = 0

        async def operation():
            nonlocal call_count
            call_count += 1
            raise LedgerConnectionError("Persistent failure")

        config = RetryConfig(max_attempts=3, initial_delay=0.01)

        with pytest.raises(LedgerConnectionError):
            await retry_with_backoff(operation, config)

        assert call_count == 3

    async def test_unlisted_errors_are_not_retried(self):
        call_count = 0

        async def operation():
            nonlocal call_count
            call_count += 1
            raise MalformedRecordError("bad shape")

        config = RetryConfig(max_attempts=3, initial_delay=0.01)

        with pytest.raises(MalformedRecordError):
            await retry_with_backoff(
                operation, config, retry_on=(LedgerConnectionError,)
            )

        assert call_count == 1
