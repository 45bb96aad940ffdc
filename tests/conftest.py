import sys
from pathlib import Path

import pytest

# Ensure project root is on sys.path so `import ledger_aggregator` works when running pytest from root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from ledger_aggregator.transactions.config import IngestionConfig  # noqa: E402
from ledger_aggregator.transactions.store import RecordStore  # noqa: E402


@pytest.fixture
def store() -> RecordStore:
    return RecordStore()


@pytest.fixture
def fast_config() -> IngestionConfig:
    return IngestionConfig(
        poll_interval_seconds=0.01,
        call_timeout=1.0,
        shutdown_timeout=1.0,
        client_type="mock",
    )
