"""
Ingestion metrics and monitoring.

Tracks each polling cycle's outcome, latency and cursor movement, and
keeps a bounded history for the status endpoint.
"""

from typing import Dict, Any, Optional, List
from datetime import datetime, timedelta, timezone
from dataclasses import dataclass, field, asdict
from enum import Enum


class CycleStatus(str, Enum):
    """Status of an ingestion cycle."""

    SUCCESS = "success"
    PARTIAL = "partial"  # Page drained, but some records were skipped
    EMPTY = "empty"  # Listing returned no new signatures
    FAILED = "failed"  # Listing itself failed


@dataclass
class CycleMetrics:
    """Metrics for a single ingestion cycle."""

    run_id: str
    started_at: datetime
    ended_at: Optional[datetime] = None
    status: CycleStatus = CycleStatus.SUCCESS

    # Record counts
    signatures_listed: int = 0
    records_stored: int = 0
    records_not_found: int = 0
    records_malformed: int = 0
    records_failed: int = 0

    # Cursor movement
    cursor_before: Optional[str] = None
    cursor_after: Optional[str] = None

    # Performance
    duration_seconds: float = 0.0
    rpc_calls: int = 0
    rpc_latency_seconds: float = 0.0

    # Error tracking
    errors: List[str] = field(default_factory=list)
    error_count: int = 0

    source: str = "unknown"

    @property
    def records_skipped(self) -> int:
        return self.records_not_found + self.records_malformed + self.records_failed

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for the status endpoint."""
        data = asdict(self)
        data["started_at"] = self.started_at.isoformat()
        data["ended_at"] = self.ended_at.isoformat() if self.ended_at else None
        data["status"] = self.status.value
        data["records_skipped"] = self.records_skipped
        return data


@dataclass
class AggregateMetrics:
    """Aggregated metrics across multiple cycles."""

    total_cycles: int = 0
    successful_cycles: int = 0
    partial_cycles: int = 0
    empty_cycles: int = 0
    failed_cycles: int = 0

    total_listed: int = 0
    total_stored: int = 0
    total_skipped: int = 0
    total_errors: int = 0

    avg_duration_seconds: float = 0.0
    avg_rpc_latency_seconds: float = 0.0

    first_cycle: Optional[datetime] = None
    last_cycle: Optional[datetime] = None
    last_failure: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key in ["first_cycle", "last_cycle", "last_failure"]:
            if data[key]:
                data[key] = data[key].isoformat()
        return data


class IngestionMetrics:
    """
    In-memory metrics tracker for the ingestion loop.

    Tracks the current cycle and keeps the most recent ones.
    """

    def __init__(self, history_size: int = 100):
        self.history_size = history_size
        self._current: Optional[CycleMetrics] = None
        self._history: List[CycleMetrics] = []
        self._cycle_counter = 0

    def start_cycle(self, source: str, cursor: Optional[str]) -> str:
        """
        Start tracking a new cycle.

        Returns:
            Run ID for this cycle
        """
        self._cycle_counter += 1
        now = datetime.now(timezone.utc)
        run_id = f"cycle-{now.strftime('%Y%m%d-%H%M%S')}-{self._cycle_counter}"

        self._current = CycleMetrics(
            run_id=run_id,
            started_at=now,
            source=source,
            cursor_before=cursor,
        )
        return run_id

    def end_cycle(self, status: CycleStatus, cursor: Optional[str]) -> Optional[CycleMetrics]:
        """Close the current cycle and move it into history."""
        current = self._current
        if not current:
            return None

        current.ended_at = datetime.now(timezone.utc)
        current.status = status
        current.cursor_after = cursor
        current.duration_seconds = (current.ended_at - current.started_at).total_seconds()

        self._history.append(current)
        if len(self._history) > self.history_size:
            self._history = self._history[-self.history_size :]

        self._current = None
        return current

    def record_rpc_call(self, latency_seconds: float):
        if self._current:
            self._current.rpc_calls += 1
            self._current.rpc_latency_seconds += latency_seconds

    def record_listed(self, count: int):
        if self._current:
            self._current.signatures_listed += count

    def record_stored(self):
        if self._current:
            self._current.records_stored += 1

    def record_not_found(self):
        if self._current:
            self._current.records_not_found += 1

    def record_malformed(self):
        if self._current:
            self._current.records_malformed += 1

    def record_failed(self):
        if self._current:
            self._current.records_failed += 1

    def record_error(self, error: str):
        if self._current:
            self._current.errors.append(error)
            self._current.error_count += 1

    def get_current_cycle(self) -> Optional[CycleMetrics]:
        return self._current

    def get_last_cycle(self) -> Optional[CycleMetrics]:
        return self._history[-1] if self._history else None

    def get_history(self, limit: Optional[int] = None) -> List[CycleMetrics]:
        """
        Get recent cycle history, newest first.

        Args:
            limit: Maximum number of cycles to return (defaults to all)
        """
        history = list(reversed(self._history))
        if limit:
            history = history[:limit]
        return history

    def get_aggregate_metrics(self, hours: Optional[int] = None) -> AggregateMetrics:
        """
        Get aggregated metrics across recent cycles.

        Args:
            hours: Only include cycles from the last N hours (None = all history)
        """
        cycles = self._history
        if hours:
            cutoff = datetime.now(timezone.utc) - timedelta(hours=hours)
            cycles = [c for c in cycles if c.started_at >= cutoff]

        metrics = AggregateMetrics()
        if not cycles:
            return metrics

        metrics.total_cycles = len(cycles)
        for cycle in cycles:
            if cycle.status == CycleStatus.SUCCESS:
                metrics.successful_cycles += 1
            elif cycle.status == CycleStatus.PARTIAL:
                metrics.partial_cycles += 1
            elif cycle.status == CycleStatus.EMPTY:
                metrics.empty_cycles += 1
            elif cycle.status == CycleStatus.FAILED:
                metrics.failed_cycles += 1
                metrics.last_failure = cycle.started_at

        metrics.total_listed = sum(c.signatures_listed for c in cycles)
        metrics.total_stored = sum(c.records_stored for c in cycles)
        metrics.total_skipped = sum(c.records_skipped for c in cycles)
        metrics.total_errors = sum(c.error_count for c in cycles)

        metrics.avg_duration_seconds = (
            sum(c.duration_seconds for c in cycles) / metrics.total_cycles
        )
        metrics.avg_rpc_latency_seconds = (
            sum(c.rpc_latency_seconds for c in cycles) / metrics.total_cycles
        )

        metrics.first_cycle = cycles[0].started_at
        metrics.last_cycle = cycles[-1].started_at
        return metrics

    def get_success_rate(self, hours: Optional[int] = None) -> float:
        """
        Fraction of cycles whose listing call succeeded.

        Returns:
            Success rate as float (0.0 to 1.0)
        """
        agg = self.get_aggregate_metrics(hours)
        if agg.total_cycles == 0:
            return 0.0
        return (agg.total_cycles - agg.failed_cycles) / agg.total_cycles
