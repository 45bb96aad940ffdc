"""
Pagination cursor tracking.

The cursor is the newest signature the poller has attempted. Signatures are
observed while a page drains and only committed once the whole page has been
processed, so an interrupted page is listed again on the next cycle.
"""

from typing import Optional

from ledger_aggregator.transactions.store import RecordStore


class CursorTracker:
    """Holds the committed cursor and the pending one for the page in flight."""

    def __init__(self, store: RecordStore, initial: Optional[str] = None):
        self._store = store
        self._cursor = initial
        self._pending: Optional[str] = None

    @property
    def cursor(self) -> Optional[str]:
        return self._cursor

    def observe(self, signature: str) -> None:
        """Record a signature of the current page as attempted."""
        self._pending = signature

    def commit(self) -> Optional[str]:
        """
        Advance the cursor after a page has fully drained.

        Falls back to the newest stored signature when nothing was observed
        and no cursor has been committed yet.

        Returns:
            The committed cursor
        """
        if self._pending is not None:
            self._cursor = self._pending
        elif self._cursor is None:
            self._cursor = self._store.latest_signature()
        self._pending = None
        return self._cursor

    def discard(self) -> None:
        """Forget signatures observed for a page that did not finish."""
        self._pending = None
