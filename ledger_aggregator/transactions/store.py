"""
In-memory record store.

Maps transaction signatures to their details for the lifetime of the
process. One lock guards every operation, so the ingestion loop (writer)
and request handlers (readers) never observe a half-applied insert.
"""

import threading
from datetime import date
from typing import Dict, List, Optional

from ledger_aggregator.transactions.models import TransactionDetail


class RecordStore:
    """Signature -> TransactionDetail mapping, insertion ordered."""

    def __init__(self):
        self._records: Dict[str, TransactionDetail] = {}
        self._lock = threading.Lock()

    def insert(self, signature: str, detail: TransactionDetail) -> bool:
        """
        Store a record, replacing any previous value for the signature.

        Returns:
            True if the signature was not present before
        """
        with self._lock:
            is_new = signature not in self._records
            self._records[signature] = detail
            return is_new

    def get(self, signature: str) -> Optional[TransactionDetail]:
        with self._lock:
            return self._records.get(signature)

    def scan_by_day(self, day: date) -> List[TransactionDetail]:
        """Return every record whose timestamp falls on the given UTC day."""
        with self._lock:
            return [
                detail for detail in self._records.values() if detail.utc_date() == day
            ]

    def latest_signature(self) -> Optional[str]:
        """Most recently inserted signature, or None if the store is empty."""
        with self._lock:
            if not self._records:
                return None
            return next(reversed(self._records))

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, signature: object) -> bool:
        with self._lock:
            return signature in self._records


# Global store instance
_store_instance: Optional[RecordStore] = None


def get_record_store() -> RecordStore:
    """
    Get or create the global record store.

    Returns:
        RecordStore singleton
    """
    global _store_instance
    if _store_instance is None:
        _store_instance = RecordStore()
    return _store_instance
