"""
Change tracker for transient row highlighting.

Keeps, per (token id, field), the value seen right before the latest
mutation and when it was recorded. Entries are only meaningful inside the
highlight window; after that they read as absent. Token ids repeat across
categories, so callers key by change_key(category, id).

Cleanup strategy (same as a rolling trade window):
1. O(1) record/lookup through a dict keyed by (id, field)
2. Insertion-ordered deque of (timestamp, key) for amortized expiry
3. A deque entry whose key was re-recorded later is skipped, not deleted
"""

from __future__ import annotations

from collections import deque

from ..types import Category, ChangeRecord

# Highlight window in milliseconds
DEFAULT_WINDOW_MS = 500.0


def change_key(category: Category, token_id: str) -> str:
    """Tracker id of a token. Ids are only unique within a category."""
    return f"{Category(category).value}:{token_id}"


class ChangeTracker:
    """
    Latest previous value per (token id, field), with expiry.

    Thread-safety: NOT thread-safe. Designed for single-threaded async use.
    """

    __slots__ = ('_records', '_order')

    def __init__(self) -> None:
        self._records: dict[tuple[str, str], ChangeRecord] = {}
        self._order: deque[tuple[float, tuple[str, str]]] = deque()

    def record_previous(self, token_id: str, field: str, value: float, now_ms: float) -> None:
        """Store value as the previous value of (token_id, field), replacing any older entry."""
        key = (token_id, field)
        self._records[key] = ChangeRecord(value, now_ms)
        self._order.append((now_ms, key))

    def get(self, token_id: str, field: str) -> float | None:
        """Previous value, or None. Does not look at expiry."""
        record = self._records.get((token_id, field))
        return record.value if record is not None else None

    def get_record(self, token_id: str, field: str) -> ChangeRecord | None:
        return self._records.get((token_id, field))

    def is_recent(self, token_id: str, field: str, now_ms: float, window_ms: float) -> bool:
        """True iff an entry exists and was recorded less than window_ms ago."""
        record = self._records.get((token_id, field))
        if record is None:
            return False
        return now_ms - record.timestamp_ms < window_ms

    def recent_value(
        self, token_id: str, field: str, now_ms: float, window_ms: float
    ) -> float | None:
        """Previous value if still inside the window, else None."""
        record = self._records.get((token_id, field))
        if record is None or now_ms - record.timestamp_ms >= window_ms:
            return None
        return record.value

    def purge_expired(self, now_ms: float, window_ms: float) -> int:
        """
        Drop entries older than the window.

        Amortized O(k) where k = number of expired deque entries.
        Returns number of records removed.
        """
        cutoff_ms = now_ms - window_ms
        removed = 0

        while self._order and self._order[0][0] <= cutoff_ms:
            ts_ms, key = self._order.popleft()
            record = self._records.get(key)
            # Re-recorded keys have a newer timestamp and stay
            if record is not None and record.timestamp_ms == ts_ms:
                del self._records[key]
                removed += 1

        return removed

    def clear(self) -> None:
        """Clear all change records."""
        self._records.clear()
        self._order.clear()

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, key: tuple[str, str]) -> bool:
        return key in self._records
