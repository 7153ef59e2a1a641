"""
Per-workspace maintenance cache.

Records when expensive per-workspace maintenance (board agent sync) last ran
so it is skipped until the entry goes stale. Entries expire after
``ttl_seconds``; ``invalidate`` forces the next run. The clock is injectable
so tests can move time forward.
"""

import time
from threading import Lock

DEFAULT_TTL_SECONDS = 3600


class MaintenanceCache:
    """Thread-safe map: workspace_id → last maintenance timestamp."""

    def __init__(self, ttl_seconds: int = DEFAULT_TTL_SECONDS, clock=time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, float] = {}
        self._lock = Lock()

    def is_fresh(self, workspace_id: str) -> bool:
        with self._lock:
            marked_at = self._entries.get(workspace_id)
            if marked_at is None:
                return False
            if self._clock() - marked_at >= self.ttl_seconds:
                del self._entries[workspace_id]
                return False
            return True

    def mark(self, workspace_id: str) -> None:
        with self._lock:
            self._entries[workspace_id] = self._clock()

    def invalidate(self, workspace_id: str | None = None) -> None:
        """Drop one workspace entry, or every entry when no id is given."""
        with self._lock:
            if workspace_id is None:
                self._entries.clear()
            else:
                self._entries.pop(workspace_id, None)

    def __len__(self):
        with self._lock:
            return len(self._entries)
