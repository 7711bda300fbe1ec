"""Last-known-good candidate per (scenario, segment), with a TTL."""

import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional, Tuple

# 30 minutes
DEFAULT_LKG_TTL_SECONDS = 1800.0


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class LastKnownGoodCache:
    def __init__(
        self,
        ttl_seconds: float = DEFAULT_LKG_TTL_SECONDS,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock or utc_now
        self._lock = threading.Lock()
        self._entries: Dict[Tuple[str, str], Tuple[str, datetime]] = {}

    def get(self, scenario: str, segment_key: str) -> Optional[str]:
        """Candidate id, or None when nothing was recorded or the entry expired."""
        with self._lock:
            entry = self._entries.get((scenario, segment_key))
            if entry is None:
                return None
            candidate_id, stored_at = entry
            if self._clock() - stored_at > self.ttl:
                del self._entries[(scenario, segment_key)]
                return None
            return candidate_id

    def set(self, scenario: str, segment_key: str, candidate_id: str) -> None:
        with self._lock:
            self._entries[(scenario, segment_key)] = (candidate_id, self._clock())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
