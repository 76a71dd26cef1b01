"""Replay detection for accepted message identifiers."""

import heapq
import threading
import time
from datetime import datetime, timezone
from typing import Callable, Optional


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ReplayCache:
    """Remembers message IDs for as long as their message could still pass
    the timestamp check.

    That is ``max_age_seconds`` after the ID was first seen, extended by
    however far the message timestamp lies in the future. Expiry is tracked
    on the monotonic ``clock``; ``wall_clock`` is only read to measure how far
    ahead a timestamp is.
    """

    def __init__(
        self,
        max_age_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._max_age_seconds = max(0.0, float(max_age_seconds))
        self._clock = clock
        self._wall_clock = wall_clock
        self._lock = threading.Lock()
        self._expiry: dict[str, float] = {}
        self._heap: list[tuple[float, str]] = []

    def _evict_expired(self, now: float) -> None:
        while self._heap and self._heap[0][0] <= now:
            expires_at, message_id = heapq.heappop(self._heap)
            if self._expiry.get(message_id) == expires_at:
                del self._expiry[message_id]

    def _lifetime(self, sent_at: Optional[datetime]) -> float:
        lifetime = self._max_age_seconds
        if sent_at is not None:
            lead = (sent_at - self._wall_clock()).total_seconds()
            lifetime += max(0.0, lead)
        return lifetime

    def check_and_insert(
        self, message_id: str, sent_at: Optional[datetime] = None
    ) -> bool:
        """Record ``message_id`` and return True when it was already present.

        ``sent_at`` is the message timestamp, when known.
        """
        with self._lock:
            now = self._clock()
            self._evict_expired(now)
            if message_id in self._expiry:
                return True
            expires_at = now + self._lifetime(sent_at)
            self._expiry[message_id] = expires_at
            heapq.heappush(self._heap, (expires_at, message_id))
            return False

    def __contains__(self, message_id: object) -> bool:
        with self._lock:
            self._evict_expired(self._clock())
            return message_id in self._expiry

    def __len__(self) -> int:
        with self._lock:
            self._evict_expired(self._clock())
            return len(self._expiry)
