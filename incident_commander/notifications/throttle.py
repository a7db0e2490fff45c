"""In-memory direct-message throttle keyed by (recipient, incident)."""

import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DirectMessageThrottle:
    """Rolling-window throttle shared by every routing pass in the process.

    A single lock guards the whole map. Entries are never evicted; the
    window is checked lazily on lookup, so the map grows with the number of
    (recipient, incident) pairs seen until the process restarts.
    """

    def __init__(self, window_seconds: int = 300, clock: Optional[Callable[[], datetime]] = None):
        self.window = timedelta(seconds=window_seconds)
        self._clock = clock or _utcnow
        self._last_sent: dict[tuple[str, str], datetime] = {}
        self._lock = threading.Lock()

    def should_send(self, recipient: str, incident_id: str) -> bool:
        """Claim the window for this pair. Returns False if it is already claimed."""
        key = (recipient, incident_id)
        with self._lock:
            now = self._clock()
            last_sent = self._last_sent.get(key)
            if last_sent is not None and now - last_sent < self.window:
                return False
            self._last_sent[key] = now
            return True

    def last_sent(self, recipient: str, incident_id: str) -> Optional[datetime]:
        with self._lock:
            return self._last_sent.get((recipient, incident_id))

    def __len__(self) -> int:
        with self._lock:
            return len(self._last_sent)
