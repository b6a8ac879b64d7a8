# src/file_uploader/ledger.py

"""
Process-wide record of file messages that have already been picked up.

Slack sends one ``file_shared`` event per attached file and redelivers events
it considers unacknowledged, so the same message can arrive many times. The
ledger admits each message timestamp once per process lifetime. Entries are
written before any work starts and are never removed: a crash mid-batch does
not cause the batch to be repeated. This is at-most-once, not exactly-once.

The ledger also drops events whose own timestamp is older than the staleness
window, so replays of archived events are ignored.
"""

import logging
import math
import time

from .config import STALENESS_WINDOW_SECONDS

logger = logging.getLogger(__name__)


class EventAdmissionLedger:
    """In-memory admission set. Safe on a single event loop; not thread-safe."""

    def __init__(self, staleness_window_seconds: int = STALENESS_WINDOW_SECONDS):
        self._staleness_window_seconds = staleness_window_seconds
        self._admitted: set[str] = set()

    def __len__(self) -> int:
        return len(self._admitted)

    def is_stale(self, event_ts: str, now: float | None = None) -> bool:
        """
        True when *event_ts* (Slack epoch seconds, e.g. ``"1700000000.000100"``)
        is more than the staleness window in the past. Unparseable timestamps
        count as stale.
        """
        try:
            event_time = float(event_ts)
            if not math.isfinite(event_time):
                raise ValueError(event_ts)
        except (TypeError, ValueError):
            logger.warning("Unparseable event timestamp", extra={"event_ts": event_ts})
            return True
        current_time = time.time() if now is None else now
        return (current_time - event_time) > self._staleness_window_seconds

    def is_admitted(self, key: str) -> bool:
        return key in self._admitted

    def admit(self, key: str) -> None:
        self._admitted.add(key)

    def try_admit(self, key: str) -> bool:
        """
        Admit *key* unless it is already present. Returns False for a key that
        was admitted before.

        Membership test and insert happen without an await in between, which
        makes this atomic on a single event loop.
        """
        if key in self._admitted:
            return False
        self._admitted.add(key)
        return True
