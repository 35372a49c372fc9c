"""Process-local cache of the latest session id per channel."""

import threading
from typing import Optional


class LatestSessionCache:
    """Last-writer-wins ``channel -> session_id`` map.

    Best-effort only: entries may be stale or missing (e.g. after a
    restart), and callers re-derive the latest session from the store.
    """

    def __init__(self) -> None:
        self._entries: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, channel: str) -> Optional[str]:
        with self._lock:
            return self._entries.get(channel)

    def set(self, channel: str, session_id: str) -> None:
        with self._lock:
            self._entries[channel] = session_id

    def discard(self, channel: str, session_id: Optional[str] = None) -> None:
        """Drop the entry for ``channel``.

        With ``session_id`` given, only drops it if it still points there,
        so a concurrent newer write is not lost.
        """
        with self._lock:
            if session_id is None or self._entries.get(channel) == session_id:
                self._entries.pop(channel, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
