"""Local event ledger: timestamp lists keyed by scope."""
from __future__ import annotations

from cancelme_feed.repositories.local_store import LocalStore

LEDGER_PREFIX = "ratelimit:"


def prune_window(timestamps: list[int], now: int, window_ms: int) -> list[int]:
    """Return the timestamps strictly younger than `window_ms` relative to `now`."""
    return [ts for ts in timestamps if now - ts < window_ms]


class EventLedger:
    """Append/prune timestamp sequences persisted in device-local storage.

    Scopes are created lazily on the first write.
    """

    def __init__(self, store: LocalStore) -> None:
        self._store = store

    @staticmethod
    def _key(scope: str) -> str:
        return f"{LEDGER_PREFIX}{scope}"

    def read(self, scope: str) -> list[int]:
        """Return the stored timestamps, ignoring anything that is not a number."""
        raw = self._store.get_json(self._key(scope), [])
        if not isinstance(raw, list):
            return []
        return [
            int(item)
            for item in raw
            if isinstance(item, int | float) and not isinstance(item, bool)
        ]

    def write(self, scope: str, timestamps: list[int]) -> None:
        self._store.set_json(self._key(scope), list(timestamps))

    def prune(self, scope: str, now: int, window_ms: int) -> list[int]:
        """Return the scope's timestamps within the window, without persisting."""
        return prune_window(self.read(scope), now, window_ms)

    def append(self, scope: str, timestamp: int, now: int, window_ms: int) -> list[int]:
        """Prune, append `timestamp`, persist and return the new sequence."""
        events = self.prune(scope, now, window_ms)
        events.append(timestamp)
        self.write(scope, events)
        return events

    def scopes(self) -> list[str]:
        """Return every scope with a stored sequence."""
        return [key[len(LEDGER_PREFIX):] for key in self._store.keys(LEDGER_PREFIX)]
