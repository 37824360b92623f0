"""Key/value persistence surface for device-local state."""
from __future__ import annotations

import json
import logging
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, sessionmaker

from cancelme_feed.models.local_state import DeviceEntry

__all__ = ["LocalStore"]

logger = logging.getLogger(__name__)


class LocalStore:
    """Thin wrapper around the device database for JSON values.

    Every call opens and commits its own short session, so a read followed by
    a write never interleaves with another coroutine: the calls are
    synchronous.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        """Initialize the store with a SQLAlchemy session factory."""
        self._session_factory = session_factory

    def get_json(self, key: str, default: Any = None) -> Any:
        """Return the decoded value for `key`, or `default` if absent or corrupt."""
        with self._session_factory() as db:
            entry = db.get(DeviceEntry, key)
            if entry is None:
                return default
            raw = entry.value
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Discarding corrupt device entry %s", key)
            return default

    def set_json(self, key: str, value: Any) -> None:
        """Store `value` under `key`, replacing any previous value."""
        encoded = json.dumps(value)
        with self._session_factory() as db:
            entry = db.get(DeviceEntry, key)
            if entry is None:
                db.add(DeviceEntry(key=key, value=encoded))
            else:
                entry.value = encoded
            db.commit()

    def delete(self, key: str) -> None:
        """Remove `key` if present."""
        with self._session_factory() as db:
            db.execute(delete(DeviceEntry).where(DeviceEntry.key == key))
            db.commit()

    def keys(self, prefix: str = "") -> list[str]:
        """Return stored keys starting with `prefix`."""
        with self._session_factory() as db:
            result = db.execute(
                select(DeviceEntry.key)
                .where(DeviceEntry.key.startswith(prefix, autoescape=True))
                .order_by(DeviceEntry.key)
            )
            return list(result.scalars())
