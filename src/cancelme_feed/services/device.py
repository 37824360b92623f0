"""Device-scoped bookkeeping: fingerprint, display name, theme, reaction markers.

This is a best-effort anonymous identity, not an authentication mechanism.
"""
from __future__ import annotations

import uuid
from typing import Literal

from cancelme_feed.repositories.local_store import LocalStore
from cancelme_feed.schemas.post import ReactionKind

FINGERPRINT_KEY = "device:fingerprint"
DISPLAY_NAME_KEY = "device:display_name"
THEME_KEY = "device:theme"

Theme = Literal["light", "dark"]


class DeviceProfile:
    """Preferences and markers persisted in device-local storage."""

    def __init__(self, store: LocalStore) -> None:
        self._store = store

    def fingerprint(self) -> str:
        """Return the stable reporter fingerprint, creating it on first use."""
        value = self._store.get_json(FINGERPRINT_KEY)
        if not isinstance(value, str) or not value:
            value = str(uuid.uuid4())
            self._store.set_json(FINGERPRINT_KEY, value)
        return value

    @property
    def display_name(self) -> str | None:
        value = self._store.get_json(DISPLAY_NAME_KEY)
        return value if isinstance(value, str) and value else None

    def set_display_name(self, name: str | None) -> str | None:
        """Store a trimmed display name; an empty one clears it."""
        cleaned = (name or "").strip()
        if not cleaned:
            self._store.delete(DISPLAY_NAME_KEY)
            return None
        self._store.set_json(DISPLAY_NAME_KEY, cleaned)
        return cleaned

    @property
    def theme(self) -> Theme | None:
        value = self._store.get_json(THEME_KEY)
        return value if value in ("light", "dark") else None

    def set_theme(self, theme: Theme) -> None:
        if theme not in ("light", "dark"):
            raise ValueError(f"Unknown theme {theme!r}")
        self._store.set_json(THEME_KEY, theme)

    def toggle_theme(self) -> Theme:
        """Flip between light and dark, treating an unset theme as light."""
        theme: Theme = "light" if self.theme == "dark" else "dark"
        self.set_theme(theme)
        return theme

    # --- Already-reacted markers -------------------------------------------------
    @staticmethod
    def _reacted_key(post_id: str, kind: ReactionKind) -> str:
        return f"reacted:{post_id}:{ReactionKind(kind).value}"

    def has_reacted(self, post_id: str, kind: ReactionKind) -> bool:
        return bool(self._store.get_json(self._reacted_key(post_id, kind), False))

    def mark_reacted(self, post_id: str, kind: ReactionKind) -> None:
        self._store.set_json(self._reacted_key(post_id, kind), True)

    def clear_reacted(self, post_id: str, kind: ReactionKind) -> None:
        self._store.delete(self._reacted_key(post_id, kind))
