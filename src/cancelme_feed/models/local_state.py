# src/cancelme_feed/models/local_state.py
"""Key/value rows for state that never leaves the device."""

from datetime import datetime

from sqlalchemy import DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column

from cancelme_feed.db.session import Base
from cancelme_feed.db.time import utcnow


class DeviceEntry(Base):
    """One device-scoped value, stored as JSON text.

    Holds rate-limit ledgers, already-reacted markers, the reporter
    fingerprint and user preferences. None of it is synchronized remotely.
    """

    __tablename__ = "device_entry"

    # Namespaced key, e.g. "ratelimit:comments:global" or "reacted:<post>:lol".
    key: Mapped[str] = mapped_column(Text, primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )
