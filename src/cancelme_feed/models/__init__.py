"""SQLAlchemy models for device-local state."""

from .local_state import DeviceEntry

__all__ = ["DeviceEntry"]
