"""Device-local database session configuration."""

from __future__ import annotations

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from cancelme_feed.core.settings import settings


class Base(DeclarativeBase):
    """Declarative base shared by all device-local ORM models."""


def build_engine(url: str | None = None) -> Engine:
    """Create the engine backing device-local storage.

    In-memory SQLite URLs share a single connection so every session sees
    the same data.
    """
    url = url or settings.local_store_url
    if url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=settings.sql_debug,
        )
    return create_engine(url, echo=settings.sql_debug)


def build_sessionmaker(engine: Engine) -> sessionmaker[Session]:
    """Return a session factory bound to `engine`."""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


def create_tables(engine: Engine) -> None:
    """Create all device-local tables."""
    # Ensure model modules are imported so that metadata is populated.
    import cancelme_feed.models  # noqa: F401

    Base.metadata.create_all(bind=engine)


def drop_tables(engine: Engine) -> None:
    """Drop all device-local tables."""
    Base.metadata.drop_all(bind=engine)
