"""Engine and session factory for the configured database."""

from __future__ import annotations

from collections.abc import Generator
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from dealroom.core.settings import settings


class Base(DeclarativeBase):
    """Declarative base shared by all ORM models."""


# Model modules must be imported so Alembic and create_all see every table.
import dealroom.models  # noqa: E402,F401


def engine_options(url: str) -> dict[str, Any]:
    """Return ``create_engine`` keyword arguments suited to ``url``'s backend."""
    options: dict[str, Any] = {"echo": settings.sql_debug}
    if make_url(url).get_backend_name() == "sqlite":
        # Request handlers run in a threadpool; SQLite would reject cross-thread use.
        options["connect_args"] = {"check_same_thread": False}
    else:
        options["pool_pre_ping"] = True
    return options


engine = create_engine(settings.effective_database_url, **engine_options(settings.effective_database_url))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Yield a request-scoped session; services commit or roll back themselves."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
