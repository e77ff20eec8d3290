"""Create the configured Postgres database when it does not exist yet."""
from __future__ import annotations

import argparse
import logging
import sys
from urllib.parse import urlsplit, urlunsplit

import psycopg
from psycopg import sql

from dealroom.core.settings import settings

logger = logging.getLogger(__name__)


def normalize_to_psycopg(uri: str) -> str:
    """Return a Postgres URI suitable for ``psycopg.connect()``.

    SQLAlchemy driver suffixes (``postgresql+psycopg``) are stripped and
    surrounding quotes removed.
    """
    uri = (uri or "").strip().strip("'\"")
    if not uri:
        raise ValueError("DATABASE_URL is empty")

    parts = urlsplit(uri)
    scheme = parts.scheme
    if scheme.startswith("postgresql+"):
        scheme = "postgresql"
    if scheme != "postgresql":
        raise ValueError(f"Not a Postgres URL: {uri!r}")
    return urlunsplit((scheme, parts.netloc, parts.path, parts.query, parts.fragment))


def split_db_url(db_url: str) -> tuple[str, str]:
    """Return ``(maintenance_url, target_db)`` for ``db_url``."""
    parts = urlsplit(normalize_to_psycopg(db_url))
    target_db = parts.path.lstrip("/") or "postgres"
    if parts.netloc:
        admin_url = urlunsplit(("postgresql", parts.netloc, "/postgres", parts.query, ""))
    else:
        admin_url = "postgresql:///postgres"
    return admin_url, target_db


def ensure_database_exists(db_url: str) -> bool:
    """Create the database named in ``db_url``; return True if it was created."""
    admin_url, target_db = split_db_url(db_url)
    with psycopg.connect(admin_url, autocommit=True) as conn, conn.cursor() as cur:
        cur.execute("SELECT 1 FROM pg_database WHERE datname = %s", (target_db,))
        if cur.fetchone() is not None:
            logger.info("Database %s already exists", target_db)
            return False
        cur.execute(sql.SQL("CREATE DATABASE {}").format(sql.Identifier(target_db)))
    logger.info("Created database %s", target_db)
    return True


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="[ensure_db] %(message)s")
    parser = argparse.ArgumentParser(description="Ensure the configured database exists")
    parser.add_argument(
        "--url",
        default=None,
        help="Override database URL (defaults to the effective settings URL)",
    )
    args = parser.parse_args()

    try:
        ensure_database_exists(args.url or settings.effective_database_url)
    except (ValueError, psycopg.Error) as exc:
        logger.error("%s", exc)
        sys.exit(1)


if __name__ == "__main__":
    main()
