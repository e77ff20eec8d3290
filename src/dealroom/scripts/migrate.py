# src/dealroom/scripts/migrate.py
"""Run Alembic migrations against the configured database."""
from __future__ import annotations

import argparse
from pathlib import Path

from alembic import command
from alembic.config import Config

from dealroom.core.settings import settings

PROJECT_ROOT = Path(__file__).resolve().parents[3]


def build_config(url: str | None = None) -> Config:
    """Return an Alembic config pointing at the project's ``migrations`` folder."""
    cfg = Config(str(PROJECT_ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(PROJECT_ROOT / "migrations"))
    # Alembic runs synchronously, so always hand it the psycopg URL.
    cfg.set_main_option("sqlalchemy.url", url or settings.database_url_sync)
    return cfg


def run_upgrade(revision: str = "head", url: str | None = None) -> None:
    command.upgrade(build_config(url), revision)


def run_downgrade(revision: str, url: str | None = None) -> None:
    command.downgrade(build_config(url), revision)


def main() -> None:
    parser = argparse.ArgumentParser(description="Apply or roll back Dealroom migrations")
    parser.add_argument("direction", choices=["upgrade", "downgrade"], nargs="?", default="upgrade")
    parser.add_argument("revision", nargs="?", default=None)
    parser.add_argument("--url", default=None, help="Override the database URL")
    args = parser.parse_args()

    if args.direction == "upgrade":
        run_upgrade(args.revision or "head", args.url)
    else:
        run_downgrade(args.revision or "-1", args.url)


if __name__ == "__main__":
    main()
