"""Tests for settings parsing and the database maintenance helpers."""

import pytest

from dealroom.core.settings import Settings
from dealroom.scripts.ensure_db import normalize_to_psycopg, split_db_url


def test_csv_cors_origins(monkeypatch) -> None:
    monkeypatch.setenv("CORS_ORIGINS", "https://app.example.com, https://admin.example.com")
    monkeypatch.setenv("DEFAULT_CURRENCY", "usd")
    configured = Settings()
    assert configured.cors_origins == ["https://app.example.com", "https://admin.example.com"]
    assert configured.default_currency == "USD"


def test_sync_url_swaps_async_driver(monkeypatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "postgresql+asyncpg://app@db/dealroom")
    assert Settings().database_url_sync == "postgresql+psycopg://app@db/dealroom"


def test_test_database_override(monkeypatch) -> None:
    monkeypatch.setenv("TEST_DATABASE_URL", "sqlite:///./test.db")
    monkeypatch.setenv("USE_TEST_DATABASE", "true")
    assert Settings().effective_database_url == "sqlite:///./test.db"


def test_split_db_url_targets_maintenance_database() -> None:
    admin_url, target = split_db_url("postgresql+psycopg://app:pw@db:5432/dealroom")
    assert admin_url == "postgresql://app:pw@db:5432/postgres"
    assert target == "dealroom"


def test_non_postgres_urls_are_refused() -> None:
    with pytest.raises(ValueError):
        normalize_to_psycopg("sqlite:///./dealroom.db")


def test_json_list_env_values_still_work(monkeypatch) -> None:
    monkeypatch.setenv("CORS_ALLOW_METHODS", '["GET", "POST"]')
    assert Settings().cors_allow_methods == ["GET", "POST"]
