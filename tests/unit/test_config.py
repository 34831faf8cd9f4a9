# tests/unit/test_config.py
from __future__ import annotations

import pytest

from serialstock.core.config import AppSettings, normalize_async_dsn


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("postgres://u:p@h:5432/db", "postgresql+psycopg://u:p@h:5432/db"),
        ("postgresql://u:p@h/db", "postgresql+psycopg://u:p@h/db"),
        ("postgresql+asyncpg://u:p@h/db", "postgresql+psycopg://u:p@h/db"),
        ("postgresql+psycopg://u:p@h/db", "postgresql+psycopg://u:p@h/db"),
        ("sqlite:///./x.db", "sqlite+aiosqlite:///./x.db"),
        ("sqlite+aiosqlite://", "sqlite+aiosqlite://"),
        ('"postgresql://u:p@h/db"', "postgresql+psycopg://u:p@h/db"),
        ("  sqlite:///:memory:  ", "sqlite+aiosqlite:///:memory:"),
    ],
)
def test_normalize_async_dsn(raw, expected):
    assert normalize_async_dsn(raw) == expected


def test_settings_read_prefixed_env(monkeypatch):
    monkeypatch.setenv("SERIALSTOCK_DATABASE_URL", "postgres://u:p@db/stock")
    monkeypatch.setenv("SERIALSTOCK_TX_MAX_RETRIES", "5")
    monkeypatch.setenv("SERIALSTOCK_LOG_LEVEL", "DEBUG")

    s = AppSettings()
    assert s.DATABASE_URL == "postgresql+psycopg://u:p@db/stock"
    assert s.TX_MAX_RETRIES == 5
    assert s.LOG_LEVEL == "DEBUG"
    assert s.TX_ISOLATION_LEVEL == "SERIALIZABLE"
    assert s.is_sqlite is False


def test_settings_reject_negative_retries(monkeypatch):
    monkeypatch.setenv("SERIALSTOCK_TX_MAX_RETRIES", "-1")
    with pytest.raises(ValueError):
        AppSettings()
