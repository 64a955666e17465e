"""Tests for environment-driven settings."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from tabula import Database, get_naming
from tabula.settings import TabulaSettings, get_settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in (
        "TABULA_DATABASE_URL",
        "TABULA_DB_NAME",
        "TABULA_CONNECTION_LIMIT",
        "TABULA_LOG_SQL",
        "TABULA_LOG_LEVEL",
        "TABULA_LOG_FORMAT",
        "TABULA_ID_FIELD",
    ):
        monkeypatch.delenv(key, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestDefaults:
    def test_defaults(self):
        s = TabulaSettings(_env_file=None)
        assert s.database_url == "sqlite:///:memory:"
        assert s.connection_limit == 0
        assert s.log_sql is False
        assert s.log_level == "INFO"
        assert s.json_logs is None
        assert s.id_field == "id"


class TestEnvironment:
    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("TABULA_DATABASE_URL", "postgres://u@db/app")
        monkeypatch.setenv("TABULA_CONNECTION_LIMIT", "4")
        monkeypatch.setenv("TABULA_LOG_SQL", "true")
        monkeypatch.setenv("TABULA_LOG_LEVEL", "debug")
        monkeypatch.setenv("TABULA_LOG_FORMAT", "json")
        s = TabulaSettings(_env_file=None)
        assert s.database_url == "postgres://u@db/app"
        assert s.connection_limit == 4
        assert s.log_sql is True
        assert s.log_level == "DEBUG"
        assert s.json_logs is True

    def test_get_settings_is_cached(self, monkeypatch):
        monkeypatch.setenv("TABULA_DB_NAME", "first")
        first = get_settings()
        monkeypatch.setenv("TABULA_DB_NAME", "second")
        assert get_settings() is first
        assert first.db_name == "first"

    @pytest.mark.parametrize(
        "key,value",
        [
            ("TABULA_LOG_LEVEL", "loud"),
            ("TABULA_CONNECTION_LIMIT", "-1"),
            ("TABULA_LOG_FORMAT", "xml"),
        ],
    )
    def test_invalid_values(self, monkeypatch, key, value):
        monkeypatch.setenv(key, value)
        with pytest.raises(ValidationError):
            TabulaSettings(_env_file=None)


class TestDatabaseFromSettings:
    def test_builds_database(self, monkeypatch, restore_naming):
        configured = []
        monkeypatch.setattr(
            "tabula.database.configure_logging",
            lambda **kwargs: configured.append(kwargs),
        )
        settings = TabulaSettings(
            _env_file=None,
            database_url="sqlite:///:memory:",
            db_name="app_test",
            connection_limit=2,
            log_sql=True,
            log_format="console",
            id_field="key",
        )
        db = Database.from_settings(settings)
        try:
            assert db.dialect.name == "sqlite"
            assert db.db_name == "app_test"
            assert db.limiter.limit == 2
            assert db.log_sql is True
            assert get_naming().id_field == "key"
            assert configured == [{"level": "INFO", "json_format": False}]
        finally:
            db.close()
