import logging

import pytest

from key_dashboard.config import DashboardConfig, GatewayConfig, ServerConfig, database_dsn
from key_dashboard.errors import ConfigurationError

ENV_NAMES = (
    "SUPABASE_URL",
    "NEXT_PUBLIC_SUPABASE_URL",
    "SUPABASE_SERVICE_ROLE_KEY",
    "SUPABASE_TIMEOUT",
    "DATABASE_URL",
    "SUPABASE_DB_URL",
    "KEYS_API_URL",
    "KEYS_REFRESH_SECONDS",
    "KEYS_API_TIMEOUT",
    "HOST",
    "PORT",
    "LOG_LEVEL",
    "CORS_ALLOW_ORIGINS",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


def test_gateway_config_reads_public_url_fallback(monkeypatch):
    monkeypatch.setenv("NEXT_PUBLIC_SUPABASE_URL", "https://project.supabase.co")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "service-role")
    monkeypatch.setenv("SUPABASE_TIMEOUT", "3")

    config = GatewayConfig.from_env()

    assert config.supabase_url == "https://project.supabase.co"
    assert config.timeout == 3.0
    assert config.is_complete
    config.require()


def test_gateway_config_missing_is_reported(caplog):
    with caplog.at_level(logging.WARNING, logger="key_dashboard.config"):
        config = GatewayConfig.from_env()

    assert config.missing == ["SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY"]
    assert "not fully configured" in caplog.text
    with pytest.raises(ConfigurationError, match="SUPABASE_SERVICE_ROLE_KEY"):
        config.require()


def test_database_dsn(monkeypatch):
    assert database_dsn() == ""
    monkeypatch.setenv("SUPABASE_DB_URL", "postgresql://db.project.supabase.co/postgres")
    assert database_dsn().startswith("postgresql://")


def test_dashboard_config(monkeypatch):
    assert DashboardConfig.from_env() == DashboardConfig()

    monkeypatch.setenv("KEYS_API_URL", "http://keys.internal:9000")
    monkeypatch.setenv("KEYS_REFRESH_SECONDS", "often")
    config = DashboardConfig.from_env()
    assert config.api_url == "http://keys.internal:9000"
    assert config.refresh_interval == 0.0


def test_server_config(monkeypatch):
    monkeypatch.setenv("PORT", "9001")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("CORS_ALLOW_ORIGINS", "http://localhost:3000, ,https://app.example.com")

    config = ServerConfig.from_env()

    assert config.port == 9001
    assert config.log_level == "DEBUG"
    assert config.cors_origins == ("http://localhost:3000", "https://app.example.com")


def test_server_config_bad_port(monkeypatch):
    monkeypatch.setenv("PORT", "eighty")
    assert ServerConfig.from_env().port == 8000
