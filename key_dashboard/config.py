"""Environment-derived settings.

Each program builds its settings once at start-up (after ``load_dotenv()``)
and hands them to the objects that need them. Missing backend credentials
never stop the process; the gateway refuses each call instead.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from key_dashboard.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_TABLE = "api_keys"
DEFAULT_TIMEOUT = 15.0


def _env(*names: str) -> str:
    """Return the first non-empty environment value among ``names``."""
    for name in names:
        value = os.environ.get(name, "").strip()
        if value:
            return value
    return ""


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r", name, raw)
        return default


@dataclass(frozen=True)
class GatewayConfig:
    """Credentials for the hosted ``api_keys`` table."""

    supabase_url: str = ""
    service_key: str = ""
    table: str = DEFAULT_TABLE
    timeout: float = DEFAULT_TIMEOUT

    @classmethod
    def from_env(cls) -> GatewayConfig:
        config = cls(
            supabase_url=_env("SUPABASE_URL", "NEXT_PUBLIC_SUPABASE_URL"),
            service_key=_env("SUPABASE_SERVICE_ROLE_KEY"),
            timeout=_env_float("SUPABASE_TIMEOUT", DEFAULT_TIMEOUT),
        )
        if not config.is_complete:
            logger.warning(
                "Supabase environment variables are not fully configured "
                "(missing: %s). API key CRUD will fail until they are set.",
                ", ".join(config.missing),
            )
        return config

    @property
    def missing(self) -> list[str]:
        names = []
        if not self.supabase_url:
            names.append("SUPABASE_URL")
        if not self.service_key:
            names.append("SUPABASE_SERVICE_ROLE_KEY")
        return names

    @property
    def is_complete(self) -> bool:
        return not self.missing

    def require(self) -> None:
        """Raise ``ConfigurationError`` unless both credentials are present."""
        if self.missing:
            raise ConfigurationError(
                "Missing Supabase configuration variables: " + ", ".join(self.missing)
            )


def database_dsn() -> str:
    """Connection string for direct PostgreSQL access, or ``""``."""
    return _env("DATABASE_URL", "SUPABASE_DB_URL")


@dataclass(frozen=True)
class DashboardConfig:
    api_url: str = "http://localhost:8000"
    refresh_interval: float = 0.0
    timeout: float = DEFAULT_TIMEOUT

    @classmethod
    def from_env(cls) -> DashboardConfig:
        return cls(
            api_url=_env("KEYS_API_URL") or cls.api_url,
            refresh_interval=_env_float("KEYS_REFRESH_SECONDS", 0.0),
            timeout=_env_float("KEYS_API_TIMEOUT", DEFAULT_TIMEOUT),
        )


@dataclass(frozen=True)
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "INFO"
    cors_origins: tuple[str, ...] = ()

    @classmethod
    def from_env(cls) -> ServerConfig:
        raw_port = _env("PORT")
        try:
            port = int(raw_port) if raw_port else cls.port
        except ValueError:
            logger.warning("Ignoring non-numeric PORT=%r", raw_port)
            port = cls.port
        origins = _env("CORS_ALLOW_ORIGINS")
        return cls(
            host=_env("HOST") or cls.host,
            port=port,
            log_level=(_env("LOG_LEVEL") or cls.log_level).upper(),
            cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
        )
