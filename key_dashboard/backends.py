"""Persistence gateways for the ``api_keys`` table.

Two gateways:
  - SupabaseGateway: PostgREST over HTTPS using the service-role key (default)
  - PostgresGateway: Direct PostgreSQL for bootstrap/admin flows

Both speak in rows (snake_case dicts) and raise ``BackendError`` on failure.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from datetime import datetime
from typing import Any

import httpx

from key_dashboard.config import GatewayConfig, database_dsn
from key_dashboard.errors import BackendError, RecordNotFoundError

logger = logging.getLogger(__name__)

# Columns a caller may write; everything else is assigned by the database.
WRITABLE_COLUMNS = (
    "label",
    "prefix",
    "revoked",
    "key_type",
    "limit_enabled",
    "monthly_limit",
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _fmt_dt(dt: Any) -> str | None:
    """Format a datetime value (or passthrough strings / None)."""
    if dt is None:
        return None
    if isinstance(dt, str):
        return dt
    return dt.isoformat()


def _writable(row: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in row.items() if k in WRITABLE_COLUMNS}


# ---------------------------------------------------------------------------
# Abstract gateway
# ---------------------------------------------------------------------------


class Gateway:
    """Abstract gateway over the hosted ``api_keys`` table."""

    name: str = "unknown"

    @property
    def display_info(self) -> str:
        return self.name

    async def insert(self, row: dict[str, Any]) -> dict[str, Any]:
        raise NotImplementedError

    async def update_by_id(self, key_id: str, partial: dict[str, Any]) -> dict[str, Any]:
        raise NotImplementedError

    async def delete_by_id(self, key_id: str) -> None:
        raise NotImplementedError

    async def list_all(self) -> list[dict[str, Any]]:
        """All rows, newest ``created_at`` first."""
        raise NotImplementedError

    async def health_check(self) -> bool:
        """Return True if the table is reachable."""
        try:
            await self.list_all()
            return True
        except Exception:
            return False


# ---------------------------------------------------------------------------
# Supabase (PostgREST) gateway
# ---------------------------------------------------------------------------


class SupabaseGateway(Gateway):
    """Table access through the Supabase REST endpoint."""

    name = "Supabase"

    def __init__(self, config: GatewayConfig, transport: httpx.AsyncBaseTransport | None = None):
        self.config = config
        self._transport = transport

    @property
    def display_info(self) -> str:
        return self.config.supabase_url or "not configured"

    @property
    def table_url(self) -> str:
        return f"{self.config.supabase_url.rstrip('/')}/rest/v1/{self.config.table}"

    def _headers(self) -> dict[str, str]:
        return {
            "apikey": self.config.service_key,
            "Authorization": f"Bearer {self.config.service_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Prefer": "return=representation",
        }

    async def _request(
        self,
        method: str,
        params: dict[str, str],
        json: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        # Credentials are checked on every call, before any request goes out.
        self.config.require()
        try:
            async with httpx.AsyncClient(
                timeout=self.config.timeout, transport=self._transport
            ) as client:
                r = await client.request(
                    method,
                    self.table_url,
                    params=params,
                    json=json,
                    headers=self._headers(),
                )
                r.raise_for_status()
                body = r.json() if r.content else []
        except httpx.HTTPStatusError as e:
            raise BackendError(
                f"{method} {self.config.table} returned {e.response.status_code}: "
                f"{e.response.text[:200]}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise BackendError(f"{method} {self.config.table} failed: {e}") from e
        if not isinstance(body, list):
            raise BackendError(f"{method} {self.config.table} returned a non-list body")
        return body

    async def insert(self, row: dict[str, Any]) -> dict[str, Any]:
        rows = await self._request("POST", {"select": "*"}, json=_writable(row))
        if not rows:
            raise BackendError("Insert returned no row")
        return rows[0]

    async def update_by_id(self, key_id: str, partial: dict[str, Any]) -> dict[str, Any]:
        rows = await self._request(
            "PATCH", {"id": f"eq.{key_id}", "select": "*"}, json=_writable(partial)
        )
        if not rows:
            raise RecordNotFoundError(f"No api_keys row with id {key_id}")
        return rows[0]

    async def delete_by_id(self, key_id: str) -> None:
        rows = await self._request("DELETE", {"id": f"eq.{key_id}", "select": "id"})
        if not rows:
            raise RecordNotFoundError(f"No api_keys row with id {key_id}")

    async def list_all(self) -> list[dict[str, Any]]:
        return await self._request("GET", {"select": "*", "order": "created_at.desc"})


# ---------------------------------------------------------------------------
# Database gateway
# ---------------------------------------------------------------------------


class PostgresGateway(Gateway):
    """Direct PostgreSQL gateway for admin flows."""

    name = "DB"

    def __init__(self, connection_string: str, table: str = "api_keys"):
        self.dsn = connection_string
        self.table = table
        self._conn: Any = None
        self._conn_lock = threading.Lock()
        self.provider = "supabase" if "supabase" in connection_string.lower() else "postgres"

    @property
    def display_info(self) -> str:
        return f"{self.provider}"

    # psycopg2 blocks, so every statement runs in a worker thread.

    def _get_conn(self) -> Any:
        with self._conn_lock:
            if self._conn is None or self._conn.closed:
                import psycopg2

                self._conn = psycopg2.connect(self.dsn)
                self._conn.autocommit = True
            return self._conn

    def _execute(self, query: str, params: tuple) -> list[dict[str, Any]]:
        conn = self._get_conn()
        with conn.cursor() as cur:
            cur.execute(query, params)
            cols = [d[0] for d in cur.description]
            return [self._normalize(dict(zip(cols, row))) for row in cur.fetchall()]

    async def _fetch(self, query: str, params: tuple = ()) -> list[dict[str, Any]]:
        import psycopg2

        try:
            return await asyncio.to_thread(self._execute, query, params)
        except psycopg2.Error as e:
            raise BackendError(f"{self.table} query failed: {e}") from e

    @staticmethod
    def _normalize(d: dict[str, Any]) -> dict[str, Any]:
        if "id" in d:
            d["id"] = str(d["id"])
        for col in ("created_at", "last_used"):
            if isinstance(d.get(col), datetime):
                d[col] = _fmt_dt(d[col])
        return d

    async def insert(self, row: dict[str, Any]) -> dict[str, Any]:
        values = _writable(row)
        cols = ", ".join(values)
        placeholders = ", ".join(["%s"] * len(values))
        rows = await self._fetch(
            f"INSERT INTO {self.table} ({cols}) VALUES ({placeholders}) RETURNING *",
            tuple(values.values()),
        )
        if not rows:
            raise BackendError("Insert returned no row")
        return rows[0]

    async def update_by_id(self, key_id: str, partial: dict[str, Any]) -> dict[str, Any]:
        values = _writable(partial)
        if not values:
            raise BackendError("Update with no writable columns")
        assignments = ", ".join(f"{col} = %s" for col in values)
        rows = await self._fetch(
            f"UPDATE {self.table} SET {assignments} WHERE id::text = %s RETURNING *",
            (*values.values(), key_id),
        )
        if not rows:
            raise RecordNotFoundError(f"No {self.table} row with id {key_id}")
        return rows[0]

    async def delete_by_id(self, key_id: str) -> None:
        rows = await self._fetch(
            f"DELETE FROM {self.table} WHERE id::text = %s RETURNING id",
            (key_id,),
        )
        if not rows:
            raise RecordNotFoundError(f"No {self.table} row with id {key_id}")

    async def list_all(self) -> list[dict[str, Any]]:
        return await self._fetch(f"SELECT * FROM {self.table} ORDER BY created_at DESC")

    async def health_check(self) -> bool:
        try:
            await self._fetch("SELECT 1")
            return True
        except BackendError:
            return False


# ---------------------------------------------------------------------------
# Factory helpers
# ---------------------------------------------------------------------------


def gateway_from_env(config: GatewayConfig | None = None) -> Gateway:
    """Pick a gateway from the environment.

    Supabase wins when its credentials are complete, then a direct DSN.
    Otherwise the returned Supabase gateway raises ``ConfigurationError``
    on every call.
    """
    config = config or GatewayConfig.from_env()
    if config.is_complete:
        return SupabaseGateway(config)

    dsn = database_dsn()
    if dsn:
        logger.info("Using direct PostgreSQL gateway")
        return PostgresGateway(dsn, table=config.table)

    return SupabaseGateway(config)
