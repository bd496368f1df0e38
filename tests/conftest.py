from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from key_dashboard.backends import Gateway
from key_dashboard.errors import BackendError, RecordNotFoundError


class InMemoryGateway(Gateway):
    """Gateway fake backed by a list of rows."""

    name = "memory"

    def __init__(self, rows: list[dict[str, Any]] | None = None):
        self.rows: list[dict[str, Any]] = list(rows or [])
        self.calls: list[tuple[str, tuple]] = []
        self.fail_with: Exception | None = None
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def _check(self, op: str, *args: Any) -> None:
        self.calls.append((op, args))
        if self.fail_with is not None:
            raise self.fail_with

    @property
    def writes(self) -> list[tuple[str, tuple]]:
        return [call for call in self.calls if call[0] != "list_all"]

    async def insert(self, row: dict[str, Any]) -> dict[str, Any]:
        self._check("insert", row)
        self._clock += timedelta(seconds=1)
        stored = {
            "id": str(uuid.uuid4()),
            "created_at": self._clock.isoformat(),
            "last_used": None,
            **row,
        }
        self.rows.append(stored)
        return dict(stored)

    async def update_by_id(self, key_id: str, partial: dict[str, Any]) -> dict[str, Any]:
        self._check("update_by_id", key_id, partial)
        for row in self.rows:
            if row["id"] == key_id:
                row.update(partial)
                return dict(row)
        raise RecordNotFoundError(f"No api_keys row with id {key_id}")

    async def delete_by_id(self, key_id: str) -> None:
        self._check("delete_by_id", key_id)
        before = len(self.rows)
        self.rows = [row for row in self.rows if row["id"] != key_id]
        if len(self.rows) == before:
            raise RecordNotFoundError(f"No api_keys row with id {key_id}")

    async def list_all(self) -> list[dict[str, Any]]:
        self._check("list_all")
        return sorted(
            (dict(row) for row in self.rows), key=lambda r: r["created_at"], reverse=True
        )


def make_row(**overrides: Any) -> dict[str, Any]:
    row = {
        "id": "key-1",
        "label": "CI Pipeline",
        "prefix": "AB12CD",
        "created_at": "2024-01-01T00:00:00+00:00",
        "last_used": None,
        "revoked": False,
        "key_type": "development",
        "limit_enabled": False,
        "monthly_limit": None,
    }
    row.update(overrides)
    return row


@pytest.fixture()
def gateway() -> InMemoryGateway:
    return InMemoryGateway()


@pytest.fixture()
def failing_gateway() -> InMemoryGateway:
    gw = InMemoryGateway([make_row()])
    gw.fail_with = BackendError("duplicate key value violates unique constraint")
    return gw
