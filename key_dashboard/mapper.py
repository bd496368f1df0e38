"""Translation between ``api_keys`` rows and the external record shape.

Rows use snake_case columns, the HTTP API and the dashboard use camelCase.
Rows are parsed into ``ApiKeyRecord`` on the way out so a malformed row is
caught at the boundary instead of leaking into responses.
"""

from __future__ import annotations

import math
import uuid
from enum import Enum
from typing import Any, Mapping

import pydantic
from pydantic import BaseModel, ConfigDict, field_validator

from key_dashboard.errors import BackendError

# external name -> column name
COLUMNS: dict[str, str] = {
    "id": "id",
    "label": "label",
    "prefix": "prefix",
    "createdAt": "created_at",
    "lastUsed": "last_used",
    "revoked": "revoked",
    "keyType": "key_type",
    "limitEnabled": "limit_enabled",
    "monthlyLimit": "monthly_limit",
}


class KeyType(str, Enum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class ApiKeyRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    prefix: str
    created_at: str
    last_used: str | None = None
    revoked: bool = False
    key_type: KeyType
    limit_enabled: bool = False
    monthly_limit: int | float | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_text(cls, value: Any) -> Any:
        # bigint and uuid primary keys are both exposed as strings
        if isinstance(value, (int, uuid.UUID)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("created_at", "last_used", mode="before")
    @classmethod
    def _timestamp_as_text(cls, value: Any) -> Any:
        if value is not None and hasattr(value, "isoformat"):
            return value.isoformat()
        return value


def monthly_limit_for(limit_enabled: Any, monthly_limit: Any) -> int | float | None:
    """Stored limit: the supplied number when the limit is on, else ``None``."""
    if limit_enabled is not True:
        return None
    if isinstance(monthly_limit, bool):
        return None
    if isinstance(monthly_limit, int):
        return monthly_limit
    if isinstance(monthly_limit, float):
        # NaN and infinities have no JSON form
        if not math.isfinite(monthly_limit):
            return None
        return int(monthly_limit) if monthly_limit.is_integer() else monthly_limit
    return None


def from_row(row: Mapping[str, Any]) -> ApiKeyRecord:
    """Parse a stored row, raising ``BackendError`` if it breaks the schema."""
    if not isinstance(row, Mapping):
        raise BackendError(
            f"Malformed api_keys row: expected a mapping, got {type(row).__name__}"
        )
    try:
        return ApiKeyRecord.model_validate(
            {column: row[column] for column in COLUMNS.values() if column in row}
        )
    except (pydantic.ValidationError, TypeError) as exc:
        raise BackendError(f"Malformed api_keys row: {exc}") from exc


def to_external(record: ApiKeyRecord) -> dict[str, Any]:
    values = record.model_dump(mode="json")
    return {name: values[column] for name, column in COLUMNS.items()}


def to_columns(values: Mapping[str, Any]) -> dict[str, Any]:
    """Rename external field names to column names, dropping unknown keys."""
    result: dict[str, Any] = {}
    for name, value in values.items():
        column = COLUMNS.get(name)
        if column is not None:
            result[column] = value
    return result
