"""CRUD handlers for key records.

Each handler validates its input, delegates to the gateway through the
record mapper and returns a ``HandlerResult`` holding the status code and
JSON envelope. Backend failures are logged here and replaced by a generic
message; the caller never sees the underlying error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from key_dashboard.backends import Gateway
from key_dashboard.errors import (
    BackendError,
    ConfigurationError,
    RecordNotFoundError,
    ValidationError,
)
from key_dashboard.keygen import generate_key_prefix
from key_dashboard.mapper import KeyType, from_row, monthly_limit_for, to_columns, to_external

logger = logging.getLogger(__name__)

LABEL_AND_TYPE_REQUIRED = "Label and keyType are required."
NO_UPDATES = "No updates were provided."
BODY_NOT_OBJECT = "Request body must be a JSON object."


@dataclass(frozen=True)
class HandlerResult:
    status_code: int
    body: dict[str, Any]


def _key_type(value: Any) -> KeyType:
    try:
        return KeyType(value)
    except ValueError:
        allowed = ", ".join(t.value for t in KeyType)
        raise ValidationError(f"keyType must be one of: {allowed}.") from None


def _require_object(payload: Any) -> dict[str, Any]:
    if not isinstance(payload, dict):
        raise ValidationError(BODY_NOT_OBJECT)
    return payload


@dataclass(frozen=True)
class KeyPatch:
    """Sparse update. ``provided`` names the fields the caller sent."""

    label: str | None = None
    revoked: bool | None = None
    key_type: KeyType | None = None
    limit_enabled: bool | None = None
    monthly_limit: int | float | None = None
    provided: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def from_payload(cls, payload: Any) -> KeyPatch:
        body = _require_object(payload)
        values: dict[str, Any] = {}

        label = body.get("label")
        if isinstance(label, str):
            values["label"] = label.strip()
        if isinstance(body.get("revoked"), bool):
            values["revoked"] = body["revoked"]
        if isinstance(body.get("keyType"), str):
            values["key_type"] = _key_type(body["keyType"])
        if isinstance(body.get("limitEnabled"), bool):
            values["limit_enabled"] = body["limitEnabled"]
            # monthly_limit is only ever written together with limit_enabled
            values["monthly_limit"] = monthly_limit_for(
                body["limitEnabled"], body.get("monthlyLimit")
            )

        if not values:
            raise ValidationError(NO_UPDATES)
        return cls(provided=frozenset(values), **values)

    def to_row(self) -> dict[str, Any]:
        external = {
            "label": self.label,
            "revoked": self.revoked,
            "keyType": self.key_type.value if self.key_type else None,
            "limitEnabled": self.limit_enabled,
            "monthlyLimit": self.monthly_limit,
        }
        row = to_columns(external)
        return {column: value for column, value in row.items() if column in self.provided}


def build_new_row(payload: Any) -> dict[str, Any]:
    """Validate a create payload and return the row to insert."""
    body = _require_object(payload)
    label = body.get("label")
    key_type = body.get("keyType")
    if not label or not key_type:
        raise ValidationError(LABEL_AND_TYPE_REQUIRED)
    if not isinstance(label, str) or not label.strip():
        raise ValidationError(LABEL_AND_TYPE_REQUIRED)

    limit_enabled = body.get("limitEnabled") is True
    return to_columns(
        {
            "label": label.strip(),
            "prefix": generate_key_prefix(),
            "keyType": _key_type(key_type).value,
            "revoked": False,
            "limitEnabled": limit_enabled,
            "monthlyLimit": monthly_limit_for(limit_enabled, body.get("monthlyLimit")),
        }
    )


class KeyHandlers:
    """The four key operations on top of a gateway."""

    def __init__(self, gateway: Gateway):
        self.gateway = gateway

    @staticmethod
    def _client_error(exc: ValidationError) -> HandlerResult:
        return HandlerResult(400, {"error": str(exc)})

    @staticmethod
    def _server_error(operation: str, message: str, exc: Exception) -> HandlerResult:
        if isinstance(exc, ConfigurationError):
            logger.error("%s failed: backend not configured: %s", operation, exc)
        elif isinstance(exc, RecordNotFoundError):
            logger.error("%s failed: %s", operation, exc)
        else:
            logger.error("%s failed", operation, exc_info=exc)
        return HandlerResult(500, {"error": message})

    async def list_keys(self) -> HandlerResult:
        try:
            rows = await self.gateway.list_all()
            data = [to_external(from_row(row)) for row in rows or []]
        except (BackendError, ConfigurationError) as e:
            return self._server_error("GET /keys", "Failed to load API keys.", e)
        return HandlerResult(200, {"data": data})

    async def create_key(self, payload: Any) -> HandlerResult:
        try:
            row = build_new_row(payload)
        except ValidationError as e:
            return self._client_error(e)

        try:
            stored = await self.gateway.insert(row)
            record = from_row(stored)
        except (BackendError, ConfigurationError) as e:
            return self._server_error("POST /keys", "Failed to create API key.", e)
        logger.info("Created key %s (%s)", record.id, record.prefix)
        return HandlerResult(201, {"data": to_external(record)})

    async def update_key(self, key_id: str, payload: Any) -> HandlerResult:
        try:
            patch = KeyPatch.from_payload(payload)
        except ValidationError as e:
            return self._client_error(e)

        try:
            stored = await self.gateway.update_by_id(key_id, patch.to_row())
            record = from_row(stored)
        except (BackendError, ConfigurationError) as e:
            return self._server_error("PATCH /keys/:id", "Failed to update API key.", e)
        logger.info("Updated key %s (%s)", key_id, ", ".join(sorted(patch.provided)))
        return HandlerResult(200, {"data": to_external(record)})

    async def delete_key(self, key_id: str) -> HandlerResult:
        try:
            await self.gateway.delete_by_id(key_id)
        except (BackendError, ConfigurationError) as e:
            return self._server_error("DELETE /keys/:id", "Failed to delete API key.", e)
        logger.info("Deleted key %s", key_id)
        return HandlerResult(200, {"success": True})
