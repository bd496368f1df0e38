"""In-memory state behind the dashboard.

The controller mirrors the server's key list and only changes it once the
service has confirmed an operation. Every failure is turned into a message
and the last good list is kept. Operations may overlap; whichever response
arrives last decides the cached record.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from key_dashboard.client import KeysApiClient
from key_dashboard.errors import KeyDashboardError
from key_dashboard.mapper import KeyType

DEFAULT_MONTHLY_LIMIT = "1000"


@dataclass
class KeyForm:
    """Draft values of the create/edit modal."""

    label: str = ""
    key_type: str = KeyType.DEVELOPMENT.value
    limit_enabled: bool = False
    monthly_limit: str = DEFAULT_MONTHLY_LIMIT

    def monthly_limit_value(self) -> int | float | None:
        """Numeric limit to send, or ``None`` when off or not a number."""
        if not self.limit_enabled:
            return None
        raw = self.monthly_limit.strip()
        try:
            return int(raw)
        except ValueError:
            pass
        try:
            return float(raw)
        except ValueError:
            return None

    def payload(self) -> dict[str, Any]:
        return {
            "label": self.label.strip(),
            "keyType": self.key_type,
            "limitEnabled": self.limit_enabled,
            "monthlyLimit": self.monthly_limit_value(),
        }


def _message(exc: Exception, fallback: str) -> str:
    return str(exc) or fallback


class DashboardController:
    def __init__(
        self,
        client: KeysApiClient,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self.client = client
        self.on_change = on_change
        self.keys: list[dict] = []
        self.loading = False
        self.pending = 0
        self.error: str | None = None
        self.action_message: str | None = None
        self.modal_open = False
        self.editing: dict | None = None
        self.form = KeyForm()

    # ── Derived state ───────────────────────────────────────

    @property
    def total_active(self) -> int:
        return sum(1 for key in self.keys if not key.get("revoked"))

    @property
    def is_empty(self) -> bool:
        return not self.loading and not self.keys

    def find(self, key_id: str) -> dict | None:
        for key in self.keys:
            if key.get("id") == key_id:
                return key
        return None

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change()

    def _replace(self, record: dict) -> None:
        self.keys = [record if key.get("id") == record.get("id") else key for key in self.keys]

    # ── Modal state ─────────────────────────────────────────

    def open_create(self) -> None:
        self.editing = None
        self.form = KeyForm()
        self.modal_open = True
        self._changed()

    def open_edit(self, key: dict) -> None:
        self.editing = key
        limit = key.get("monthlyLimit")
        self.form = KeyForm(
            label=key.get("label") or "",
            key_type=key.get("keyType") or KeyType.DEVELOPMENT.value,
            limit_enabled=bool(key.get("limitEnabled")),
            monthly_limit=str(limit) if limit is not None else DEFAULT_MONTHLY_LIMIT,
        )
        self.modal_open = True
        self._changed()

    def reset_modal(self) -> None:
        self.editing = None
        self.form = KeyForm()
        self.modal_open = False
        self._changed()

    @property
    def can_save(self) -> bool:
        return bool(self.form.label.strip())

    def dismiss_message(self) -> None:
        self.action_message = None
        self._changed()

    # ── Operations ──────────────────────────────────────────

    async def refresh(self) -> None:
        self.loading = True
        self._changed()
        try:
            self.keys = await self.client.list_keys()
            self.error = None
        except KeyDashboardError as e:
            self.error = _message(e, "Unexpected error fetching keys.")
        finally:
            self.loading = False
            self._changed()

    async def save(self) -> bool:
        """Create or update from the form. Returns True on success."""
        if not self.can_save:
            return False

        editing = self.editing
        payload = self.form.payload()
        self.pending += 1
        self._changed()
        try:
            if editing:
                record = await self.client.update_key(editing["id"], payload)
                self._replace(record)
            else:
                record = await self.client.create_key(payload)
                self.keys = [record, *self.keys]
        except KeyDashboardError as e:
            self.action_message = _message(e, "Unable to save key.")
            return False
        finally:
            self.pending -= 1
            self._changed()

        self.action_message = (
            "Key updated successfully." if editing else "Key created successfully."
        )
        self.reset_modal()
        return True

    async def toggle_revoke(self, key_id: str, next_state: bool) -> bool:
        self.pending += 1
        self._changed()
        try:
            record = await self.client.update_key(
                key_id, {"revoked": next_state}, fallback="Revoke failed."
            )
            self._replace(record)
        except KeyDashboardError as e:
            self.action_message = _message(e, "Unable to update key status.")
            return False
        finally:
            self.pending -= 1
            self._changed()
        return True

    async def delete(self, key_id: str) -> bool:
        self.pending += 1
        self._changed()
        try:
            await self.client.delete_key(key_id)
            self.keys = [key for key in self.keys if key.get("id") != key_id]
        except KeyDashboardError as e:
            self.action_message = _message(e, "Unable to delete key.")
            return False
        finally:
            self.pending -= 1
            self._changed()

        if self.editing is not None and self.editing.get("id") == key_id:
            self.reset_modal()
        return True
