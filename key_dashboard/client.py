"""HTTP client the dashboard uses to reach the key service."""

from __future__ import annotations

from typing import Any

import httpx

from key_dashboard.errors import ApiRequestError


def _record(body: dict[str, Any], fallback: str) -> dict:
    data = body.get("data")
    if not isinstance(data, dict):
        raise ApiRequestError(fallback)
    return data


class KeysApiClient:
    """REST client for the ``/keys`` endpoints."""

    name = "HTTP"

    def __init__(
        self,
        base_url: str,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @property
    def display_info(self) -> str:
        return self.base_url

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def _call(
        self,
        method: str,
        path: str,
        fallback: str,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                r = await client.request(method, url, json=json, headers=self._headers())
        except httpx.HTTPError as e:
            raise ApiRequestError(f"{fallback} ({e.__class__.__name__})") from e

        try:
            body = r.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            raise ApiRequestError(fallback)
        if r.is_error:
            raise ApiRequestError(str(body.get("error") or fallback))
        return body

    async def list_keys(self) -> list[dict]:
        body = await self._call("GET", "/keys", "Unable to fetch keys.")
        data = body.get("data")
        if data is None:
            return []
        if not isinstance(data, list) or not all(isinstance(key, dict) for key in data):
            raise ApiRequestError("Unable to fetch keys.")
        return data

    async def create_key(self, payload: dict[str, Any]) -> dict:
        body = await self._call("POST", "/keys", "Save failed.", json=payload)
        return _record(body, "Save failed.")

    async def update_key(
        self, key_id: str, payload: dict[str, Any], fallback: str = "Save failed."
    ) -> dict:
        body = await self._call("PATCH", f"/keys/{key_id}", fallback, json=payload)
        return _record(body, fallback)

    async def delete_key(self, key_id: str) -> None:
        await self._call("DELETE", f"/keys/{key_id}", "Delete failed.")
