import httpx
import pytest

from conftest import InMemoryGateway, make_row
from key_dashboard.client import KeysApiClient
from key_dashboard.config import ServerConfig
from key_dashboard.controller import DashboardController, KeyForm
from key_dashboard.errors import ApiRequestError
from key_dashboard.server import create_app


def _key(key_id: str, **overrides) -> dict:
    key = {
        "id": key_id,
        "label": f"key {key_id}",
        "prefix": "AB12CD",
        "createdAt": "2024-01-01T00:00:00+00:00",
        "lastUsed": None,
        "revoked": False,
        "keyType": "development",
        "limitEnabled": False,
        "monthlyLimit": None,
    }
    key.update(overrides)
    return key


class FakeClient:
    """Stands in for KeysApiClient; records payloads and can fail."""

    def __init__(self, keys: list[dict] | None = None):
        self.keys = list(keys or [])
        self.sent: list[tuple] = []
        self.error: Exception | None = None
        self._next = 0

    def _maybe_fail(self):
        if self.error is not None:
            raise self.error

    async def list_keys(self):
        self.sent.append(("list",))
        self._maybe_fail()
        return [dict(k) for k in self.keys]

    async def create_key(self, payload):
        self.sent.append(("create", payload))
        self._maybe_fail()
        self._next += 1
        record = _key(f"new-{self._next}", label=payload["label"], keyType=payload["keyType"],
                      limitEnabled=payload["limitEnabled"], monthlyLimit=payload["monthlyLimit"])
        self.keys.insert(0, record)
        return dict(record)

    async def update_key(self, key_id, payload, fallback="Save failed."):
        self.sent.append(("update", key_id, payload))
        self._maybe_fail()
        for k in self.keys:
            if k["id"] == key_id:
                k.update(payload)
                return dict(k)
        raise ApiRequestError("Failed to update API key.")

    async def delete_key(self, key_id):
        self.sent.append(("delete", key_id))
        self._maybe_fail()
        before = len(self.keys)
        self.keys = [k for k in self.keys if k["id"] != key_id]
        if len(self.keys) == before:
            raise ApiRequestError("Failed to delete API key.")


@pytest.fixture()
def client() -> FakeClient:
    return FakeClient([_key("a"), _key("b", revoked=True), _key("c")])


@pytest.fixture()
def controller(client: FakeClient) -> DashboardController:
    return DashboardController(client)


@pytest.mark.asyncio()
async def test_refresh_replaces_list(controller: DashboardController):
    controller.keys = [_key("stale")]
    await controller.refresh()

    assert [k["id"] for k in controller.keys] == ["a", "b", "c"]
    assert controller.loading is False
    assert controller.error is None
    assert controller.total_active == 2


@pytest.mark.asyncio()
async def test_refresh_failure_keeps_last_good_list(controller: DashboardController, client: FakeClient):
    await controller.refresh()
    client.error = ApiRequestError("Failed to load API keys.")

    await controller.refresh()

    assert controller.error == "Failed to load API keys."
    assert [k["id"] for k in controller.keys] == ["a", "b", "c"]
    assert controller.loading is False


@pytest.mark.asyncio()
async def test_refresh_failure_without_message(controller: DashboardController, client: FakeClient):
    client.error = ApiRequestError()
    await controller.refresh()
    assert controller.error == "Unexpected error fetching keys."


@pytest.mark.asyncio()
async def test_refresh_on_empty_list():
    controller = DashboardController(FakeClient())
    await controller.refresh()
    assert controller.keys == []
    assert controller.is_empty
    assert controller.total_active == 0


@pytest.mark.asyncio()
async def test_loading_flag_is_visible_during_refresh(client: FakeClient):
    seen = []
    controller = DashboardController(client)
    controller.on_change = lambda: seen.append(controller.loading)

    await controller.refresh()

    assert seen[0] is True
    assert seen[-1] is False


@pytest.mark.asyncio()
async def test_save_requires_label(controller: DashboardController, client: FakeClient):
    controller.open_create()
    controller.form.label = "   "

    assert await controller.save() is False
    assert client.sent == []
    assert controller.modal_open is True


@pytest.mark.asyncio()
async def test_create_prepends_and_closes_modal(controller: DashboardController, client: FakeClient):
    await controller.refresh()
    controller.open_create()
    controller.form.label = "  Prod Key "
    controller.form.key_type = "production"
    controller.form.limit_enabled = True
    controller.form.monthly_limit = "5000"

    assert await controller.save() is True

    assert client.sent[-1] == (
        "create",
        {"label": "Prod Key", "keyType": "production", "limitEnabled": True, "monthlyLimit": 5000},
    )
    assert controller.keys[0]["label"] == "Prod Key"
    assert len(controller.keys) == 4
    assert controller.action_message == "Key created successfully."
    assert controller.modal_open is False
    assert controller.form == KeyForm()


@pytest.mark.asyncio()
async def test_limit_toggle_off_sends_null(controller: DashboardController, client: FakeClient):
    controller.open_create()
    controller.form.label = "dev"
    controller.form.monthly_limit = "5000"

    await controller.save()

    assert client.sent[-1][1]["monthlyLimit"] is None
    assert client.sent[-1][1]["limitEnabled"] is False


@pytest.mark.asyncio()
async def test_update_replaces_in_place(controller: DashboardController, client: FakeClient):
    await controller.refresh()
    controller.open_edit(controller.keys[1])
    assert controller.form.label == "key b"
    assert controller.form.monthly_limit == "1000"
    controller.form.label = "renamed"

    assert await controller.save() is True

    assert client.sent[-1][0:2] == ("update", "b")
    assert [k["id"] for k in controller.keys] == ["a", "b", "c"]
    assert controller.keys[1]["label"] == "renamed"
    assert controller.action_message == "Key updated successfully."
    assert controller.editing is None


@pytest.mark.asyncio()
async def test_save_failure_keeps_modal_open(controller: DashboardController, client: FakeClient):
    await controller.refresh()
    controller.open_edit(controller.keys[0])
    controller.form.label = "renamed"
    client.error = ApiRequestError("Failed to update API key.")

    assert await controller.save() is False

    assert controller.action_message == "Failed to update API key."
    assert controller.modal_open is True
    assert controller.editing["id"] == "a"
    assert controller.keys[0]["label"] == "key a"
    assert controller.pending == 0


@pytest.mark.asyncio()
async def test_toggle_revoke(controller: DashboardController, client: FakeClient):
    await controller.refresh()

    assert await controller.toggle_revoke("a", True) is True
    assert client.sent[-1] == ("update", "a", {"revoked": True})
    assert controller.keys[0]["revoked"] is True
    assert controller.total_active == 1

    assert await controller.toggle_revoke("a", True) is True
    assert controller.keys[0]["revoked"] is True


@pytest.mark.asyncio()
async def test_toggle_revoke_failure_is_not_optimistic(controller: DashboardController, client: FakeClient):
    await controller.refresh()
    client.error = ApiRequestError("")

    assert await controller.toggle_revoke("a", True) is False

    assert controller.keys[0]["revoked"] is False
    assert controller.action_message == "Unable to update key status."


@pytest.mark.asyncio()
async def test_delete_removes_and_closes_open_modal(controller: DashboardController):
    await controller.refresh()
    controller.open_edit(controller.keys[2])

    assert await controller.delete("c") is True

    assert [k["id"] for k in controller.keys] == ["a", "b"]
    assert controller.modal_open is False
    assert controller.editing is None


@pytest.mark.asyncio()
async def test_delete_keeps_unrelated_modal_open(controller: DashboardController):
    await controller.refresh()
    controller.open_edit(controller.keys[0])

    await controller.delete("c")

    assert controller.modal_open is True
    assert controller.editing["id"] == "a"


@pytest.mark.asyncio()
async def test_delete_unknown_id_leaves_list(controller: DashboardController):
    await controller.refresh()

    assert await controller.delete("missing") is False

    assert [k["id"] for k in controller.keys] == ["a", "b", "c"]
    assert controller.action_message == "Failed to delete API key."


def test_dismiss_message(controller: DashboardController):
    controller.action_message = "Key created successfully."
    controller.dismiss_message()
    assert controller.action_message is None


def test_form_limit_parsing():
    assert KeyForm(limit_enabled=True, monthly_limit="250").monthly_limit_value() == 250
    assert KeyForm(limit_enabled=True, monthly_limit="2.5").monthly_limit_value() == 2.5
    assert KeyForm(limit_enabled=True, monthly_limit="lots").monthly_limit_value() is None
    assert KeyForm(limit_enabled=False, monthly_limit="250").monthly_limit_value() is None


@pytest.mark.asyncio()
async def test_against_running_service():
    gateway = InMemoryGateway([make_row(id="seed", limit_enabled=True, monthly_limit=5000)])
    app = create_app(gateway=gateway, config=ServerConfig())
    client = KeysApiClient("http://service", transport=httpx.ASGITransport(app=app))
    controller = DashboardController(client)

    await controller.refresh()
    assert [k["id"] for k in controller.keys] == ["seed"]

    controller.open_create()
    controller.form.label = "Prod Key"
    controller.form.key_type = "production"
    assert await controller.save() is True
    created = controller.keys[0]
    assert len(created["prefix"]) == 6
    assert created["revoked"] is False

    controller.open_edit(controller.find("seed"))
    controller.form.limit_enabled = False
    assert await controller.save() is True
    assert controller.find("seed")["monthlyLimit"] is None

    assert await controller.delete("missing") is False
    assert controller.action_message == "Failed to delete API key."
    assert len(controller.keys) == 2

    assert await controller.delete(created["id"]) is True
    assert [k["id"] for k in controller.keys] == ["seed"]
