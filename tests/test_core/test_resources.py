"""
Tests for UniFi API Client REST resource adapter.
"""

import asyncio
import json

import httpx
import pytest
from pydantic import BaseModel, ConfigDict, Field

from unifi_api.core.cancellation import CancelToken
from unifi_api.core.exceptions import OperationCancelledError, ResourceNotFoundError, ValidationError

BASE = "/proxy/network/api/s/default/rest/networkconf"


class Network(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default="", alias="_id")
    name: str
    vlan: int | None = None


def ok(data):
    return httpx.Response(200, json={"meta": {"rc": "ok"}, "data": data})


@pytest.fixture
def networks(controller):
    """Register a small networkconf collection on the fake controller."""
    store = {
        "n1": {"_id": "n1", "name": "LAN"},
        "n2": {"_id": "n2", "name": "IoT", "vlan": 20},
    }
    controller.route("GET", BASE, handler=lambda request: ok(list(store.values())))

    def create(request):
        item = json.loads(request.content)
        item["_id"] = f"n{len(store) + 1}"
        store[item["_id"]] = item
        return ok([item])

    controller.route("POST", BASE, handler=create)

    for item_id in ("n1", "n2"):
        controller.route("GET", f"{BASE}/{item_id}", handler=lambda request, i=item_id: ok([store[i]]))

        def update(request, i=item_id):
            store[i] = json.loads(request.content)
            return ok([store[i]])

        controller.route("PUT", f"{BASE}/{item_id}", handler=update)
        controller.route("DELETE", f"{BASE}/{item_id}", handler=lambda request, i=item_id: ok([]))
    return store


@pytest.mark.asyncio
class TestRestResource:
    """Test CRUD over one collection."""

    async def test_list(self, client, networks):
        items = await client.resource("networkconf").list()
        assert [i["name"] for i in items] == ["LAN", "IoT"]

    async def test_list_with_model(self, client, networks):
        items = await client.resource("networkconf", model=Network).list()
        assert items[1].vlan == 20
        assert items[0].id == "n1"

    async def test_get(self, client, networks):
        item = await client.resource("networkconf").get("n2")
        assert item["name"] == "IoT"

    async def test_get_missing(self, client, networks):
        with pytest.raises(ResourceNotFoundError):
            await client.resource("networkconf").get("nope")

    async def test_get_requires_id(self, client):
        with pytest.raises(ValidationError):
            await client.resource("networkconf").get("")

    async def test_create(self, client, networks, controller):
        created = await client.resource("networkconf").create({"name": "Guest"})

        assert created["_id"] == "n3"
        post = controller.requests_to(BASE)[-1]
        assert post.headers["x-csrf-token"] == "csrf-1"

    async def test_update_sends_full_item(self, client, networks, controller):
        updated = await client.resource("networkconf").update({"_id": "n2", "name": "IoT", "vlan": 30})

        assert updated["vlan"] == 30
        put = controller.requests_to(f"{BASE}/n2")[-1]
        assert json.loads(put.content) == {"_id": "n2", "name": "IoT", "vlan": 30}

    async def test_update_model(self, client, networks, controller):
        resource = client.resource("networkconf", model=Network)

        updated = await resource.update(Network(_id="n1", name="Main"))

        assert updated.name == "Main"
        assert json.loads(controller.requests_to(f"{BASE}/n1")[-1].content) == {"_id": "n1", "name": "Main"}

    async def test_update_without_id(self, client):
        with pytest.raises(ValidationError):
            await client.resource("networkconf").update({"name": "orphan"})

    async def test_delete(self, client, networks, controller):
        await client.resource("networkconf").delete("n1")
        assert controller.requests_to(f"{BASE}/n1")[-1].method == "DELETE"

    async def test_other_site(self, client):
        assert client.resource("wlanconf", site="branch").path("w1") == \
            "/proxy/network/api/s/branch/rest/wlanconf/w1"

    async def test_invalid_site(self, client):
        with pytest.raises(ValidationError):
            client.resource("networkconf", site="../admin")


@pytest.mark.asyncio
class TestRestResourceBatch:
    """Test batch helpers over one collection."""

    async def test_batch_get_partial_failure(self, client, networks, controller):
        results = await client.resource("networkconf").batch_get(["n1", "missing", "n2"])

        assert results[0].item["name"] == "LAN"
        assert isinstance(results[1].error, ResourceNotFoundError)
        assert results[2].item["name"] == "IoT"
        # Concurrent first use still logs in once
        assert controller.login_attempts == 1

    async def test_batch_delete(self, client, networks):
        errors = await client.resource("networkconf").batch_delete(["n1", "missing"])

        assert errors[0] is None
        assert isinstance(errors[1], ResourceNotFoundError)

    async def test_batch_update(self, client, networks):
        results = await client.resource("networkconf").batch_update(
            [{"_id": "n1", "name": "A"}, {"name": "no id"}]
        )

        assert results[0].item["name"] == "A"
        assert isinstance(results[1].error, ValidationError)

    async def test_batch_create(self, client, networks):
        results = await client.resource("networkconf").batch_create([{"name": "X"}, {"name": "Y"}])

        assert all(r.ok for r in results)
        assert {r.item["_id"] for r in results} == {"n3", "n4"}

    async def test_cancelled_batch_over_slow_login_releases_session_lock(self, client, networks, controller):
        controller.login_delay = 0.3

        results = await client.resource("networkconf").batch_get(
            list("abcde"), cancel=CancelToken.with_timeout(0.05)
        )

        assert all(isinstance(r.error, OperationCancelledError) for r in results)
        await asyncio.sleep(0.5)
        assert not client.auth._lock.locked()

        controller.login_delay = 0.0
        session = await asyncio.wait_for(client.auth.login(), 2)
        assert client.auth.session is session
