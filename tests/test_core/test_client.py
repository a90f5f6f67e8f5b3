"""
Tests for UniFi API Client - client facade.

This module tests the connection lifecycle, envelope decoding and the
optional retry layer of UniFiClient.
"""

import httpx
import pytest

from unifi_api.core.client import UniFiClient
from unifi_api.core.exceptions import (
    AlreadyExistsError,
    AlreadyConnectedError,
    AuthenticationError,
    ConfigurationError,
    InvalidRequestError,
    ServerError,
)
from unifi_api.core.messages import Request
from unifi_api.core.models import ClientConfig, RetrySettings
from unifi_api.core.retry import RetryingTransport, RetryPolicy


DEVICES = "/proxy/network/api/s/default/stat/device"


def envelope(data=None, rc="ok", msg=None):
    meta = {"rc": rc}
    if msg:
        meta["msg"] = msg
    return {"meta": meta, "data": data or []}


class TestClientInit:
    """Test client construction."""

    def test_requires_client_config(self):
        with pytest.raises(ConfigurationError):
            UniFiClient({"host": "192.168.1.1"})

    def test_no_retry_by_default(self, client_config):
        client = UniFiClient(client_config)
        assert client.retry_policy is None
        assert client.executor is client.auth

    def test_retry_from_config(self, client_config):
        config = client_config.model_copy(update={"retry": RetrySettings(max_retries=2)})
        client = UniFiClient(config)
        assert isinstance(client.executor, RetryingTransport)
        assert client.retry_policy.max_retries == 2

    def test_explicit_policy_wins(self, client_config):
        client = UniFiClient(client_config, retry_policy=RetryPolicy(max_retries=7))
        assert client.executor.policy.max_retries == 7


@pytest.mark.asyncio
class TestClientLifecycle:
    """Test connect and disconnect."""

    async def test_connect_and_disconnect(self, client, controller):
        await client.connect()
        assert client.is_connected
        assert controller.login_count == 1

        await client.disconnect()
        assert not client.is_connected
        assert controller.logout_count == 1
        assert client.transport.closed

    async def test_connect_twice(self, client):
        await client.connect()
        with pytest.raises(AlreadyConnectedError):
            await client.connect()

    async def test_connect_bad_credentials(self, controller):
        config = ClientConfig(host="192.168.1.1", username="admin", password="wrong", verify_ssl=False)
        client = UniFiClient(config, http_transport=controller.transport())

        with pytest.raises(AuthenticationError):
            await client.connect()
        assert not client.is_connected
        await client.disconnect()

    async def test_disconnect_is_safe_when_never_connected(self, client, controller):
        await client.disconnect()
        await client.disconnect()
        assert controller.requests == []

    async def test_async_context_manager(self, client_config, controller):
        async with UniFiClient(client_config, http_transport=controller.transport()) as client:
            assert client.is_connected

        assert controller.logout_count == 1


@pytest.mark.asyncio
class TestClientRequests:
    """Test request helpers."""

    async def test_request_decodes_envelope(self, client, controller):
        controller.route("GET", DEVICES, json=envelope([{"mac": "aa:bb"}, {"mac": "cc:dd"}]))

        result = await client.request(Request("GET", DEVICES))

        assert result.ok
        assert [d["mac"] for d in result.data] == ["aa:bb", "cc:dd"]

    async def test_call_shortcut(self, client, controller):
        controller.route("POST", "/proxy/network/api/s/default/cmd/devmgr", json=envelope())

        result = await client.call("POST", "/proxy/network/api/s/default/cmd/devmgr",
                                   body={"cmd": "restart", "mac": "aa:bb"})

        assert result.data == []
        sent = controller.requests_to("/proxy/network/api/s/default/cmd/devmgr")[0]
        assert sent.headers["x-csrf-token"] == "csrf-1"

    async def test_error_rc_raises(self, client, controller):
        controller.route("GET", DEVICES, json=envelope(rc="error", msg="api.err.Invalid"))

        with pytest.raises(InvalidRequestError) as exc_info:
            await client.request(Request("GET", DEVICES))

        assert exc_info.value.rc == "error"

    async def test_conflict(self, client, controller):
        controller.route("POST", DEVICES, status=409, json=envelope(rc="error", msg="api.err.Exists"))

        with pytest.raises(AlreadyExistsError):
            await client.call("POST", DEVICES, body={})

    async def test_server_error_not_retried_by_default(self, client, controller):
        controller.route("GET", DEVICES, status=502, json={})

        with pytest.raises(ServerError):
            await client.call("GET", DEVICES)

        assert len(controller.requests_to(DEVICES)) == 1

    async def test_server_error_retried_when_enabled(self, client_config, controller):
        responses = [httpx.Response(502, json={}), httpx.Response(502, json={}),
                     httpx.Response(200, json=envelope([{"ok": True}]))]
        controller.route("GET", DEVICES, handler=lambda request: responses.pop(0))
        policy = RetryPolicy(max_retries=3, initial_backoff=0.0, max_backoff=0.0)
        client = UniFiClient(client_config, retry_policy=policy, http_transport=controller.transport())

        result = await client.call("GET", DEVICES)
        await client.disconnect()

        assert result.data == [{"ok": True}]
        assert len(controller.requests_to(DEVICES)) == 3
        assert controller.login_count == 1

    async def test_resource_defaults_to_configured_site(self, client):
        resource = client.resource("networkconf")
        assert resource.path() == "/proxy/network/api/s/default/rest/networkconf"
