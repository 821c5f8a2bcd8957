# ============================================================================
# Tests for the Evolution API client
# ============================================================================
"""Unit tests for EvolutionApiClient using httpx.MockTransport."""

import json

import httpx
import pytest

from reminder_engine.core.domain.exceptions import TransportError
from reminder_engine.infrastructure.messaging.evolution_client import EvolutionApiClient


def make_client(handler) -> EvolutionApiClient:
    return EvolutionApiClient(
        base_url="http://evolution.test/",
        api_key="secret",
        transport=httpx.MockTransport(handler),
    )


class TestSendText:
    """Tests for sendText."""

    @pytest.mark.asyncio
    async def test_send_returns_message_id(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["method"] = request.method
            captured["path"] = request.url.path
            captured["apikey"] = request.headers.get("apikey")
            captured["body"] = json.loads(request.content)
            return httpx.Response(201, json={"key": {"id": "BAE5F0", "fromMe": True}, "status": "PENDING"})

        client = make_client(handler)
        try:
            result = await client.send("clinic-main", "595981123456", "Hola")
        finally:
            await client.close()

        assert result.external_message_id == "BAE5F0"
        assert captured == {
            "method": "POST",
            "path": "/message/sendText/clinic-main",
            "apikey": "secret",
            "body": {"number": "595981123456", "text": "Hola"},
        }

    @pytest.mark.asyncio
    async def test_missing_message_id(self):
        client = make_client(lambda request: httpx.Response(200, json={"status": "PENDING"}))

        result = await client.send("clinic-main", "595981123456", "Hola")

        assert result.external_message_id is None
        await client.close()

    @pytest.mark.asyncio
    async def test_server_error_raises_transport_error(self):
        client = make_client(lambda request: httpx.Response(500, text="internal error"))

        with pytest.raises(TransportError) as exc_info:
            await client.send("clinic-main", "595981123456", "Hola")

        assert exc_info.value.status_code == 500
        await client.close()

    @pytest.mark.asyncio
    async def test_timeout_raises_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        client = make_client(handler)

        with pytest.raises(TransportError) as exc_info:
            await client.send("clinic-main", "595981123456", "Hola")

        assert "timeout" in exc_info.value.message
        await client.close()

    @pytest.mark.asyncio
    async def test_connection_error_raises_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client = make_client(handler)

        with pytest.raises(TransportError):
            await client.send("clinic-main", "595981123456", "Hola")
        await client.close()


class TestConnectionState:
    @pytest.mark.asyncio
    async def test_connection_state(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/instance/connectionState/clinic-main"
            return httpx.Response(200, json={"instance": {"instanceName": "clinic-main", "state": "open"}})

        client = make_client(handler)

        assert await client.connection_state("clinic-main") == "open"
        await client.close()

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        client = make_client(lambda request: httpx.Response(200, text="ok"))

        assert await client.connection_state("clinic-main") is None
        await client.close()


@pytest.mark.asyncio
async def test_close_is_idempotent():
    client = make_client(lambda request: httpx.Response(200, json={}))
    await client.connection_state("clinic-main")

    await client.close()
    await client.close()
