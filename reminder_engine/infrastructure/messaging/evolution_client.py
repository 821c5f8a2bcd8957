# ============================================================================
# SCOPE: INFRASTRUCTURE LAYER (Reminder Engine)
# Description: Evolution API client (WhatsApp gateway) implementing MessagingProvider.
# ============================================================================
"""Evolution API Client.

Async HTTP client for the Evolution API WhatsApp gateway. Every channel is an
Evolution "instance"; texts go out through:

    POST {base_url}/message/sendText/{instance}
    headers: apikey: <key>
    body:    {"number": "595981123456", "text": "..."}

The provider message id comes back in ``key.id`` and is what later
``messages.update`` webhooks reference.
"""

import logging
from typing import Any

import httpx

from reminder_engine.core.domain.exceptions import TransportError

from ...application.ports.messaging_port import ProviderSendResult

logger = logging.getLogger(__name__)


class EvolutionApiClient:
    """MessagingProvider backed by the Evolution API."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize client.

        Args:
            base_url: Evolution API base URL.
            api_key: Global or instance API key (``apikey`` header).
            timeout: Request timeout in seconds.
            transport: Optional httpx transport (tests use httpx.MockTransport).
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                headers={"apikey": self.api_key, "Content-Type": "application/json"},
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def send(self, instance_id: str, phone: str, text: str) -> ProviderSendResult:
        """Send a text message through an instance.

        Raises:
            TransportError: Network failure, timeout or non-2xx response.
        """
        data = await self._request("POST", f"/message/sendText/{instance_id}", json={"number": phone, "text": text})
        key = data.get("key") or {}
        external_id = key.get("id") if isinstance(key, dict) else None
        if not external_id:
            logger.warning(f"Evolution API send on {instance_id} returned no message id")
        return ProviderSendResult(external_message_id=external_id, raw=data)

    async def connection_state(self, instance_id: str) -> str | None:
        """Raw connection state of an instance ("open", "connecting", "close")."""
        data = await self._request("GET", f"/instance/connectionState/{instance_id}")
        instance = data.get("instance") or {}
        return instance.get("state") or data.get("state")

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        client = await self._get_client()
        try:
            response = await client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise TransportError(f"Evolution API timeout on {path}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Evolution API request failed on {path}: {e}") from e

        if response.status_code >= 400:
            logger.error(f"Evolution API error {response.status_code} on {path}: {response.text[:200]}")
            raise TransportError(
                f"Evolution API returned {response.status_code} on {path}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {"data": data}
