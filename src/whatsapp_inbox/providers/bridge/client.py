"""
HTTP Bridge WhatsApp Provider

Provider for WAHA-style bridge services that run WhatsApp Web sessions.
Uses a small REST API under /api with bearer authentication.
"""

import logging
from typing import Any

import httpx

from whatsapp_inbox.providers.base import (
    BridgeProvider,
    InstanceState,
    ProviderError,
    ProviderResponse,
)

logger = logging.getLogger(__name__)


class BridgeWhatsAppProvider(BridgeProvider):
    """
    Bridge provider for WhatsApp.

    One provider object talks to one bridge deployment (an account).
    Each session is a bridge instance identified by its name.
    """

    def __init__(
        self,
        api_url: str,
        api_key: str,
        timeout: float = 10.0,
        status_timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize bridge provider.

        Args:
            api_url: Base URL of the bridge (e.g., "https://waha.example.com")
            api_key: API key sent as a bearer token
            timeout: Timeout for create/send requests
            status_timeout: Timeout for health and status requests
            transport: Optional httpx transport (tests inject a MockTransport)
        """
        self.api_url = api_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.status_timeout = status_timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {self.api_key}",
                },
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        json_data: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """Make an authenticated API request."""
        client = await self._get_client()
        url = f"{self.api_url}{endpoint}"

        try:
            response = await client.request(
                method.upper(),
                url,
                json=json_data,
                timeout=timeout or self.timeout,
            )
        except httpx.TimeoutException as e:
            logger.warning(f"Bridge request timed out: {e}", extra={"endpoint": endpoint})
            raise ProviderError(
                message=f"Bridge request timed out: {e}",
                code="TIMEOUT",
                retryable=True,
            ) from e
        except httpx.RequestError as e:
            logger.error(f"HTTP request failed: {e}", extra={"endpoint": endpoint})
            raise ProviderError(
                message=f"HTTP request failed: {e}",
                code="HTTP_ERROR",
                retryable=True,
            ) from e

        try:
            response_data = response.json() if response.content else {}
        except ValueError:
            response_data = {"raw": response.text}
        if not isinstance(response_data, dict):
            response_data = {"data": response_data}

        if response.status_code >= 400:
            error = response_data.get("message") or response_data.get("error") or "Unknown error"
            raise ProviderError(
                message=str(error),
                code=str(response.status_code),
                details=response_data,
                retryable=response.status_code >= 500,
            )

        return response_data

    async def check_health(self) -> bool:
        """Ping the bridge health endpoint."""
        try:
            await self._make_request("GET", "/api/health", timeout=self.status_timeout)
        except ProviderError as e:
            logger.warning(f"Bridge health check failed: {e}", extra={"api_url": self.api_url})
            return False
        return True

    async def create_instance(self, name: str) -> dict[str, Any]:
        """Create a new bridge instance."""
        response = await self._make_request("POST", "/api/instances", {"name": name})
        logger.info("Created bridge instance", extra={"instance": name})
        return response

    async def get_qr(self, instance_id: str) -> str:
        """Get QR code for instance pairing."""
        response = await self._make_request("GET", f"/api/instances/{instance_id}/qr")
        return response.get("qr") or response.get("qrcode") or ""

    async def get_instance(self, instance_id: str) -> InstanceState:
        """Get instance connection state."""
        response = await self._make_request(
            "GET",
            f"/api/instances/{instance_id}",
            timeout=self.status_timeout,
        )
        me = response.get("me") or {}
        return InstanceState(
            state=response.get("state") or response.get("status"),
            phone_number=me.get("user") if isinstance(me, dict) else None,
            raw_response=response,
        )

    async def send_message(
        self,
        instance_id: str,
        to: str,
        text: str | None = None,
        media_url: str | None = None,
        caption: str | None = None,
    ) -> ProviderResponse:
        """Send a text or media message via the bridge."""
        endpoint = f"/api/instances/{instance_id}/messages"

        payload: dict[str, Any] = {"to": to}
        if media_url:
            payload["media"] = {"url": media_url}
        else:
            payload["body"] = text or ""
        if caption:
            payload["caption"] = caption

        try:
            response = await self._make_request("POST", endpoint, payload)
        except ProviderError as e:
            logger.error(
                f"Failed to send message: {e}",
                extra={"to": to, "instance": instance_id},
            )
            return ProviderResponse(
                success=False,
                error_code=e.provider_code,
                error_message=str(e),
                raw_response=e.details,
            )

        message_id = response.get("messageId") or response.get("id")
        logger.info(
            "Sent message via bridge",
            extra={"to": to, "message_id": message_id, "instance": instance_id},
        )
        return ProviderResponse(
            success=True,
            message_id=message_id,
            raw_response=response,
        )

    async def logout_instance(self, instance_id: str) -> None:
        await self._make_request("POST", f"/api/instances/{instance_id}/logout")

    async def delete_instance(self, instance_id: str) -> None:
        await self._make_request("DELETE", f"/api/instances/{instance_id}")
        logger.info("Deleted bridge instance", extra={"instance": instance_id})
