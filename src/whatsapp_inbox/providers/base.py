"""
WhatsApp Bridge Provider Base

Abstract interface for bridge services that operate WhatsApp device sessions.
Implementations: HTTP bridge (production), Stub (development and tests).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from whatsapp_inbox.errors import ProviderError

__all__ = [
    "BridgeProvider",
    "DeliveryStatus",
    "InboundMessage",
    "InstanceState",
    "ProviderError",
    "ProviderResponse",
]


@dataclass
class ProviderResponse:
    """
    Response from provider after sending a message.
    """

    success: bool
    message_id: str | None = None
    error_code: str | None = None
    error_message: str | None = None
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class InboundMessage:
    """
    Parsed inbound message from a bridge webhook.

    Provider-agnostic representation of an incoming WhatsApp message.
    """

    from_number: str
    message_type: str
    timestamp: datetime
    message_id: str | None = None
    text: str | None = None
    media_url: str | None = None
    media_mime_type: str | None = None
    media_caption: str | None = None
    raw_payload: dict[str, Any] = field(default_factory=dict)

    @property
    def has_media(self) -> bool:
        return bool(self.media_url)


@dataclass
class DeliveryStatus:
    """
    Parsed delivery status update from a bridge webhook.

    status is the raw provider vocabulary (e.g. "READ").
    """

    message_id: str
    status: str
    timestamp: datetime
    raw_payload: dict[str, Any] = field(default_factory=dict)


@dataclass
class InstanceState:
    """
    Current state of a bridge instance as reported by the provider.

    state is the raw provider vocabulary (e.g. "CONNECTED"); phone_number
    is the number the device is logged in as, once known.
    """

    state: str | None
    phone_number: str | None = None
    raw_response: dict[str, Any] = field(default_factory=dict)


class BridgeProvider(ABC):
    """
    Abstract interface for WhatsApp bridge providers.

    Implementations must handle:
    - Instance lifecycle (create, QR, status, logout, delete)
    - Sending text and media messages
    - Health checks

    Lifecycle and status calls raise ProviderError on failure. send_message
    never raises for upstream errors; the outcome is carried in the response.
    """

    @abstractmethod
    async def check_health(self) -> bool:
        """Return True if the bridge answers its health endpoint."""
        ...

    @abstractmethod
    async def create_instance(self, name: str) -> dict[str, Any]:
        """
        Create a new device instance.

        Args:
            name: Unique instance name (becomes the provider session id)

        Returns:
            Raw provider response
        """
        ...

    @abstractmethod
    async def get_qr(self, instance_id: str) -> str:
        """Get the QR code (URL or data URI) that pairs a device."""
        ...

    @abstractmethod
    async def get_instance(self, instance_id: str) -> InstanceState:
        """Get the current connection state of an instance."""
        ...

    @abstractmethod
    async def send_message(
        self,
        instance_id: str,
        to: str,
        text: str | None = None,
        media_url: str | None = None,
        caption: str | None = None,
    ) -> ProviderResponse:
        """
        Send a text or media message through an instance.

        Args:
            instance_id: Provider session id
            to: Recipient phone number (E.164 format)
            text: Message text (text messages)
            media_url: Public URL of the media (media messages)
            caption: Media caption (optional)

        Returns:
            ProviderResponse with message ID if successful
        """
        ...

    @abstractmethod
    async def logout_instance(self, instance_id: str) -> None:
        """Log the device out of an instance."""
        ...

    @abstractmethod
    async def delete_instance(self, instance_id: str) -> None:
        """Delete an instance on the bridge."""
        ...

    async def close(self) -> None:
        """Release any held resources."""
        return None
