"""
WhatsApp Providers

Provider implementations for WhatsApp bridge services.
Supports the HTTP bridge (production) and Stub (development).
"""

from whatsapp_inbox.providers.base import (
    BridgeProvider,
    InstanceState,
    ProviderError,
    ProviderResponse,
)

__all__ = [
    "BridgeProvider",
    "InstanceState",
    "ProviderError",
    "ProviderResponse",
]
