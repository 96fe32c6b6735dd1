"""
Provider selection.

Builds the bridge provider for an account from its stored credentials and
the configured WHATSAPP_PROVIDER.
"""

import functools
from typing import Callable

from inbox_core.settings import Settings, get_settings
from whatsapp_inbox.errors import ConfigError
from whatsapp_inbox.persistence.models import WhatsAppAccount
from whatsapp_inbox.providers.base import BridgeProvider
from whatsapp_inbox.providers.bridge.client import BridgeWhatsAppProvider
from whatsapp_inbox.providers.stub.client import StubBridgeProvider

ProviderFactory = Callable[[WhatsAppAccount], BridgeProvider]


@functools.lru_cache()
def get_stub_provider() -> StubBridgeProvider:
    """Shared stub so instances survive between requests in local development."""
    return StubBridgeProvider()


def get_provider_for_account(
    account: WhatsAppAccount,
    settings: Settings | None = None,
) -> BridgeProvider:
    """
    Get a provider bound to the account's bridge deployment.

    Raises:
        ConfigError: If the account has no base URL or API key
    """
    settings = settings or get_settings()

    if settings.WHATSAPP_PROVIDER == "stub":
        return get_stub_provider()

    if not account.has_provider_credentials:
        raise ConfigError(
            "Bridge configuration incomplete",
            {"account_id": str(account.id)},
        )

    return BridgeWhatsAppProvider(
        api_url=account.provider_base_url,
        api_key=account.provider_api_key,
        timeout=settings.PROVIDER_TIMEOUT_SECONDS,
        status_timeout=settings.PROVIDER_STATUS_TIMEOUT_SECONDS,
    )


def build_provider(
    base_url: str,
    api_key: str | None,
    settings: Settings | None = None,
) -> BridgeProvider:
    """Provider for credentials that are not stored yet (account onboarding)."""
    settings = settings or get_settings()

    if settings.WHATSAPP_PROVIDER == "stub":
        return get_stub_provider()

    return BridgeWhatsAppProvider(
        api_url=base_url,
        api_key=api_key or "",
        timeout=settings.PROVIDER_TIMEOUT_SECONDS,
        status_timeout=settings.PROVIDER_STATUS_TIMEOUT_SECONDS,
    )
