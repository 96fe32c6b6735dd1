from whatsapp_inbox.providers.bridge.client import BridgeWhatsAppProvider

__all__ = ["BridgeWhatsAppProvider"]
