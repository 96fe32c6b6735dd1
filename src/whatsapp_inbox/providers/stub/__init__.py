from whatsapp_inbox.providers.stub.client import StubBridgeProvider

__all__ = ["StubBridgeProvider"]
