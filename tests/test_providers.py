"""
Tests for webhook payload parsing, the stub provider and provider selection.
"""

from datetime import datetime

import pytest

from inbox_core.settings import Settings
from whatsapp_inbox.errors import ConfigError, ProviderError, ValidationError
from whatsapp_inbox.persistence.models import WhatsAppAccount
from whatsapp_inbox.providers.bridge.client import BridgeWhatsAppProvider
from whatsapp_inbox.providers.bridge.webhook import (
    parse_inbound_message,
    parse_status_update,
    parse_timestamp,
)
from whatsapp_inbox.providers.factory import build_provider, get_provider_for_account, get_stub_provider
from whatsapp_inbox.providers.stub.client import StubBridgeProvider


class TestParseInbound:
    def test_parse_text_message(self, inbound_data):
        inbound = parse_inbound_message(inbound_data)

        assert inbound.from_number == "+911234567890"
        assert inbound.text == "Hi"
        assert inbound.message_type == "text"
        assert inbound.message_id == "wamid.inbound.1"
        assert inbound.timestamp == datetime(2024, 1, 1, 0, 0, 0)
        assert inbound.has_media is False

    def test_accepts_alias_fields(self):
        inbound = parse_inbound_message({"fromNumber": "+15550001111", "text": "Yo", "messageId": "m-2"})

        assert inbound.from_number == "+15550001111"
        assert inbound.text == "Yo"
        assert inbound.message_id == "m-2"

    def test_nested_media(self):
        inbound = parse_inbound_message({
            "from": "+15550001111",
            "type": "image",
            "media": {"url": "https://cdn.test/p.jpg", "mimeType": "image/jpeg", "caption": "Photo"},
        })

        assert inbound.has_media is True
        assert inbound.media_url == "https://cdn.test/p.jpg"
        assert inbound.media_mime_type == "image/jpeg"
        assert inbound.media_caption == "Photo"

    def test_numeric_id_becomes_string(self):
        inbound = parse_inbound_message({"from": "+15550001111", "body": "Hi", "id": 42})

        assert inbound.message_id == "42"

    def test_missing_sender_raises(self):
        with pytest.raises(ValidationError, match="Missing from number"):
            parse_inbound_message({"body": "Hi"})

    def test_missing_id_and_timestamp(self):
        before = datetime.utcnow()
        inbound = parse_inbound_message({"from": "+15550001111", "body": "Hi"})

        assert inbound.message_id is None
        assert inbound.timestamp >= before


class TestParseStatus:
    def test_parse_status(self):
        update = parse_status_update({"id": "wamid.out.1", "status": "READ", "timestamp": 1704067200})

        assert update.message_id == "wamid.out.1"
        assert update.status == "READ"
        assert update.timestamp == datetime(2024, 1, 1, 0, 0, 0)

    def test_missing_id_raises(self):
        with pytest.raises(ValidationError):
            parse_status_update({"status": "READ"})

    def test_bad_timestamp_falls_back_to_now(self):
        before = datetime.utcnow()
        assert parse_timestamp("not-a-number") >= before


class TestStubProvider:
    @pytest.mark.asyncio
    async def test_instance_lifecycle(self):
        stub = StubBridgeProvider()
        await stub.create_instance("inst-1")

        qr = await stub.get_qr("inst-1")
        assert qr.startswith("data:image/png;base64,")

        stub.set_state("inst-1", "CONNECTED", "15550001111")
        state = await stub.get_instance("inst-1")
        assert state.state == "CONNECTED"
        assert state.phone_number == "15550001111"

        await stub.delete_instance("inst-1")
        assert stub.deleted_instances == ["inst-1"]

    @pytest.mark.asyncio
    async def test_simulated_send_failure(self):
        stub = StubBridgeProvider(fail_send=True)
        response = await stub.send_message("inst-1", to="+15550001111", text="Hi")

        assert response.success is False
        assert response.error_code == "STUB_SIMULATED_FAILURE"
        assert len(stub.sent_messages) == 1

    @pytest.mark.asyncio
    async def test_unreachable(self):
        stub = StubBridgeProvider(unreachable=True)

        assert await stub.check_health() is False
        with pytest.raises(ProviderError):
            await stub.get_instance("inst-1")


class TestProviderFactory:
    def test_bridge_for_configured_account(self):
        account = WhatsAppAccount(provider_base_url="http://bridge.test", provider_api_key="k")
        settings = Settings(WHATSAPP_PROVIDER="bridge")

        provider = get_provider_for_account(account, settings)

        assert isinstance(provider, BridgeWhatsAppProvider)
        assert provider.api_url == "http://bridge.test"

    def test_missing_credentials_raise_config_error(self):
        account = WhatsAppAccount(provider_base_url="http://bridge.test", provider_api_key=None)

        with pytest.raises(ConfigError):
            get_provider_for_account(account, Settings(WHATSAPP_PROVIDER="bridge"))

    def test_stub_mode_shares_one_stub(self):
        settings = Settings(WHATSAPP_PROVIDER="stub")
        account = WhatsAppAccount()

        assert get_provider_for_account(account, settings) is get_stub_provider()
        assert build_provider("http://bridge.test", None, settings) is get_stub_provider()
