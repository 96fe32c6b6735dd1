"""
Tests for outbound message dispatch.
"""

import pytest

from whatsapp_inbox.contracts.payloads import MediaBody, TemplateBody, TextBody
from whatsapp_inbox.errors import (
    ConfigError,
    MissingContactNumber,
    NoActiveSession,
    NotFound,
    Unauthorized,
)
from whatsapp_inbox.persistence.models import Contact, SessionStatus
from whatsapp_inbox.providers.stub.client import StubBridgeProvider
from whatsapp_inbox.service.dispatcher import MessageDispatcher


@pytest.fixture
def dispatcher(db, provider_factory):
    return MessageDispatcher(db, provider_factory=provider_factory)


class TestSendText:
    @pytest.mark.asyncio
    async def test_send_through_connected_session(
        self, db, repo, dispatcher, stub_provider, caller, account, connected_session, conversation, sample_phone
    ):
        """A text reply goes out through the account's connected session."""
        message = await dispatcher.send(caller, conversation.id, TextBody(text="Hello"))

        assert message.status == "sent"
        assert message.direction == "out"
        assert message.message_type == "text"
        assert message.provider_message_id.startswith("stub_msg_")
        assert message.to_number == sample_phone
        assert message.from_number == "+15550000001"
        assert message.employee_id == caller.user_id
        assert message.sent_at is not None

        assert stub_provider.sent_messages[0]["instance_id"] == "waha-1"
        assert stub_provider.sent_messages[0]["to"] == sample_phone
        assert stub_provider.sent_messages[0]["text"] == "Hello"

        db.refresh(connected_session)
        db.refresh(conversation)
        assert connected_session.daily_sent_count == 1
        assert conversation.last_direction == "out"
        assert conversation.last_message_at is not None

        entries = repo.list_audit_logs(account.id, action="message_send")
        assert len(entries) == 1
        assert entries[0].status == "success"
        assert entries[0].user_id == caller.user_id

    @pytest.mark.asyncio
    async def test_no_connected_session(self, repo, dispatcher, stub_provider, caller, account, conversation):
        """Without a connected session nothing is sent or stored."""
        with pytest.raises(NoActiveSession):
            await dispatcher.send(caller, conversation.id, TextBody(text="Hello"))

        assert repo.count_messages() == 0
        assert stub_provider.sent_messages == []

    @pytest.mark.asyncio
    async def test_pending_session_does_not_count(
        self, repo, dispatcher, caller, account, make_session, conversation
    ):
        make_session(account, "waha-pending", status=SessionStatus.PENDING_QR)

        with pytest.raises(NoActiveSession):
            await dispatcher.send(caller, conversation.id, TextBody(text="Hello"))

    @pytest.mark.asyncio
    async def test_prefers_conversation_session(
        self, db, dispatcher, stub_provider, caller, account, make_session, conversation
    ):
        make_session(account, "waha-1")
        bound = make_session(account, "waha-2", phone_number="+15550000002")
        conversation.session_id = bound.id
        db.commit()

        message = await dispatcher.send(caller, conversation.id, TextBody(text="Hello"))

        assert message.session_id == bound.id
        assert stub_provider.sent_messages[0]["instance_id"] == "waha-2"

    @pytest.mark.asyncio
    async def test_falls_back_when_bound_session_disconnected(
        self, db, dispatcher, stub_provider, caller, account, make_session, conversation
    ):
        fallback = make_session(account, "waha-1")
        bound = make_session(account, "waha-2", status=SessionStatus.DISCONNECTED)
        conversation.session_id = bound.id
        db.commit()

        message = await dispatcher.send(caller, conversation.id, TextBody(text="Hello"))

        assert message.session_id == fallback.id


class TestSendFailures:
    @pytest.mark.asyncio
    async def test_provider_failure_is_recorded(
        self, db, repo, caller, account, connected_session, conversation
    ):
        """A rejected send still leaves a failed message row and counts as sent."""
        failing = StubBridgeProvider(fail_send=True)
        dispatcher = MessageDispatcher(db, provider_factory=lambda account: failing)

        message = await dispatcher.send(caller, conversation.id, TextBody(text="Hello"))

        assert message.status == "failed"
        assert message.error_code == "STUB_SIMULATED_FAILURE"
        assert message.provider_message_id is None

        db.refresh(connected_session)
        assert connected_session.daily_sent_count == 1

        entries = repo.list_audit_logs(account.id, action="message_send")
        assert entries[0].status == "failure"
        assert entries[0].error_code == "STUB_SIMULATED_FAILURE"

    @pytest.mark.asyncio
    async def test_contact_without_identity(self, db, repo, dispatcher, caller, account, connected_session):
        contact = Contact(tenant_id=account.tenant_id, name="Walk-in customer")
        db.add(contact)
        db.flush()
        conversation = repo.create_conversation(account.id, contact.id, None)
        db.commit()

        with pytest.raises(MissingContactNumber):
            await dispatcher.send(caller, conversation.id, TextBody(text="Hello"))

    @pytest.mark.asyncio
    async def test_account_without_credentials(
        self, repo, dispatcher, caller, make_account, make_session, sample_phone, db
    ):
        account = make_account(provider_api_key=None)
        make_session(account, "waha-9")
        identity = repo.create_contact_with_identity(account.tenant_id, sample_phone)
        conversation = repo.create_conversation(account.id, identity.contact_id, None)
        db.commit()

        with pytest.raises(ConfigError):
            await dispatcher.send(caller, conversation.id, TextBody(text="Hello"))

    @pytest.mark.asyncio
    async def test_other_tenant_is_unauthorized(
        self, repo, dispatcher, other_caller, account, connected_session, conversation
    ):
        with pytest.raises(Unauthorized):
            await dispatcher.send(other_caller, conversation.id, TextBody(text="Hello"))

        assert repo.count_messages() == 0


class TestSendMediaAndTemplates:
    @pytest.mark.asyncio
    async def test_media_type_follows_mime(
        self, dispatcher, stub_provider, caller, account, connected_session, conversation
    ):
        body = MediaBody(media_url="https://cdn.test/manual.pdf", caption="Manual", mime_type="application/pdf")

        message = await dispatcher.send(caller, conversation.id, body)

        assert message.message_type == "document"
        assert message.media_url == "https://cdn.test/manual.pdf"
        assert message.media_caption == "Manual"
        assert stub_provider.sent_messages[0]["media_url"] == "https://cdn.test/manual.pdf"

    @pytest.mark.asyncio
    async def test_media_without_mime_is_image(self, dispatcher, caller, account, connected_session, conversation):
        message = await dispatcher.send(caller, conversation.id, MediaBody(media_url="https://cdn.test/p"))

        assert message.message_type == "image"

    @pytest.mark.asyncio
    async def test_template_body_is_sent(
        self, db, repo, dispatcher, stub_provider, caller, account, connected_session, conversation
    ):
        template = repo.create_template(account.id, name="Welcome", body_template="Welcome to Acme!")
        db.commit()

        message = await dispatcher.send(caller, conversation.id, TemplateBody(template_id=template.id))

        assert message.message_type == "template"
        assert message.template_id == template.id
        assert message.text == "Welcome to Acme!"
        assert stub_provider.sent_messages[0]["text"] == "Welcome to Acme!"

    @pytest.mark.asyncio
    async def test_template_of_other_account(
        self, db, repo, dispatcher, stub_provider, caller, account, make_account, connected_session, conversation
    ):
        other_account = make_account(business_name="Elsewhere")
        template = repo.create_template(other_account.id, name="Promo", body_template="Sale!")
        db.commit()

        with pytest.raises(NotFound):
            await dispatcher.send(caller, conversation.id, TemplateBody(template_id=template.id))

        assert stub_provider.sent_messages == []
