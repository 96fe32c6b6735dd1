"""
Tests for inbox queries and access checks.
"""

from datetime import datetime, timedelta
from uuid import uuid4

import pytest

from whatsapp_inbox.contracts.context import CallerIdentity
from whatsapp_inbox.contracts.payloads import UpdateConversationRequest
from whatsapp_inbox.errors import LicenseError, Unauthorized, ValidationError
from whatsapp_inbox.persistence.models import ConversationStatus, MessageDirection, MessageStatus
from whatsapp_inbox.routing.access import AccessGuard
from whatsapp_inbox.routing.conversation import ConversationRouter
from whatsapp_inbox.service.inbox import InboxQueries, clamp_page


@pytest.fixture
def inbox(db):
    return InboxQueries(db)


def add_message(repo, conversation, session, text, created_at):
    return repo.create_message(
        conversation_id=conversation.id,
        session_id=session.id,
        direction=MessageDirection.INBOUND,
        message_type="text",
        status=MessageStatus.DELIVERED,
        from_number="+911234567890",
        text=text,
        created_at=created_at,
    )


class TestAccessGuard:
    def test_requires_a_licensed_module(self, db, account, sample_tenant_id):
        guard = AccessGuard(db, module_ids=["whatsapp", "marketing"])
        unlicensed = CallerIdentity(user_id=None, tenant_id=sample_tenant_id, licensed_modules=("crm",))

        with pytest.raises(LicenseError) as exc_info:
            guard.require_account(unlicensed, account.id)

        assert exc_info.value.code == "MODULE_NOT_LICENSED"
        assert exc_info.value.status_code == 403

    def test_any_inbox_module_is_enough(self, db, account, sample_tenant_id):
        guard = AccessGuard(db, module_ids=["whatsapp", "marketing"])
        marketing = CallerIdentity(user_id=None, tenant_id=sample_tenant_id, licensed_modules=("marketing",))

        assert guard.require_account(marketing, account.id).id == account.id

    def test_foreign_and_unknown_ids_look_the_same(self, db, account, other_caller):
        """Callers cannot tell another tenant's ids from ids that do not exist."""
        guard = AccessGuard(db)

        with pytest.raises(Unauthorized) as foreign:
            guard.require_account(other_caller, account.id)
        with pytest.raises(Unauthorized) as unknown:
            guard.require_account(other_caller, uuid4())

        assert foreign.value.to_dict() == unknown.value.to_dict()

    def test_session_and_conversation_ownership(self, db, caller, other_caller, connected_session, conversation):
        guard = AccessGuard(db)

        session, account = guard.require_session(caller, connected_session.id)
        assert session.id == connected_session.id
        conv, _ = guard.require_conversation(caller, conversation.id)
        assert conv.id == conversation.id

        with pytest.raises(Unauthorized):
            guard.require_session(other_caller, connected_session.id)
        with pytest.raises(Unauthorized):
            guard.require_conversation(other_caller, conversation.id)


class TestConversations:
    def test_list_is_tenant_scoped_and_recent_first(
        self, db, repo, inbox, caller, other_caller, account, make_account, connected_session
    ):
        router = ConversationRouter(db)
        now = datetime(2024, 1, 1, 12, 0)
        for i, phone in enumerate(["+15550000010", "+15550000011", "+15550000012"]):
            identity = router.resolve_contact(phone, account.tenant_id)
            conversation = router.resolve_conversation(account.id, identity.contact_id, None)
            repo.update_conversation_last_message(conversation.id, MessageDirection.INBOUND, now + timedelta(minutes=i))
        db.commit()

        foreign = make_account(tenant_id=other_caller.tenant_id)
        identity = router.resolve_contact("+15550000010", foreign.tenant_id)
        router.resolve_conversation(foreign.id, identity.contact_id, None)

        items, total = inbox.list_conversations(caller, limit=2)

        assert total == 3
        assert len(items) == 2
        assert items[0].last_message_at > items[1].last_message_at

    def test_status_filter(self, db, inbox, caller, conversation):
        conversation.status = ConversationStatus.CLOSED.value
        db.commit()

        assert inbox.list_conversations(caller)[1] == 0
        assert inbox.list_conversations(caller, status=ConversationStatus.CLOSED)[1] == 1
        assert inbox.list_conversations(caller, status=None)[1] == 1

    def test_update_conversation(self, repo, inbox, caller, account, connected_session, conversation):
        request = UpdateConversationRequest(session_id=connected_session.id, ticket_id="T-42")

        updated = inbox.update_conversation(caller, conversation.id, request)

        assert updated.session_id == connected_session.id
        assert updated.ticket_id == "T-42"
        entries = repo.list_audit_logs(account.id, action="conversation_update")
        assert entries[0].details == {"session_id": str(connected_session.id), "ticket_id": "T-42"}

    def test_session_of_another_account_is_rejected(
        self, inbox, caller, make_account, make_session, conversation
    ):
        elsewhere = make_account(business_name="Elsewhere")
        session = make_session(elsewhere, "waha-elsewhere")

        with pytest.raises(ValidationError):
            inbox.update_conversation(caller, conversation.id, UpdateConversationRequest(session_id=session.id))

    def test_mark_read(self, db, repo, inbox, caller, conversation):
        repo.update_conversation_last_message(conversation.id, MessageDirection.INBOUND)
        db.commit()

        assert inbox.mark_conversation_read(caller, conversation.id).unread_count == 0

        entries = repo.list_audit_logs(conversation.account_id, action="conversation_read")
        assert len(entries) == 1
        assert entries[0].details == {"cleared": 1}

    def test_mark_read_when_nothing_unread(self, repo, inbox, caller, conversation):
        inbox.mark_conversation_read(caller, conversation.id)

        assert repo.list_audit_logs(conversation.account_id, action="conversation_read") == []


class TestMessages:
    def test_history_is_chronological(self, db, repo, inbox, caller, connected_session, conversation):
        start = datetime(2024, 1, 1, 9, 0)
        for i in range(5):
            add_message(repo, conversation, connected_session, f"msg {i}", start + timedelta(minutes=i))
        db.commit()

        items, total = inbox.list_messages(caller, conversation.id, limit=3)

        assert total == 5
        assert [m.text for m in items] == ["msg 2", "msg 3", "msg 4"]

    def test_other_tenant_cannot_read(self, inbox, other_caller, conversation):
        with pytest.raises(Unauthorized):
            inbox.list_messages(other_caller, conversation.id)


def test_clamp_page():
    assert clamp_page(500, -5) == (100, 0)
    assert clamp_page(0, 10) == (1, 10)
