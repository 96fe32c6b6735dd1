"""
Tests for contact and conversation resolution.
"""

from datetime import datetime

from whatsapp_inbox.persistence.models import ConversationStatus
from whatsapp_inbox.providers.base import InboundMessage
from whatsapp_inbox.routing.conversation import ConversationRouter, inbound_message_type


class TestResolveContact:
    def test_creates_contact_and_identity(self, db, repo, sample_tenant_id, sample_phone):
        router = ConversationRouter(db)

        identity = router.resolve_contact(sample_phone, sample_tenant_id)

        contact = repo.get_contact(identity.contact_id)
        assert identity.whatsapp_number == sample_phone
        assert identity.verified is True
        assert contact.name == sample_phone
        assert contact.type == "lead"
        assert contact.source == "whatsapp"

    def test_reuses_existing_identity(self, db, repo, sample_tenant_id, sample_phone):
        router = ConversationRouter(db)

        first = router.resolve_contact(sample_phone, sample_tenant_id)
        second = router.resolve_contact(sample_phone, sample_tenant_id)

        assert first.id == second.id
        assert repo.count_contacts(sample_tenant_id) == 1

    def test_same_number_in_two_tenants(self, db, repo, sample_tenant_id, other_tenant_id, sample_phone):
        router = ConversationRouter(db)

        mine = router.resolve_contact(sample_phone, sample_tenant_id)
        theirs = router.resolve_contact(sample_phone, other_tenant_id)

        assert mine.contact_id != theirs.contact_id

    def test_concurrent_first_contact(self, db, repo, sample_tenant_id, sample_phone, monkeypatch):
        """A worker that loses the insert race reads the winner's identity."""
        router = ConversationRouter(db)
        winner = router.resolve_contact(sample_phone, sample_tenant_id)

        real_lookup = router.repo.get_identity_by_number
        calls = {"count": 0}

        def stale_lookup(tenant_id, number):
            # The first lookup runs before the winner committed
            calls["count"] += 1
            if calls["count"] == 1:
                return None
            return real_lookup(tenant_id, number)

        monkeypatch.setattr(router.repo, "get_identity_by_number", stale_lookup)

        loser = router.resolve_contact(sample_phone, sample_tenant_id)

        assert loser.id == winner.id
        assert repo.count_contacts(sample_tenant_id) == 1


class TestResolveConversation:
    def test_one_conversation_per_pair(self, db, repo, account, sample_phone, connected_session):
        router = ConversationRouter(db)
        identity = router.resolve_contact(sample_phone, account.tenant_id)

        first = router.resolve_conversation(account.id, identity.contact_id, connected_session.id)
        second = router.resolve_conversation(account.id, identity.contact_id, None)

        assert first.id == second.id
        assert first.session_id == connected_session.id
        assert first.status == ConversationStatus.OPEN.value
        assert repo.count_conversations(account.id, identity.contact_id) == 1

    def test_concurrent_first_conversation(self, db, repo, account, sample_phone, monkeypatch):
        router = ConversationRouter(db)
        identity = router.resolve_contact(sample_phone, account.tenant_id)
        contact_id = identity.contact_id
        winner = router.resolve_conversation(account.id, contact_id, None)

        real_lookup = router.repo.get_conversation
        calls = {"count": 0}

        def stale_lookup(account_id, contact_id):
            calls["count"] += 1
            if calls["count"] == 1:
                return None
            return real_lookup(account_id, contact_id)

        monkeypatch.setattr(router.repo, "get_conversation", stale_lookup)

        loser = router.resolve_conversation(account.id, contact_id, None)

        assert loser.id == winner.id
        assert repo.count_conversations(account.id, contact_id) == 1


class TestInboundMessageType:
    def make(self, **kwargs):
        fields = {"from_number": "+15550001111", "message_type": "text", "timestamp": datetime(2024, 1, 1)}
        fields.update(kwargs)
        return InboundMessage(**fields)

    def test_known_type_kept(self):
        assert inbound_message_type(self.make(message_type="video")) == "video"

    def test_unknown_media_type_uses_mime(self):
        inbound = self.make(message_type="ptt", media_url="https://cdn.test/a.pdf", media_mime_type="application/pdf")
        assert inbound_message_type(inbound) == "document"

    def test_unknown_type_without_media_is_text(self):
        assert inbound_message_type(self.make(message_type="reaction")) == "text"
