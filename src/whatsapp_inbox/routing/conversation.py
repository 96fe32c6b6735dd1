"""
Conversation Routing

Resolves inbound traffic to a contact and a conversation thread and records
inbound messages.

Contacts and conversations are created lazily on first traffic. Concurrent
first contacts are settled by the database: the loser of a unique-constraint
race rolls back and reads the winner's row.
"""

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from whatsapp_inbox.persistence.models import (
    MessageDirection,
    MessageStatus,
    MessageType,
    WhatsAppContactIdentity,
    WhatsAppConversation,
    WhatsAppMessage,
    WhatsAppSession,
    media_type_for_mime,
)
from whatsapp_inbox.persistence.repo import WhatsAppRepository
from whatsapp_inbox.providers.base import InboundMessage

logger = logging.getLogger(__name__)

_KNOWN_TYPES = {t.value for t in MessageType}


def inbound_message_type(inbound: InboundMessage) -> str:
    """Map the bridge's message type onto ours; media falls back to its MIME type."""
    if inbound.message_type in _KNOWN_TYPES:
        return inbound.message_type
    if inbound.has_media:
        return media_type_for_mime(inbound.media_mime_type).value
    return MessageType.TEXT.value


class ConversationRouter:
    """
    Routes inbound events to contacts and conversations.

    Provides methods to:
    - Find or create the contact behind a phone number
    - Find or create the conversation for an (account, contact) pair
    - Record an inbound message with its counters
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = WhatsAppRepository(db)

    def resolve_contact(self, phone_number: str, tenant_id: UUID) -> WhatsAppContactIdentity:
        """
        Get or create the contact identity for a phone number.

        Args:
            phone_number: Sender number as reported by the bridge
            tenant_id: Tenant that owns the receiving account

        Returns:
            The identity (existing, newly created, or the race winner's)
        """
        identity = self.repo.get_identity_by_number(tenant_id, phone_number)
        if identity:
            return identity

        try:
            identity = self.repo.create_contact_with_identity(tenant_id, phone_number)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            identity = self.repo.get_identity_by_number(tenant_id, phone_number)
            if identity is None:
                raise
            logger.info(
                "Contact created concurrently, using existing identity",
                extra={"tenant_id": str(tenant_id), "contact_id": str(identity.contact_id)},
            )
            return identity

        logger.info(
            "Created contact for new WhatsApp number",
            extra={"tenant_id": str(tenant_id), "contact_id": str(identity.contact_id)},
        )
        return identity

    def resolve_conversation(
        self,
        account_id: UUID,
        contact_id: UUID,
        session_id: UUID | None,
    ) -> WhatsAppConversation:
        """
        Get or create the conversation for an account and contact.

        A new conversation starts open and bound to the originating session.
        """
        conversation = self.repo.get_conversation(account_id, contact_id)
        if conversation:
            return conversation

        try:
            conversation = self.repo.create_conversation(account_id, contact_id, session_id)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            conversation = self.repo.get_conversation(account_id, contact_id)
            if conversation is None:
                raise
            return conversation

        logger.info(
            "Created conversation",
            extra={"conversation_id": str(conversation.id), "account_id": str(account_id)},
        )
        return conversation

    def record_inbound(
        self,
        conversation: WhatsAppConversation,
        session: WhatsAppSession,
        inbound: InboundMessage,
    ) -> WhatsAppMessage:
        """
        Store an inbound message and bump conversation/session counters.

        Everything lands in one transaction.

        Raises:
            IntegrityError: If a message with the same provider id already
                exists (the transaction is rolled back first)
        """
        conversation_id = conversation.id
        session_id = session.id

        message = self.repo.create_message(
            conversation_id=conversation_id,
            session_id=session_id,
            direction=MessageDirection.INBOUND,
            message_type=inbound_message_type(inbound),
            status=MessageStatus.DELIVERED,
            from_number=inbound.from_number,
            to_number=session.phone_number or "",
            provider_message_id=inbound.message_id,
            text=inbound.text,
            media_url=inbound.media_url,
            media_mime_type=inbound.media_mime_type,
            media_caption=inbound.media_caption,
            created_at=inbound.timestamp,
        )
        self.repo.update_conversation_last_message(
            conversation_id,
            MessageDirection.INBOUND,
            inbound.timestamp,
        )
        self.repo.increment_session_counters(
            session_id,
            received=1,
            seen_at=datetime.utcnow(),
        )

        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise

        logger.debug(
            "Recorded inbound message",
            extra={"conversation_id": str(conversation_id), "message_id": str(message.id)},
        )
        return message
