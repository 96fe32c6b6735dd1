"""
Inbox Queries

Read and light-update operations behind the inbox UI: conversation lists,
message history, conversation metadata and read state.
"""

import logging
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from whatsapp_inbox.contracts.context import CallerIdentity, RequestMeta
from whatsapp_inbox.contracts.payloads import UpdateConversationRequest
from whatsapp_inbox.errors import ValidationError
from whatsapp_inbox.persistence.models import (
    ConversationStatus,
    WhatsAppConversation,
    WhatsAppMessage,
)
from whatsapp_inbox.persistence.repo import WhatsAppRepository
from whatsapp_inbox.routing.access import AccessGuard
from whatsapp_inbox.service.audit import AuditAction, AuditTrail

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


def clamp_page(limit: int, offset: int) -> tuple[int, int]:
    return max(1, min(limit, MAX_PAGE_SIZE)), max(0, offset)


class InboxQueries:
    def __init__(
        self,
        db: Session,
        guard: AccessGuard | None = None,
        audit: AuditTrail | None = None,
    ):
        self.db = db
        self.repo = WhatsAppRepository(db)
        self.guard = guard or AccessGuard(db)
        self.audit = audit or AuditTrail(db)

    def list_conversations(
        self,
        caller: CallerIdentity,
        status: ConversationStatus | None = ConversationStatus.OPEN,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[WhatsAppConversation], int]:
        """Conversations across the tenant's accounts, most recent first, with the total."""
        self.guard.require_module(caller)
        limit, offset = clamp_page(limit, offset)
        items = self.repo.list_conversations(caller.tenant_id, status, limit, offset)
        total = self.repo.count_tenant_conversations(caller.tenant_id, status)
        return items, total

    def get_conversation(self, caller: CallerIdentity, conversation_id: UUID) -> WhatsAppConversation:
        conversation, _ = self.guard.require_conversation(caller, conversation_id)
        return conversation

    def update_conversation(
        self,
        caller: CallerIdentity,
        conversation_id: UUID,
        request: UpdateConversationRequest,
        meta: RequestMeta | None = None,
    ) -> WhatsAppConversation:
        """
        Rebind the session, link a ticket or change status.

        Raises:
            ValidationError: The new session belongs to another account
        """
        conversation, account = self.guard.require_conversation(caller, conversation_id)

        changes: dict[str, str | None] = {}
        if request.session_id is not None:
            session = self.repo.get_session(request.session_id)
            if session is None or session.account_id != account.id:
                raise ValidationError(
                    "Session does not belong to the conversation's account",
                    {"session_id": str(request.session_id)},
                )
            conversation.session_id = session.id
            changes["session_id"] = str(session.id)
        if request.ticket_id is not None:
            conversation.ticket_id = request.ticket_id
            changes["ticket_id"] = request.ticket_id
        if request.status is not None:
            conversation.status = request.status.value
            changes["status"] = request.status.value

        if not changes:
            return conversation

        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        self.audit.success(
            account.id,
            AuditAction.CONVERSATION_UPDATE,
            session_id=conversation.session_id,
            description=f"Updated conversation {conversation_id}",
            details=changes,
            caller=caller,
            meta=meta,
        )
        return conversation

    def list_messages(
        self,
        caller: CallerIdentity,
        conversation_id: UUID,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[WhatsAppMessage], int]:
        """
        One page of messages, in chronological order.

        The page is taken from the newest end (offset 0 is the latest page).
        """
        self.guard.require_conversation(caller, conversation_id)
        limit, offset = clamp_page(limit, offset)
        newest_first = self.repo.list_messages(conversation_id, limit, offset)
        total = self.repo.count_messages(conversation_id)
        return list(reversed(newest_first)), total

    def mark_conversation_read(
        self,
        caller: CallerIdentity,
        conversation_id: UUID,
        meta: RequestMeta | None = None,
    ) -> WhatsAppConversation:
        conversation, account = self.guard.require_conversation(caller, conversation_id)
        cleared = conversation.unread_count
        if not cleared:
            return conversation

        conversation.unread_count = 0
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        self.audit.success(
            account.id,
            AuditAction.CONVERSATION_READ,
            session_id=conversation.session_id,
            description=f"Marked conversation {conversation_id} read",
            details={"cleared": cleared},
            caller=caller,
            meta=meta,
        )
        return conversation
