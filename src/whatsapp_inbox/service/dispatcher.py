"""
Message Dispatcher

Sends outbound WhatsApp messages:
1. Checks access to the conversation
2. Picks a connected session
3. Resolves the contact's number (and template body, if any)
4. Calls the bridge
5. Records the outcome

A send that reaches the bridge always leaves a Message row, failed or not.
The row, the conversation timestamps and the session counter are written
in one transaction.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from whatsapp_inbox.contracts.context import CallerIdentity, RequestMeta
from whatsapp_inbox.contracts.payloads import MediaBody, OutboundBody, TemplateBody, TextBody
from whatsapp_inbox.errors import (
    ConfigError,
    MissingContactNumber,
    NoActiveSession,
    NotFound,
    ProviderError,
)
from whatsapp_inbox.persistence.models import (
    MessageDirection,
    MessageStatus,
    MessageType,
    SessionStatus,
    WhatsAppAccount,
    WhatsAppConversation,
    WhatsAppMessage,
    WhatsAppSession,
    media_type_for_mime,
)
from whatsapp_inbox.persistence.repo import WhatsAppRepository
from whatsapp_inbox.providers.base import ProviderResponse
from whatsapp_inbox.providers.factory import ProviderFactory, get_provider_for_account
from whatsapp_inbox.routing.access import AccessGuard
from whatsapp_inbox.service.audit import AuditAction, AuditTrail

logger = logging.getLogger(__name__)


@dataclass
class RenderedMessage:
    """What goes to the bridge and into the Message row."""

    message_type: MessageType
    text: str | None = None
    media_url: str | None = None
    media_mime_type: str | None = None
    caption: str | None = None
    template_id: UUID | None = None


class MessageDispatcher:
    """
    Sends messages through the bridge.

    Responsibilities:
    - Session selection (bound session first, then any connected one)
    - Body rendering for text, media and template messages
    - Persisting the outcome and counters
    """

    def __init__(
        self,
        db: Session,
        provider_factory: ProviderFactory = get_provider_for_account,
        guard: AccessGuard | None = None,
        audit: AuditTrail | None = None,
    ):
        self.db = db
        self.repo = WhatsAppRepository(db)
        self.provider_factory = provider_factory
        self.guard = guard or AccessGuard(db)
        self.audit = audit or AuditTrail(db)

    def resolve_session(self, conversation: WhatsAppConversation) -> WhatsAppSession | None:
        """The conversation's own session if connected, else the first connected one."""
        if conversation.session_id:
            session = self.repo.get_session(conversation.session_id)
            if session and session.is_active and session.status == SessionStatus.CONNECTED.value:
                return session
        return self.repo.get_first_connected_session(conversation.account_id)

    def render(self, body: OutboundBody, account: WhatsAppAccount) -> RenderedMessage:
        if isinstance(body, TextBody):
            return RenderedMessage(message_type=MessageType.TEXT, text=body.text)

        if isinstance(body, MediaBody):
            return RenderedMessage(
                message_type=media_type_for_mime(body.mime_type),
                media_url=body.media_url,
                media_mime_type=body.mime_type,
                caption=body.caption,
            )

        if isinstance(body, TemplateBody):
            template = self.repo.get_template(body.template_id)
            if template is None or template.account_id != account.id:
                raise NotFound("Template not found", {"template_id": str(body.template_id)})
            return RenderedMessage(
                message_type=MessageType.TEMPLATE,
                text=template.body_template,
                template_id=template.id,
            )

        raise TypeError(f"Unsupported outbound body: {type(body).__name__}")

    async def send(
        self,
        caller: CallerIdentity,
        conversation_id: UUID,
        body: OutboundBody,
        meta: RequestMeta | None = None,
    ) -> WhatsAppMessage:
        """
        Send a message on a conversation.

        Raises:
            Unauthorized: Conversation missing or owned by another tenant
            NoActiveSession: No connected session on the account
            MissingContactNumber: Contact has no WhatsApp identity
            NotFound: Template does not belong to the account
            ConfigError: Account has no provider credentials
        """
        conversation, account = self.guard.require_conversation(caller, conversation_id)

        session = self.resolve_session(conversation)
        if session is None:
            raise NoActiveSession()

        identity = self.repo.get_identity_for_contact(conversation.contact_id)
        if identity is None:
            raise MissingContactNumber()

        rendered = self.render(body, account)

        if not account.has_provider_credentials:
            raise ConfigError("Bridge configuration incomplete", {"account_id": str(account.id)})

        provider = self.provider_factory(account)
        try:
            response = await provider.send_message(
                session.provider_session_id,
                to=identity.whatsapp_number,
                text=rendered.text,
                media_url=rendered.media_url,
                caption=rendered.caption,
            )
        except ProviderError as e:
            logger.error(f"Provider error: {e}", extra={"conversation_id": str(conversation_id)})
            response = ProviderResponse(
                success=False,
                error_code=e.provider_code or "PROVIDER_ERROR",
                error_message=e.message,
            )
        finally:
            await provider.close()

        return self._record(caller, conversation, session, identity.whatsapp_number, rendered, response, meta)

    def _record(
        self,
        caller: CallerIdentity,
        conversation: WhatsAppConversation,
        session: WhatsAppSession,
        to_number: str,
        rendered: RenderedMessage,
        response: ProviderResponse,
        meta: RequestMeta | None,
    ) -> WhatsAppMessage:
        now = datetime.utcnow()
        account_id = conversation.account_id
        session_id = session.id

        message = self.repo.create_message(
            conversation_id=conversation.id,
            session_id=session_id,
            direction=MessageDirection.OUTBOUND,
            message_type=rendered.message_type.value,
            status=MessageStatus.SENT if response.success else MessageStatus.FAILED,
            from_number=session.phone_number or "",
            to_number=to_number,
            provider_message_id=response.message_id,
            text=rendered.text,
            media_url=rendered.media_url,
            media_mime_type=rendered.media_mime_type,
            media_caption=rendered.caption,
            template_id=rendered.template_id,
            employee_id=caller.user_id,
            error_code=None if response.success else (response.error_code or "UNKNOWN"),
            error_message=None if response.success else response.error_message,
            sent_at=now,
        )
        self.repo.update_conversation_last_message(conversation.id, MessageDirection.OUTBOUND, now)
        self.repo.increment_session_counters(session_id, sent=1, seen_at=now)

        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        if response.success:
            logger.info(
                "Message sent successfully",
                extra={"message_id": str(message.id), "provider_message_id": response.message_id},
            )
            self.audit.success(
                account_id,
                AuditAction.MESSAGE_SEND,
                session_id=session_id,
                description=f"Sent {rendered.message_type.value} message to {to_number}",
                caller=caller,
                meta=meta,
            )
        else:
            logger.warning(
                "Message send failed",
                extra={
                    "message_id": str(message.id),
                    "error_code": message.error_code,
                    "error_message": message.error_message,
                },
            )
            self.audit.failure(
                account_id,
                AuditAction.MESSAGE_SEND,
                session_id=session_id,
                description=f"Failed to send {rendered.message_type.value} message to {to_number}",
                error_code=message.error_code,
                error_message=message.error_message,
                caller=caller,
                meta=meta,
            )
        return message
