"""
Webhook Ingestor

Entry point for events pushed by the bridge:
1. Inbound messages: routed to a contact and conversation, then stored
2. Status updates: applied to the matching outbound message

Events for unknown instances or messages are logged and dropped; the bridge
does not retry them. Replays are harmless: a provider message id is stored at
most once and statuses never move backward.
"""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from whatsapp_inbox.persistence.models import MessageStatus
from whatsapp_inbox.persistence.repo import WhatsAppRepository
from whatsapp_inbox.providers.bridge.webhook import parse_inbound_message, parse_status_update
from whatsapp_inbox.routing.conversation import ConversationRouter
from whatsapp_inbox.service.audit import AuditAction, AuditTrail

logger = logging.getLogger(__name__)

# Provider vocabulary -> message status; anything else is ignored
PROVIDER_STATUSES = {
    "DELIVERED": MessageStatus.DELIVERED,
    "ACK": MessageStatus.DELIVERED,
    "READ": MessageStatus.READ,
    "FAILED": MessageStatus.FAILED,
    "ERROR": MessageStatus.FAILED,
}


def map_message_status(status: str | None) -> MessageStatus | None:
    if not status:
        return None
    return PROVIDER_STATUSES.get(status.strip().upper())


def ignored(reason: str, **extra: Any) -> dict[str, Any]:
    return {"status": "ignored", "reason": reason, **extra}


class WebhookIngestor:
    """
    Handles bridge webhooks.

    Responsibilities:
    - Route inbound messages through ConversationRouter
    - Deduplicate by provider message id
    - Apply monotonic status updates
    """

    def __init__(
        self,
        db: Session,
        router: ConversationRouter | None = None,
        audit: AuditTrail | None = None,
    ):
        self.db = db
        self.repo = WhatsAppRepository(db)
        self.router = router or ConversationRouter(db)
        self.audit = audit or AuditTrail(db)

    def handle_incoming_message(self, instance_id: str, data: dict[str, Any]) -> dict[str, Any]:
        """
        Process an inbound message webhook.

        Args:
            instance_id: Bridge instance that received the message
            data: The webhook's data object

        Returns:
            Processing result dict

        Raises:
            ValidationError: If the sender number is missing
        """
        session = self.repo.get_session_by_provider_id(instance_id)
        if session is None:
            logger.warning("Webhook for unknown session", extra={"instance": instance_id})
            return ignored("unknown_instance", instance=instance_id)

        inbound = parse_inbound_message(data)

        if inbound.message_id and self.repo.get_message_by_provider_id(inbound.message_id):
            logger.debug(f"Message {inbound.message_id} already processed, skipping")
            return ignored("duplicate", message_id=inbound.message_id)

        account = self.repo.get_account(session.account_id)
        if account is None:
            logger.error("Session has no account", extra={"session_id": str(session.id)})
            return ignored("unknown_account", instance=instance_id)
        account_id = account.id

        identity = self.router.resolve_contact(inbound.from_number, account.tenant_id)
        conversation = self.router.resolve_conversation(account_id, identity.contact_id, session.id)

        try:
            message = self.router.record_inbound(conversation, session, inbound)
        except IntegrityError:
            # Lost a race against a replay of the same message
            if inbound.message_id and self.repo.get_message_by_provider_id(inbound.message_id):
                logger.info("Concurrent duplicate inbound message", extra={"message_id": inbound.message_id})
                return ignored("duplicate", message_id=inbound.message_id)
            raise

        result = {
            "status": "processed",
            "message_id": str(message.id),
            "conversation_id": str(message.conversation_id),
        }

        logger.info(
            "Processed inbound message",
            extra={"instance": instance_id, **result},
        )
        self.audit.success(
            account_id,
            AuditAction.MESSAGE_RECEIVE,
            session_id=message.session_id,
            description=f"Received message from {inbound.from_number}",
            details={"message_type": message.message_type, "has_media": inbound.has_media},
        )
        return result

    def handle_status_webhook(self, data: dict[str, Any]) -> dict[str, Any]:
        """Parse a status webhook's data object and apply it."""
        update = parse_status_update(data)
        return self.handle_status_update(update.message_id, update.status, update.timestamp)

    def handle_status_update(
        self,
        provider_message_id: str,
        provider_status: str,
        timestamp: datetime | None = None,
    ) -> dict[str, Any]:
        """
        Apply a delivery status reported by the bridge.

        Returns:
            Processing result dict
        """
        message = self.repo.get_message_by_provider_id(provider_message_id)
        if message is None:
            logger.warning("Status update for unknown message", extra={"message_id": provider_message_id})
            return ignored("unknown_message", message_id=provider_message_id)

        new_status = map_message_status(provider_status)
        if new_status is None:
            logger.debug(
                "Ignoring unknown message status",
                extra={"message_id": provider_message_id, "provider_status": provider_status},
            )
            return ignored("unknown_status", message_id=provider_message_id)

        old_status = message.status
        changed = self.repo.advance_message_status(message.id, new_status, timestamp or datetime.utcnow())
        if not changed:
            # Another delivery may have moved it on; report what is stored now
            self.db.rollback()
            return ignored("no_change", message_id=provider_message_id, current=message.status)

        session_id = message.session_id
        conversation = self.repo.get_conversation_by_id(message.conversation_id)
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        if conversation is not None:
            self.audit.success(
                conversation.account_id,
                AuditAction.MESSAGE_STATUS_UPDATE,
                session_id=session_id,
                description=f"Message {provider_message_id} is now {new_status.value}",
                details={"from": old_status, "to": new_status.value},
            )

        return {
            "status": "updated",
            "message_id": provider_message_id,
            "message_status": new_status.value,
        }
