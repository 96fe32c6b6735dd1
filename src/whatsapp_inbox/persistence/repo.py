"""
WhatsApp Repository

Repository pattern for WhatsApp inbox database operations.
Provides CRUD operations and common queries for the inbox tables.

The repository never commits: callers own the transaction boundary so that
multi-row changes land together or not at all.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import case, func, or_, update
from sqlalchemy.orm import Session

from whatsapp_inbox.persistence.models import (
    MESSAGE_STATUS_SOURCES,
    AccountStatus,
    Contact,
    ConversationStatus,
    DeploymentType,
    MessageDirection,
    MessageStatus,
    SessionStatus,
    WhatsAppAccount,
    WhatsAppAuditLog,
    WhatsAppContactIdentity,
    WhatsAppConversation,
    WhatsAppMessage,
    WhatsAppSession,
    WhatsAppTemplate,
)


class WhatsAppRepository:
    """Repository for WhatsApp inbox database operations."""

    def __init__(self, db: Session):
        self.db = db

    # =========================================================================
    # Accounts
    # =========================================================================

    def get_account(self, account_id: UUID) -> WhatsAppAccount | None:
        return self.db.get(WhatsAppAccount, account_id)

    def list_accounts_for_tenant(self, tenant_id: UUID) -> list[WhatsAppAccount]:
        """Get all accounts for a tenant, newest first."""
        return (
            self.db.query(WhatsAppAccount)
            .filter(WhatsAppAccount.tenant_id == tenant_id)
            .order_by(WhatsAppAccount.created_at.desc())
            .all()
        )

    def create_account(
        self,
        tenant_id: UUID,
        provider_base_url: str | None,
        provider_api_key: str | None,
        deployment_type: DeploymentType = DeploymentType.SELF_HOSTED,
        business_name: str | None = None,
        primary_phone: str | None = None,
        provider_instance_id: str | None = None,
        status: AccountStatus = AccountStatus.PENDING,
    ) -> WhatsAppAccount:
        account = WhatsAppAccount(
            tenant_id=tenant_id,
            deployment_type=deployment_type.value,
            provider_base_url=provider_base_url,
            provider_api_key=provider_api_key,
            provider_instance_id=provider_instance_id,
            business_name=business_name,
            primary_phone=primary_phone,
            status=status.value,
        )
        self.db.add(account)
        return account

    # =========================================================================
    # Sessions
    # =========================================================================

    def get_session(self, session_id: UUID) -> WhatsAppSession | None:
        return self.db.get(WhatsAppSession, session_id)

    def get_session_by_provider_id(self, provider_session_id: str) -> WhatsAppSession | None:
        """Get session by bridge instance id (used to route webhooks)."""
        return (
            self.db.query(WhatsAppSession)
            .filter(WhatsAppSession.provider_session_id == provider_session_id)
            .first()
        )

    def list_sessions(self, account_id: UUID) -> list[WhatsAppSession]:
        return (
            self.db.query(WhatsAppSession)
            .filter(WhatsAppSession.account_id == account_id)
            .order_by(WhatsAppSession.created_at.desc())
            .all()
        )

    def get_first_connected_session(self, account_id: UUID) -> WhatsAppSession | None:
        """Get the oldest connected, active session of an account."""
        return (
            self.db.query(WhatsAppSession)
            .filter(
                WhatsAppSession.account_id == account_id,
                WhatsAppSession.status == SessionStatus.CONNECTED.value,
                WhatsAppSession.is_active == True,  # noqa: E712
            )
            .order_by(WhatsAppSession.created_at.asc())
            .first()
        )

    def create_session(
        self,
        account_id: UUID,
        provider_session_id: str,
        qr_code_url: str,
        employee_id: UUID | None = None,
        device_name: str | None = None,
    ) -> WhatsAppSession:
        session = WhatsAppSession(
            account_id=account_id,
            employee_id=employee_id,
            provider_session_id=provider_session_id,
            qr_code_url=qr_code_url,
            status=SessionStatus.PENDING_QR.value,
            device_name=device_name,
            daily_sent_count=0,
            daily_recv_count=0,
        )
        self.db.add(session)
        return session

    def increment_session_counters(
        self,
        session_id: UUID,
        sent: int = 0,
        received: int = 0,
        seen_at: datetime | None = None,
    ) -> None:
        """
        Bump daily counters in SQL (col = col + n).

        Concurrent webhook deliveries each add their own increment.
        """
        values: dict[str, Any] = {}
        if sent:
            values["daily_sent_count"] = WhatsAppSession.daily_sent_count + sent
        if received:
            values["daily_recv_count"] = WhatsAppSession.daily_recv_count + received
        if seen_at:
            values["last_seen_at"] = seen_at
        if not values:
            return

        self.db.execute(
            update(WhatsAppSession)
            .where(WhatsAppSession.id == session_id)
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )

    def reset_daily_counters(self, account_id: UUID | None = None) -> int:
        """Zero the daily counters. Returns the number of sessions touched."""
        stmt = update(WhatsAppSession).values(daily_sent_count=0, daily_recv_count=0)
        if account_id:
            stmt = stmt.where(WhatsAppSession.account_id == account_id)
        result = self.db.execute(stmt.execution_options(synchronize_session="fetch"))
        return result.rowcount or 0

    # =========================================================================
    # Contacts
    # =========================================================================

    def get_identity_by_number(
        self,
        tenant_id: UUID,
        whatsapp_number: str,
    ) -> WhatsAppContactIdentity | None:
        return (
            self.db.query(WhatsAppContactIdentity)
            .filter(
                WhatsAppContactIdentity.tenant_id == tenant_id,
                WhatsAppContactIdentity.whatsapp_number == whatsapp_number,
            )
            .first()
        )

    def get_identity_for_contact(self, contact_id: UUID) -> WhatsAppContactIdentity | None:
        return (
            self.db.query(WhatsAppContactIdentity)
            .filter(WhatsAppContactIdentity.contact_id == contact_id)
            .first()
        )

    def get_contact(self, contact_id: UUID) -> Contact | None:
        return self.db.get(Contact, contact_id)

    def count_contacts(self, tenant_id: UUID) -> int:
        return (
            self.db.query(func.count(Contact.id))
            .filter(Contact.tenant_id == tenant_id)
            .scalar()
        )

    def create_contact_with_identity(
        self,
        tenant_id: UUID,
        whatsapp_number: str,
    ) -> WhatsAppContactIdentity:
        """
        Stage a new lead contact plus its identity.

        The phone number doubles as the display name until someone edits it.
        The identity insert is what trips the unique constraint on a race.
        """
        now = datetime.utcnow()
        contact = Contact(
            tenant_id=tenant_id,
            name=whatsapp_number,
            phone=whatsapp_number,
            type="lead",
            status="active",
            source="whatsapp",
        )
        self.db.add(contact)
        self.db.flush()

        identity = WhatsAppContactIdentity(
            tenant_id=tenant_id,
            contact_id=contact.id,
            whatsapp_number=whatsapp_number,
            verified=True,
            verification_date=now,
        )
        self.db.add(identity)
        self.db.flush()
        return identity

    # =========================================================================
    # Conversations
    # =========================================================================

    def get_conversation(self, account_id: UUID, contact_id: UUID) -> WhatsAppConversation | None:
        """Get conversation by account and contact."""
        return (
            self.db.query(WhatsAppConversation)
            .filter(
                WhatsAppConversation.account_id == account_id,
                WhatsAppConversation.contact_id == contact_id,
            )
            .first()
        )

    def get_conversation_by_id(self, conversation_id: UUID) -> WhatsAppConversation | None:
        return self.db.get(WhatsAppConversation, conversation_id)

    def create_conversation(
        self,
        account_id: UUID,
        contact_id: UUID,
        session_id: UUID | None,
    ) -> WhatsAppConversation:
        conversation = WhatsAppConversation(
            account_id=account_id,
            contact_id=contact_id,
            session_id=session_id,
            status=ConversationStatus.OPEN.value,
            unread_count=0,
        )
        self.db.add(conversation)
        self.db.flush()
        return conversation

    def count_conversations(self, account_id: UUID, contact_id: UUID) -> int:
        return (
            self.db.query(func.count(WhatsAppConversation.id))
            .filter(
                WhatsAppConversation.account_id == account_id,
                WhatsAppConversation.contact_id == contact_id,
            )
            .scalar()
        )

    def update_conversation_last_message(
        self,
        conversation_id: UUID,
        direction: MessageDirection,
        timestamp: datetime | None = None,
    ) -> None:
        """
        Update conversation timestamps after a message; inbound bumps unread.

        last_message_at only moves forward, so a late webhook carrying an
        older timestamp does not reorder the inbox.
        """
        timestamp = timestamp or datetime.utcnow()
        is_newer = or_(
            WhatsAppConversation.last_message_at.is_(None),
            WhatsAppConversation.last_message_at < timestamp,
        )
        values: dict[str, Any] = {
            "last_message_at": case((is_newer, timestamp), else_=WhatsAppConversation.last_message_at),
            "last_direction": case((is_newer, direction.value), else_=WhatsAppConversation.last_direction),
        }
        if direction == MessageDirection.INBOUND:
            values["unread_count"] = WhatsAppConversation.unread_count + 1

        self.db.execute(
            update(WhatsAppConversation)
            .where(WhatsAppConversation.id == conversation_id)
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )

    def _tenant_conversations(self, tenant_id: UUID, status: ConversationStatus | None):
        query = (
            self.db.query(WhatsAppConversation)
            .join(WhatsAppAccount, WhatsAppAccount.id == WhatsAppConversation.account_id)
            .filter(WhatsAppAccount.tenant_id == tenant_id)
        )
        if status:
            query = query.filter(WhatsAppConversation.status == status.value)
        return query

    def list_conversations(
        self,
        tenant_id: UUID,
        status: ConversationStatus | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[WhatsAppConversation]:
        """List conversations across all accounts of a tenant."""
        return (
            self._tenant_conversations(tenant_id, status)
            .order_by(WhatsAppConversation.last_message_at.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )

    def count_tenant_conversations(
        self,
        tenant_id: UUID,
        status: ConversationStatus | None = None,
    ) -> int:
        return self._tenant_conversations(tenant_id, status).count()

    # =========================================================================
    # Messages
    # =========================================================================

    def get_message_by_provider_id(self, provider_message_id: str) -> WhatsAppMessage | None:
        """Get message by provider message ID (for idempotency)."""
        return (
            self.db.query(WhatsAppMessage)
            .filter(WhatsAppMessage.provider_message_id == provider_message_id)
            .first()
        )

    def advance_message_status(
        self,
        message_id: UUID,
        new_status: MessageStatus,
        timestamp: datetime,
    ) -> bool:
        """
        Move a message to a later status in one conditional UPDATE.

        The current status is checked in the WHERE clause, so a concurrent
        writer that already reached read or failed is never overwritten.
        Returns True if the row changed.
        """
        sources = MESSAGE_STATUS_SOURCES.get(new_status)
        if not sources:
            return False

        values: dict[str, Any] = {"status": new_status.value}
        if new_status == MessageStatus.DELIVERED:
            values["delivered_at"] = func.coalesce(WhatsAppMessage.delivered_at, timestamp)
        elif new_status == MessageStatus.READ:
            values["read_at"] = timestamp

        result = self.db.execute(
            update(WhatsAppMessage)
            .where(
                WhatsAppMessage.id == message_id,
                WhatsAppMessage.status.in_([status.value for status in sources]),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return bool(result.rowcount)

    def count_messages_by_provider_id(self, provider_message_id: str) -> int:
        return (
            self.db.query(func.count(WhatsAppMessage.id))
            .filter(WhatsAppMessage.provider_message_id == provider_message_id)
            .scalar()
        )

    def create_message(
        self,
        conversation_id: UUID,
        session_id: UUID,
        direction: MessageDirection,
        message_type: str,
        status: MessageStatus,
        from_number: str = "",
        to_number: str = "",
        provider_message_id: str | None = None,
        text: str | None = None,
        media_url: str | None = None,
        media_mime_type: str | None = None,
        media_caption: str | None = None,
        template_id: UUID | None = None,
        employee_id: UUID | None = None,
        error_code: str | None = None,
        error_message: str | None = None,
        sent_at: datetime | None = None,
        created_at: datetime | None = None,
    ) -> WhatsAppMessage:
        """Create a new message record."""
        message = WhatsAppMessage(
            conversation_id=conversation_id,
            session_id=session_id,
            employee_id=employee_id,
            direction=direction.value,
            message_type=message_type,
            provider_message_id=provider_message_id or None,
            from_number=from_number,
            to_number=to_number,
            text=text,
            media_url=media_url,
            media_mime_type=media_mime_type,
            media_caption=media_caption,
            template_id=template_id,
            status=status.value,
            error_code=error_code,
            error_message=error_message,
            sent_at=sent_at,
        )
        if created_at:
            message.created_at = created_at
        self.db.add(message)
        return message

    def list_messages(
        self,
        conversation_id: UUID,
        limit: int = 50,
        offset: int = 0,
    ) -> list[WhatsAppMessage]:
        """Get a page of messages, newest first."""
        return (
            self.db.query(WhatsAppMessage)
            .filter(WhatsAppMessage.conversation_id == conversation_id)
            .order_by(WhatsAppMessage.created_at.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )

    def count_messages(self, conversation_id: UUID | None = None) -> int:
        query = self.db.query(func.count(WhatsAppMessage.id))
        if conversation_id:
            query = query.filter(WhatsAppMessage.conversation_id == conversation_id)
        return query.scalar()

    # =========================================================================
    # Templates
    # =========================================================================

    def get_template(self, template_id: UUID) -> WhatsAppTemplate | None:
        return self.db.get(WhatsAppTemplate, template_id)

    def list_templates(self, account_id: UUID, category: str | None = None) -> list[WhatsAppTemplate]:
        query = self.db.query(WhatsAppTemplate).filter(WhatsAppTemplate.account_id == account_id)
        if category:
            query = query.filter(WhatsAppTemplate.category == category)
        return query.order_by(WhatsAppTemplate.created_at.desc()).all()

    def create_template(self, account_id: UUID, **fields: Any) -> WhatsAppTemplate:
        template = WhatsAppTemplate(account_id=account_id, **fields)
        self.db.add(template)
        return template

    # =========================================================================
    # Audit log
    # =========================================================================

    def create_audit_log(self, **fields: Any) -> WhatsAppAuditLog:
        entry = WhatsAppAuditLog(**fields)
        self.db.add(entry)
        return entry

    def list_audit_logs(self, account_id: UUID, action: str | None = None) -> list[WhatsAppAuditLog]:
        query = self.db.query(WhatsAppAuditLog).filter(WhatsAppAuditLog.account_id == account_id)
        if action:
            query = query.filter(WhatsAppAuditLog.action == action)
        return query.order_by(WhatsAppAuditLog.created_at.asc()).all()
