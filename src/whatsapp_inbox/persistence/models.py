"""
WhatsApp Inbox Database Models

Tables owned by the WhatsApp inbox engine.

Tables:
- whatsapp_accounts: A tenant's binding to one bridge deployment
- whatsapp_sessions: One WhatsApp device/number per bridge instance
- contacts / whatsapp_contact_identities: Phone number to CRM contact mapping
- whatsapp_conversations: One thread per (account, contact)
- whatsapp_messages: All inbound/outbound messages
- whatsapp_templates: Reusable outbound bodies
- whatsapp_audit_logs: Append-only action log
"""

from datetime import datetime
from enum import Enum
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import declarative_base

WhatsAppBase = declarative_base()


class DeploymentType(str, Enum):
    SELF_HOSTED = "self_hosted"
    PLATFORM_HOSTED = "platform_hosted"


class AccountStatus(str, Enum):
    """Status of a WhatsApp account."""

    PENDING = "pending"
    ACTIVE = "active"
    WAITING_QR = "waiting_qr"
    ERROR = "error"
    DISCONNECTED = "disconnected"


class SessionStatus(str, Enum):
    """Status of a device session."""

    PENDING_QR = "pending_qr"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class ConversationStatus(str, Enum):
    """Status of a WhatsApp conversation."""

    OPEN = "open"
    CLOSED = "closed"
    ARCHIVED = "archived"


class MessageDirection(str, Enum):
    """Direction of a WhatsApp message."""

    INBOUND = "in"
    OUTBOUND = "out"


class MessageType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    DOCUMENT = "document"
    TEMPLATE = "template"


def media_type_for_mime(mime_type: str | None) -> MessageType:
    """video/* is video, image/* or unknown is image, anything else is a document."""
    if not mime_type:
        return MessageType.IMAGE
    mime_type = mime_type.lower()
    if mime_type.startswith("video/"):
        return MessageType.VIDEO
    if mime_type.startswith("image/"):
        return MessageType.IMAGE
    return MessageType.DOCUMENT


class MessageStatus(str, Enum):
    """Status of a WhatsApp message."""

    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    FAILED = "failed"


# Statuses a message may move from, keyed by the target; read and failed are terminal
MESSAGE_STATUS_SOURCES = {
    MessageStatus.DELIVERED: (MessageStatus.SENT,),
    MessageStatus.READ: (MessageStatus.SENT, MessageStatus.DELIVERED),
    MessageStatus.FAILED: (MessageStatus.SENT, MessageStatus.DELIVERED),
}


class AuditStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class WhatsAppModelMixin:
    """Common fields for all WhatsApp inbox models."""

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )


class WhatsAppAccount(WhatsAppBase, WhatsAppModelMixin):
    """
    A tenant's binding to one bridge deployment.

    Self-hosted accounts point at the tenant's own bridge; platform-hosted
    accounts are provisioned elsewhere and carry an account-level instance id.
    """

    __tablename__ = "whatsapp_accounts"

    tenant_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    deployment_type = Column(String(20), nullable=False, default=DeploymentType.SELF_HOSTED.value)

    provider_base_url = Column(String(255), nullable=True)
    provider_api_key = Column(Text, nullable=True)  # Never serialized
    provider_instance_id = Column(String(100), nullable=True)

    business_name = Column(String(255), nullable=True)
    primary_phone = Column(String(20), nullable=True)
    status = Column(String(20), nullable=False, default=AccountStatus.PENDING.value)
    error_message = Column(Text, nullable=True)

    __table_args__ = (
        Index("idx_whatsapp_accounts_tenant_status", "tenant_id", "status"),
    )

    @property
    def has_provider_credentials(self) -> bool:
        return bool(self.provider_base_url and self.provider_api_key)


class WhatsAppSession(WhatsAppBase, WhatsAppModelMixin):
    """
    One WhatsApp device session, mapped to a bridge instance.

    employee_id is null for the shared inbox.
    """

    __tablename__ = "whatsapp_sessions"

    account_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    employee_id = Column(Uuid(as_uuid=True), nullable=True)
    provider_session_id = Column(String(150), nullable=False)
    qr_code_url = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=SessionStatus.PENDING_QR.value)
    device_name = Column(String(100), nullable=True)
    phone_number = Column(String(32), nullable=True)
    daily_sent_count = Column(Integer, nullable=False, default=0)
    daily_recv_count = Column(Integer, nullable=False, default=0)
    last_sync_at = Column(DateTime(timezone=True), nullable=True)
    last_seen_at = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint("provider_session_id", name="uq_whatsapp_sessions_provider_session_id"),
        Index("idx_whatsapp_sessions_account_status", "account_id", "status"),
    )


class Contact(WhatsAppBase, WhatsAppModelMixin):
    """Minimal CRM contact created for first-time WhatsApp senders."""

    __tablename__ = "contacts"

    tenant_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(32), nullable=True)
    type = Column(String(20), nullable=False, default="lead")
    status = Column(String(20), nullable=False, default="active")
    source = Column(String(50), nullable=False, default="whatsapp")


class WhatsAppContactIdentity(WhatsAppBase, WhatsAppModelMixin):
    """
    Maps a WhatsApp number to exactly one contact within a tenant.

    The unique constraints make first-contact creation race-safe.
    """

    __tablename__ = "whatsapp_contact_identities"

    tenant_id = Column(Uuid(as_uuid=True), nullable=False)
    contact_id = Column(Uuid(as_uuid=True), nullable=False)
    whatsapp_number = Column(String(32), nullable=False)
    verified = Column(Boolean, nullable=False, default=False)
    verification_date = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "whatsapp_number", name="uq_whatsapp_identities_tenant_number"),
        UniqueConstraint("contact_id", name="uq_whatsapp_identities_contact"),
    )


class WhatsAppConversation(WhatsAppBase, WhatsAppModelMixin):
    """
    A message thread with one contact, scoped to one account.

    session_id is the preferred session for replies.
    """

    __tablename__ = "whatsapp_conversations"

    account_id = Column(Uuid(as_uuid=True), nullable=False)
    contact_id = Column(Uuid(as_uuid=True), nullable=False)
    session_id = Column(Uuid(as_uuid=True), nullable=True)
    status = Column(String(20), nullable=False, default=ConversationStatus.OPEN.value)
    last_message_at = Column(DateTime(timezone=True), nullable=True)
    last_direction = Column(String(3), nullable=True)
    unread_count = Column(Integer, nullable=False, default=0)
    ticket_id = Column(String(100), nullable=True)

    __table_args__ = (
        UniqueConstraint("account_id", "contact_id", name="uq_whatsapp_conversations_account_contact"),
        Index("idx_whatsapp_conversations_account_status", "account_id", "status"),
        Index("idx_whatsapp_conversations_account_last_message", "account_id", "last_message_at"),
    )


class WhatsAppMessage(WhatsAppBase, WhatsAppModelMixin):
    """
    Stores all WhatsApp messages (inbound and outbound).

    Provider message IDs are used for idempotency. Only status and
    timestamp fields change after insert.
    """

    __tablename__ = "whatsapp_messages"

    conversation_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    session_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    employee_id = Column(Uuid(as_uuid=True), nullable=True)  # Sender for outbound
    direction = Column(String(3), nullable=False)  # 'in' or 'out'
    message_type = Column(String(20), nullable=False, default=MessageType.TEXT.value)
    provider_message_id = Column(String(150), nullable=True)  # From provider (for dedup)
    from_number = Column(String(32), nullable=False, default="")
    to_number = Column(String(32), nullable=False, default="")
    text = Column(Text, nullable=True)
    media_url = Column(Text, nullable=True)
    media_mime_type = Column(String(100), nullable=True)
    media_caption = Column(Text, nullable=True)
    template_id = Column(Uuid(as_uuid=True), nullable=True)
    status = Column(String(20), nullable=False, default=MessageStatus.SENT.value)
    error_code = Column(String(50), nullable=True)
    error_message = Column(Text, nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    read_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("provider_message_id", name="uq_whatsapp_messages_provider_id"),
        Index("idx_whatsapp_messages_conversation_created", "conversation_id", "created_at"),
        Index("idx_whatsapp_messages_session_direction", "session_id", "direction"),
    )


class WhatsAppTemplate(WhatsAppBase, WhatsAppModelMixin):
    """Reusable outbound message body for an account."""

    __tablename__ = "whatsapp_templates"

    account_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    category = Column(String(30), nullable=False, default="custom")
    language_code = Column(String(10), nullable=False, default="en")
    body_template = Column(Text, nullable=False)
    header_type = Column(String(20), nullable=True)
    header_content = Column(Text, nullable=True)
    footer_content = Column(Text, nullable=True)
    buttons = Column(JSON, nullable=True)
    created_by_id = Column(Uuid(as_uuid=True), nullable=True)


class WhatsAppAuditLog(WhatsAppBase):
    """
    Append-only action log.

    Rows are never updated, so there is no updated_at column.
    """

    __tablename__ = "whatsapp_audit_logs"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    account_id = Column(Uuid(as_uuid=True), nullable=False)
    session_id = Column(Uuid(as_uuid=True), nullable=True)
    action = Column(String(50), nullable=False)
    status = Column(String(10), nullable=False)
    description = Column(Text, nullable=True)
    details = Column(JSON, nullable=True)
    error_code = Column(String(50), nullable=True)
    error_message = Column(Text, nullable=True)
    user_id = Column(Uuid(as_uuid=True), nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_whatsapp_audit_logs_account_created", "account_id", "created_at"),
        Index("idx_whatsapp_audit_logs_session", "session_id"),
    )
