"""
WhatsApp Inbox Persistence

SQLAlchemy models and repository for the inbox tables.
"""

from whatsapp_inbox.persistence.models import (
    AccountStatus,
    AuditStatus,
    Contact,
    ConversationStatus,
    DeploymentType,
    MessageDirection,
    MessageStatus,
    MessageType,
    SessionStatus,
    WhatsAppAccount,
    WhatsAppAuditLog,
    WhatsAppBase,
    WhatsAppContactIdentity,
    WhatsAppConversation,
    WhatsAppMessage,
    WhatsAppSession,
    WhatsAppTemplate,
)
from whatsapp_inbox.persistence.repo import WhatsAppRepository

__all__ = [
    "AccountStatus",
    "AuditStatus",
    "Contact",
    "ConversationStatus",
    "DeploymentType",
    "MessageDirection",
    "MessageStatus",
    "MessageType",
    "SessionStatus",
    "WhatsAppAccount",
    "WhatsAppAuditLog",
    "WhatsAppBase",
    "WhatsAppContactIdentity",
    "WhatsAppConversation",
    "WhatsAppMessage",
    "WhatsAppSession",
    "WhatsAppTemplate",
    "WhatsAppRepository",
]
