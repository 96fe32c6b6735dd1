"""
WhatsApp Inbox Services

Orchestration on top of the repository and the bridge providers.
"""

from whatsapp_inbox.service.accounts import AccountService
from whatsapp_inbox.service.audit import AuditAction, AuditTrail
from whatsapp_inbox.service.dispatcher import MessageDispatcher
from whatsapp_inbox.service.inbox import InboxQueries
from whatsapp_inbox.service.session_manager import SessionManager
from whatsapp_inbox.service.templates import TemplateService
from whatsapp_inbox.service.webhook_ingestor import WebhookIngestor

__all__ = [
    "AccountService",
    "AuditAction",
    "AuditTrail",
    "InboxQueries",
    "MessageDispatcher",
    "SessionManager",
    "TemplateService",
    "WebhookIngestor",
]
