"""
WhatsApp Inbox Contracts

Request/response payloads and the caller context shared by the API and the services.
"""

from whatsapp_inbox.contracts.context import CallerIdentity, RequestMeta
from whatsapp_inbox.contracts.payloads import (
    MediaBody,
    OutboundBody,
    SendMessageRequest,
    TemplateBody,
    TextBody,
)

__all__ = [
    "CallerIdentity",
    "RequestMeta",
    "MediaBody",
    "OutboundBody",
    "SendMessageRequest",
    "TemplateBody",
    "TextBody",
]
