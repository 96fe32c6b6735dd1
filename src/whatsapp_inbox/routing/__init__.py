"""
WhatsApp Routing

Access checks and conversation routing.
"""

from whatsapp_inbox.routing.access import AccessGuard
from whatsapp_inbox.routing.conversation import ConversationRouter

__all__ = [
    "AccessGuard",
    "ConversationRouter",
]
