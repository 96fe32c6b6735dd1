"""
WhatsApp Inbox Engine

Multi-tenant WhatsApp messaging over self-hosted bridge services:
- Device sessions (QR pairing, status polling)
- Inbound webhooks routed to contacts and conversations
- Outbound sends with recorded outcomes
- Append-only audit trail
"""

__version__ = "0.1.0"
