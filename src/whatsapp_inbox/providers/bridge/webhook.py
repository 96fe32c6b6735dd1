"""
Bridge Webhook Utilities

Helper functions for parsing bridge webhook payloads.

Bridges are not consistent about field names, so every field is read from
its known aliases with a default.
"""

import logging
from datetime import datetime
from typing import Any

from whatsapp_inbox.errors import ValidationError
from whatsapp_inbox.providers.base import DeliveryStatus, InboundMessage

logger = logging.getLogger(__name__)


def parse_timestamp(value: Any) -> datetime:
    """
    Convert a unix timestamp (seconds) to a naive UTC datetime.

    Missing or unparseable values fall back to now.
    """
    if value in (None, ""):
        return datetime.utcnow()
    try:
        return datetime.utcfromtimestamp(float(value))
    except (TypeError, ValueError, OverflowError, OSError):
        logger.warning("Unparseable webhook timestamp", extra={"timestamp": value})
        return datetime.utcnow()


def parse_inbound_message(data: dict[str, Any]) -> InboundMessage:
    """
    Parse the data object of an inbound message webhook.

    Raises:
        ValidationError: If the sender number is missing
    """
    from_number = data.get("from") or data.get("fromNumber") or ""
    if not from_number:
        raise ValidationError("Missing from number")

    media = data.get("media") if isinstance(data.get("media"), dict) else {}
    message_id = data.get("id") or data.get("messageId")

    return InboundMessage(
        from_number=str(from_number),
        message_type=data.get("type") or "text",
        timestamp=parse_timestamp(data.get("timestamp")),
        message_id=str(message_id) if message_id else None,
        text=data.get("body") or data.get("text") or None,
        media_url=data.get("mediaUrl") or media.get("url"),
        media_mime_type=data.get("mediaMimeType") or media.get("mimeType"),
        media_caption=data.get("mediaCaption") or media.get("caption"),
        raw_payload=data,
    )


def parse_status_update(data: dict[str, Any]) -> DeliveryStatus:
    """
    Parse the data object of a status webhook.

    Raises:
        ValidationError: If the message id is missing
    """
    message_id = data.get("id") or data.get("messageId")
    if not message_id:
        raise ValidationError("Missing message id")

    return DeliveryStatus(
        message_id=str(message_id),
        status=str(data.get("status") or ""),
        timestamp=parse_timestamp(data.get("timestamp")),
        raw_payload=data,
    )
