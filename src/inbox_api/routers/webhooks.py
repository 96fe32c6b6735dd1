"""
Bridge webhooks.

These routes are public: the bridge calls them without a tenant token.
Events that cannot be matched are answered 200 with status=ignored so the
bridge does not retry them.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from inbox_api.deps import get_db
from whatsapp_inbox.contracts.payloads import InboundWebhookPayload, StatusWebhookPayload
from whatsapp_inbox.errors import InboxError
from whatsapp_inbox.service.webhook_ingestor import WebhookIngestor

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def _failed(db: Session, kind: str) -> JSONResponse:
    db.rollback()
    logger.exception(f"{kind} webhook processing failed")
    return JSONResponse(status_code=500, content={"error": "Webhook processing failed", "code": "INTERNAL_ERROR"})


@router.post("/message")
def receive_message(payload: InboundWebhookPayload, db: Session = Depends(get_db)):
    """Receive an inbound message pushed by the bridge."""
    try:
        return WebhookIngestor(db).handle_incoming_message(payload.instance, payload.data)
    except InboxError:
        raise
    except Exception:
        return _failed(db, "Message")


@router.post("/status")
def receive_status(payload: StatusWebhookPayload, db: Session = Depends(get_db)):
    """Receive a delivery status update pushed by the bridge."""
    try:
        return WebhookIngestor(db).handle_status_webhook(payload.data)
    except InboxError:
        raise
    except Exception:
        return _failed(db, "Status")
