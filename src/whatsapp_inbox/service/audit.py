"""
Audit Trail

Append-only log of every mutating action, keyed by account and session.

Entries are written after the triggering transaction has committed. A failed
audit write is rolled back and logged; it never fails the action it records.
"""

import logging
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from whatsapp_inbox.contracts.context import CallerIdentity, RequestMeta
from whatsapp_inbox.persistence.models import AuditStatus, WhatsAppAuditLog
from whatsapp_inbox.persistence.repo import WhatsAppRepository

logger = logging.getLogger(__name__)


class AuditAction(str, Enum):
    ACCOUNT_CREATE = "account_create"
    ACCOUNT_QR_SCANNED = "account_qr_scanned"
    SESSION_CREATE = "session_create"
    SESSION_STATUS_CHANGE = "session_status_change"
    SESSION_DISCONNECT = "session_disconnect"
    MESSAGE_SEND = "message_send"
    MESSAGE_RECEIVE = "message_receive"
    MESSAGE_STATUS_UPDATE = "message_status_update"
    TEMPLATE_CREATE = "template_create"
    CONVERSATION_UPDATE = "conversation_update"
    CONVERSATION_READ = "conversation_read"


class AuditTrail:
    def __init__(self, db: Session):
        self.db = db
        self.repo = WhatsAppRepository(db)

    def record(
        self,
        account_id: UUID,
        action: AuditAction,
        status: AuditStatus = AuditStatus.SUCCESS,
        description: str | None = None,
        session_id: UUID | None = None,
        details: dict[str, Any] | None = None,
        error_code: str | None = None,
        error_message: str | None = None,
        caller: CallerIdentity | None = None,
        meta: RequestMeta | None = None,
    ) -> WhatsAppAuditLog | None:
        """
        Append one entry and commit it.

        Returns the entry, or None if the write failed.
        """
        try:
            entry = self.repo.create_audit_log(
                account_id=account_id,
                session_id=session_id,
                action=action.value,
                status=status.value,
                description=description,
                details=details,
                error_code=error_code,
                error_message=error_message,
                user_id=caller.user_id if caller else None,
                ip_address=meta.ip_address if meta else None,
                user_agent=meta.user_agent if meta else None,
            )
            self.db.commit()
            return entry
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(
                "Failed to write audit log",
                extra={"account_id": str(account_id), "action": action.value},
            )
            return None

    def success(self, account_id: UUID, action: AuditAction, **kwargs: Any) -> WhatsAppAuditLog | None:
        return self.record(account_id, action, AuditStatus.SUCCESS, **kwargs)

    def failure(self, account_id: UUID, action: AuditAction, **kwargs: Any) -> WhatsAppAuditLog | None:
        return self.record(account_id, action, AuditStatus.FAILURE, **kwargs)
