"""
Access Guard

Module-license and tenant-ownership checks run before every
account-scoped operation.

Unknown ids and ids owned by another tenant raise the same Unauthorized
error, so callers cannot probe for other tenants' resources.
"""

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from inbox_core.settings import get_settings
from whatsapp_inbox.contracts.context import CallerIdentity
from whatsapp_inbox.errors import LicenseError, Unauthorized
from whatsapp_inbox.persistence.models import (
    WhatsAppAccount,
    WhatsAppConversation,
    WhatsAppSession,
)
from whatsapp_inbox.persistence.repo import WhatsAppRepository

logger = logging.getLogger(__name__)


class AccessGuard:
    def __init__(self, db: Session, module_ids: list[str] | None = None):
        self.repo = WhatsAppRepository(db)
        self.module_ids = module_ids or get_settings().WHATSAPP_MODULE_IDS

    def require_module(self, caller: CallerIdentity) -> None:
        """Raise LicenseError unless the caller holds one of the inbox modules."""
        if any(module in caller.licensed_modules for module in self.module_ids):
            return

        logger.info(
            "Module not licensed",
            extra={"tenant_id": str(caller.tenant_id), "user_id": str(caller.user_id)},
        )
        raise LicenseError(self.module_ids[0])

    def _deny(self, caller: CallerIdentity, kind: str, resource_id: UUID) -> Unauthorized:
        logger.warning(
            "Access denied",
            extra={"tenant_id": str(caller.tenant_id), "resource": kind, "resource_id": str(resource_id)},
        )
        return Unauthorized()

    def require_account(self, caller: CallerIdentity, account_id: UUID) -> WhatsAppAccount:
        self.require_module(caller)
        account = self.repo.get_account(account_id)
        if account is None or account.tenant_id != caller.tenant_id:
            raise self._deny(caller, "account", account_id)
        return account

    def require_session(
        self,
        caller: CallerIdentity,
        session_id: UUID,
    ) -> tuple[WhatsAppSession, WhatsAppAccount]:
        self.require_module(caller)
        session = self.repo.get_session(session_id)
        account = self.repo.get_account(session.account_id) if session else None
        if session is None or account is None or account.tenant_id != caller.tenant_id:
            raise self._deny(caller, "session", session_id)
        return session, account

    def require_conversation(
        self,
        caller: CallerIdentity,
        conversation_id: UUID,
    ) -> tuple[WhatsAppConversation, WhatsAppAccount]:
        self.require_module(caller)
        conversation = self.repo.get_conversation_by_id(conversation_id)
        account = self.repo.get_account(conversation.account_id) if conversation else None
        if conversation is None or account is None or account.tenant_id != caller.tenant_id:
            raise self._deny(caller, "conversation", conversation_id)
        return conversation, account

