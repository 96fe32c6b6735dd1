"""
Session Manager

Device session lifecycle against the bridge provider:
1. Creates a bridge instance and stores its QR code
2. Polls the bridge for connection state
3. Logs devices out

Session states: pending_qr -> connected <-> disconnected. A session never
goes back to pending_qr; pairing again means creating a new session.
"""

import logging
import time
from datetime import datetime
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from whatsapp_inbox.contracts.context import CallerIdentity, RequestMeta
from whatsapp_inbox.errors import ConfigError, ProviderError
from whatsapp_inbox.persistence.models import SessionStatus, WhatsAppSession
from whatsapp_inbox.persistence.repo import WhatsAppRepository
from whatsapp_inbox.providers.base import BridgeProvider
from whatsapp_inbox.providers.factory import ProviderFactory, get_provider_for_account
from whatsapp_inbox.routing.access import AccessGuard
from whatsapp_inbox.service.audit import AuditAction, AuditTrail

logger = logging.getLogger(__name__)

# Provider vocabulary -> session status; anything else is ignored
PROVIDER_STATES = {
    "CONNECTED": SessionStatus.CONNECTED,
    "DISCONNECTED": SessionStatus.DISCONNECTED,
}

ALLOWED_TRANSITIONS = {
    SessionStatus.PENDING_QR: {SessionStatus.CONNECTED},
    SessionStatus.CONNECTED: {SessionStatus.DISCONNECTED},
    SessionStatus.DISCONNECTED: {SessionStatus.CONNECTED},
}


def map_provider_state(state: str | None) -> SessionStatus | None:
    """Map a provider state case-insensitively; unknown values map to None."""
    if not state:
        return None
    return PROVIDER_STATES.get(state.strip().upper())


def can_transition(current: SessionStatus, new: SessionStatus) -> bool:
    return new in ALLOWED_TRANSITIONS.get(current, set())


def build_instance_name(tenant_id: UUID, employee_id: UUID | None) -> str:
    return f"{tenant_id}-{employee_id or 'shared'}-{int(time.time() * 1000)}"


class SessionManager:
    """
    Manages WhatsApp device sessions.

    Provider calls go through provider_factory so tests can inject a stub.
    """

    def __init__(
        self,
        db: Session,
        provider_factory: ProviderFactory = get_provider_for_account,
        guard: AccessGuard | None = None,
        audit: AuditTrail | None = None,
    ):
        self.db = db
        self.repo = WhatsAppRepository(db)
        self.provider_factory = provider_factory
        self.guard = guard or AccessGuard(db)
        self.audit = audit or AuditTrail(db)

    async def create_session(
        self,
        caller: CallerIdentity,
        account_id: UUID,
        employee_id: UUID | None = None,
        device_name: str | None = None,
        meta: RequestMeta | None = None,
    ) -> WhatsAppSession:
        """
        Create a bridge instance and a pending_qr session for it.

        Raises:
            Unauthorized: Account missing or owned by another tenant
            ConfigError: Account has no provider credentials
            ProviderError: Bridge refused or could not be reached
        """
        account = self.guard.require_account(caller, account_id)
        if not account.has_provider_credentials:
            raise ConfigError("Bridge configuration incomplete", {"account_id": str(account_id)})

        provider = self.provider_factory(account)
        instance_name = build_instance_name(account.tenant_id, employee_id)

        try:
            try:
                await provider.create_instance(instance_name)
                qr_code = await provider.get_qr(instance_name)
            except ProviderError as e:
                logger.error(
                    f"Bridge session creation failed: {e}",
                    extra={"account_id": str(account_id), "instance": instance_name},
                )
                self.audit.failure(
                    account_id,
                    AuditAction.SESSION_CREATE,
                    description=f"Failed to create session {instance_name}",
                    error_code=e.provider_code,
                    error_message=e.message,
                    caller=caller,
                    meta=meta,
                )
                raise ProviderError(
                    f"Failed to create WhatsApp session: {e.message}",
                    code=e.provider_code,
                    details=e.details,
                    retryable=e.retryable,
                ) from e

            try:
                session = self.repo.create_session(
                    account_id=account_id,
                    provider_session_id=instance_name,
                    qr_code_url=qr_code,
                    employee_id=employee_id,
                    device_name=device_name or "Device",
                )
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                await self._cleanup_instance(provider, instance_name)
                self.audit.failure(
                    account_id,
                    AuditAction.SESSION_CREATE,
                    description=f"Failed to store session {instance_name}",
                    error_code="DATABASE_ERROR",
                    error_message=str(e),
                    caller=caller,
                    meta=meta,
                )
                raise
        finally:
            await provider.close()

        logger.info(
            "Created WhatsApp session",
            extra={"account_id": str(account_id), "session_id": str(session.id), "instance": instance_name},
        )
        self.audit.success(
            account_id,
            AuditAction.SESSION_CREATE,
            session_id=session.id,
            description=f"Created session {instance_name}",
            caller=caller,
            meta=meta,
        )
        return session

    async def _cleanup_instance(self, provider: BridgeProvider, instance_name: str) -> None:
        """Best-effort removal of a bridge instance that has no local row."""
        try:
            await provider.delete_instance(instance_name)
        except ProviderError as e:
            logger.warning(
                f"Could not delete orphaned bridge instance: {e}",
                extra={"instance": instance_name},
            )

    async def poll_status(
        self,
        caller: CallerIdentity,
        session_id: UUID,
        meta: RequestMeta | None = None,
    ) -> WhatsAppSession:
        """
        Refresh a session's status from the bridge.

        Never fails because of the bridge: when it is unreachable or the
        account lacks credentials, the cached status is returned.
        """
        session, account = self.guard.require_session(caller, session_id)

        try:
            provider = self.provider_factory(account)
        except ConfigError:
            logger.info("Skipping status poll, account not configured", extra={"session_id": str(session_id)})
            return session

        try:
            state = await provider.get_instance(session.provider_session_id)
        except ProviderError as e:
            logger.warning(
                f"Session status check failed, returning cached status: {e}",
                extra={"session_id": str(session_id)},
            )
            return session
        finally:
            await provider.close()

        new_status = map_provider_state(state.state)
        if new_status is None:
            logger.debug(
                "Ignoring unknown provider state",
                extra={"session_id": str(session_id), "state": state.state},
            )
            return session

        old_status = SessionStatus(session.status)
        if new_status != old_status and not can_transition(old_status, new_status):
            logger.debug(
                "Ignoring session transition",
                extra={"session_id": str(session_id), "from": old_status.value, "to": new_status.value},
            )
            return session

        if new_status == SessionStatus.CONNECTED:
            now = datetime.utcnow()
            if state.phone_number:
                session.phone_number = state.phone_number
            session.last_sync_at = now
            session.last_seen_at = now
        session.status = new_status.value

        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        if new_status != old_status:
            logger.info(
                "Session status changed",
                extra={"session_id": str(session_id), "from": old_status.value, "to": new_status.value},
            )
            self.audit.success(
                account.id,
                AuditAction.SESSION_STATUS_CHANGE,
                session_id=session.id,
                description=f"Session status changed to {new_status.value}",
                details={"from": old_status.value, "to": new_status.value},
                caller=caller,
                meta=meta,
            )
        return session

    async def disconnect_session(
        self,
        caller: CallerIdentity,
        session_id: UUID,
        meta: RequestMeta | None = None,
    ) -> WhatsAppSession:
        """Log the device out on the bridge (best effort) and mark the session disconnected."""
        session, account = self.guard.require_session(caller, session_id)

        logged_out = False
        try:
            provider = self.provider_factory(account)
        except ConfigError:
            provider = None

        if provider is not None:
            try:
                await provider.logout_instance(session.provider_session_id)
                logged_out = True
            except ProviderError as e:
                logger.warning(
                    f"Bridge logout failed: {e}",
                    extra={"session_id": str(session_id)},
                )
            finally:
                await provider.close()

        session.status = SessionStatus.DISCONNECTED.value
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        self.audit.success(
            account.id,
            AuditAction.SESSION_DISCONNECT,
            session_id=session.id,
            description=f"Disconnected session {session.provider_session_id}",
            details={"provider_logout": logged_out},
            caller=caller,
            meta=meta,
        )
        return session

    def list_sessions(self, caller: CallerIdentity, account_id: UUID) -> list[WhatsAppSession]:
        self.guard.require_account(caller, account_id)
        return self.repo.list_sessions(account_id)
