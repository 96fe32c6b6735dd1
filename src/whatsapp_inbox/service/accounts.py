"""
Account Service

Onboarding and status reconciliation for WhatsApp accounts.

Only self-hosted accounts are created here. Platform-hosted accounts are
provisioned by an external collaborator, which also sets the account-level
provider_instance_id that reconcile_status polls.
"""

import logging
from typing import Callable
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from whatsapp_inbox.contracts.context import CallerIdentity, RequestMeta
from whatsapp_inbox.contracts.payloads import AccountStatusOut, CreateAccountRequest
from whatsapp_inbox.errors import ConfigError, ProviderError, ValidationError
from whatsapp_inbox.persistence.models import (
    AccountStatus,
    DeploymentType,
    SessionStatus,
    WhatsAppAccount,
)
from whatsapp_inbox.persistence.repo import WhatsAppRepository
from whatsapp_inbox.providers.base import BridgeProvider
from whatsapp_inbox.providers.factory import ProviderFactory, build_provider, get_provider_for_account
from whatsapp_inbox.routing.access import AccessGuard
from whatsapp_inbox.service.audit import AuditAction, AuditTrail
from whatsapp_inbox.service.session_manager import map_provider_state

logger = logging.getLogger(__name__)

ProviderBuilder = Callable[[str, str | None], BridgeProvider]

CHECKING_MESSAGE = "Connection checking..."


class AccountService:
    def __init__(
        self,
        db: Session,
        provider_factory: ProviderFactory = get_provider_for_account,
        provider_builder: ProviderBuilder = build_provider,
        guard: AccessGuard | None = None,
        audit: AuditTrail | None = None,
    ):
        self.db = db
        self.repo = WhatsAppRepository(db)
        self.provider_factory = provider_factory
        self.provider_builder = provider_builder
        self.guard = guard or AccessGuard(db)
        self.audit = audit or AuditTrail(db)

    def list_accounts(self, caller: CallerIdentity) -> list[WhatsAppAccount]:
        self.guard.require_module(caller)
        return self.repo.list_accounts_for_tenant(caller.tenant_id)

    async def create_account(
        self,
        caller: CallerIdentity,
        request: CreateAccountRequest,
        meta: RequestMeta | None = None,
    ) -> WhatsAppAccount:
        """
        Create a self-hosted account after checking the bridge is reachable.

        Raises:
            ValidationError: Platform-hosted request, missing base URL, or
                the bridge failed its health check
        """
        self.guard.require_module(caller)

        if request.deployment_type == DeploymentType.PLATFORM_HOSTED:
            raise ValidationError(
                "Platform-hosted accounts are provisioned by the setup service",
                {"deployment_type": request.deployment_type.value},
            )
        if not request.provider_base_url:
            raise ValidationError("provider_base_url is required for self-hosted deployment")

        provider = self.provider_builder(request.provider_base_url, request.provider_api_key)
        try:
            healthy = await provider.check_health()
        finally:
            await provider.close()

        if not healthy:
            raise ValidationError(
                "Failed to connect to the WhatsApp bridge. Please check the URL and API key.",
                {"provider_base_url": request.provider_base_url},
            )

        try:
            account = self.repo.create_account(
                tenant_id=caller.tenant_id,
                provider_base_url=request.provider_base_url,
                provider_api_key=request.provider_api_key,
                deployment_type=DeploymentType.SELF_HOSTED,
                business_name=request.business_name,
                primary_phone=request.primary_phone,
                status=AccountStatus.ACTIVE,
            )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        logger.info(
            "Created WhatsApp account",
            extra={"tenant_id": str(caller.tenant_id), "account_id": str(account.id)},
        )
        self.audit.success(
            account.id,
            AuditAction.ACCOUNT_CREATE,
            description=f"Created bridge account at {request.provider_base_url}",
            caller=caller,
            meta=meta,
        )
        return account

    async def reconcile_status(
        self,
        caller: CallerIdentity,
        account_id: UUID,
        meta: RequestMeta | None = None,
    ) -> AccountStatusOut:
        """
        Sync the account status with its account-level bridge instance.

        Raises:
            Unauthorized: Account missing or owned by another tenant
            ConfigError: Account has no instance or credentials configured
        """
        account = self.guard.require_account(caller, account_id)
        if not account.provider_instance_id or not account.has_provider_credentials:
            raise ConfigError("Account not properly configured", {"account_id": str(account_id)})

        provider = self.provider_factory(account)
        try:
            state = await provider.get_instance(account.provider_instance_id)
        except ProviderError as e:
            logger.warning(
                f"Bridge status check failed for account: {e}",
                extra={"account_id": str(account_id)},
            )
            return AccountStatusOut(
                account_id=account.id,
                status=account.status,
                phone_number=None,
                error_message=CHECKING_MESSAGE,
            )
        finally:
            await provider.close()

        mapped = map_provider_state(state.state)
        old_status = account.status
        if mapped == SessionStatus.CONNECTED:
            account.status = AccountStatus.ACTIVE.value
            account.error_message = None
        elif mapped == SessionStatus.DISCONNECTED:
            account.status = AccountStatus.DISCONNECTED.value

        if mapped is not None:
            try:
                self.db.commit()
            except SQLAlchemyError:
                self.db.rollback()
                raise

        if mapped == SessionStatus.CONNECTED and old_status != AccountStatus.ACTIVE.value:
            logger.info("Account connected", extra={"account_id": str(account_id)})
            self.audit.success(
                account.id,
                AuditAction.ACCOUNT_QR_SCANNED,
                description=f"WhatsApp connected: {state.phone_number}",
                caller=caller,
                meta=meta,
            )

        return AccountStatusOut(
            account_id=account.id,
            status=account.status,
            phone_number=state.phone_number,
            error_message=account.error_message,
        )
