"""
Tests for account onboarding, status reconciliation and templates.
"""

import pytest

from whatsapp_inbox.contracts.payloads import CreateAccountRequest, CreateTemplateRequest
from whatsapp_inbox.errors import ConfigError, Unauthorized, ValidationError
from whatsapp_inbox.persistence.models import AccountStatus, DeploymentType
from whatsapp_inbox.providers.stub.client import StubBridgeProvider
from whatsapp_inbox.service.accounts import CHECKING_MESSAGE, AccountService
from whatsapp_inbox.service.templates import TemplateService


@pytest.fixture
def service(db, stub_provider, provider_factory):
    return AccountService(
        db,
        provider_factory=provider_factory,
        provider_builder=lambda base_url, api_key: stub_provider,
    )


@pytest.fixture
def hosted_account(make_account):
    """Account whose bridge instance was provisioned outside the inbox."""
    return make_account(provider_instance_id="acme-main", status=AccountStatus.WAITING_QR)


class TestCreateAccount:
    @pytest.mark.asyncio
    async def test_create_self_hosted(self, repo, service, caller):
        request = CreateAccountRequest(
            provider_base_url="https://waha.acme.test",
            provider_api_key="k-123",
            business_name="Acme",
            primary_phone="+55 11 99999-9999",
        )

        account = await service.create_account(caller, request)

        assert account.tenant_id == caller.tenant_id
        assert account.status == "active"
        assert account.deployment_type == "self_hosted"
        assert account.primary_phone == "+5511999999999"
        assert [e.action for e in repo.list_audit_logs(account.id)] == ["account_create"]

    @pytest.mark.asyncio
    async def test_platform_hosted_is_rejected(self, service, caller):
        request = CreateAccountRequest(deployment_type=DeploymentType.PLATFORM_HOSTED)

        with pytest.raises(ValidationError):
            await service.create_account(caller, request)

    @pytest.mark.asyncio
    async def test_base_url_required(self, service, caller):
        with pytest.raises(ValidationError):
            await service.create_account(caller, CreateAccountRequest(provider_api_key="k"))

    @pytest.mark.asyncio
    async def test_unhealthy_bridge_is_rejected(self, db, repo, caller):
        unreachable = StubBridgeProvider(unreachable=True)
        service = AccountService(db, provider_builder=lambda base_url, api_key: unreachable)

        with pytest.raises(ValidationError, match="Failed to connect"):
            await service.create_account(caller, CreateAccountRequest(provider_base_url="https://down.test"))

        assert repo.list_accounts_for_tenant(caller.tenant_id) == []

    def test_list_accounts_is_tenant_scoped(self, service, caller, other_caller, account):
        assert [a.id for a in service.list_accounts(caller)] == [account.id]
        assert service.list_accounts(other_caller) == []


class TestReconcileStatus:
    @pytest.mark.asyncio
    async def test_connected_activates_account(self, repo, service, stub_provider, caller, hosted_account):
        stub_provider.set_state("acme-main", "CONNECTED", "15550001111")

        result = await service.reconcile_status(caller, hosted_account.id)

        assert result.status == "active"
        assert result.phone_number == "15550001111"
        assert result.error_message is None
        assert len(repo.list_audit_logs(hosted_account.id, action="account_qr_scanned")) == 1

    @pytest.mark.asyncio
    async def test_already_active_is_not_audited_again(self, repo, service, stub_provider, caller, make_account):
        account = make_account(provider_instance_id="acme-main")
        stub_provider.set_state("acme-main", "CONNECTED")

        await service.reconcile_status(caller, account.id)

        assert repo.list_audit_logs(account.id, action="account_qr_scanned") == []

    @pytest.mark.asyncio
    async def test_disconnected(self, service, stub_provider, caller, hosted_account):
        stub_provider.set_state("acme-main", "DISCONNECTED")

        result = await service.reconcile_status(caller, hosted_account.id)

        assert result.status == "disconnected"

    @pytest.mark.asyncio
    async def test_unreachable_bridge_reports_checking(self, db, caller, hosted_account):
        unreachable = StubBridgeProvider(unreachable=True)
        service = AccountService(db, provider_factory=lambda account: unreachable)

        result = await service.reconcile_status(caller, hosted_account.id)

        assert result.status == "waiting_qr"
        assert result.error_message == CHECKING_MESSAGE

    @pytest.mark.asyncio
    async def test_missing_instance_id(self, service, caller, account):
        with pytest.raises(ConfigError):
            await service.reconcile_status(caller, account.id)


class TestTemplates:
    def test_create_and_list(self, db, repo, caller, account):
        service = TemplateService(db)
        request = CreateTemplateRequest(
            account_id=account.id,
            name="Order shipped",
            category="order_update",
            body_template="Your order {{1}} has shipped",
        )

        template = service.create_template(caller, request)
        service.create_template(caller, request.model_copy(update={"name": "Hi", "category": "welcome"}))

        assert template.created_by_id == caller.user_id
        assert len(service.list_templates(caller, account.id)) == 2
        assert [t.id for t in service.list_templates(caller, account.id, category="order_update")] == [template.id]
        assert len(repo.list_audit_logs(account.id, action="template_create")) == 2

    def test_other_tenant_cannot_list(self, db, other_caller, account):
        with pytest.raises(Unauthorized):
            TemplateService(db).list_templates(other_caller, account.id)
