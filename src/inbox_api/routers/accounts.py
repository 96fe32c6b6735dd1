from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from inbox_api.deps import (
    get_caller,
    get_db,
    get_provider_builder,
    get_provider_factory,
    get_request_meta,
)
from whatsapp_inbox.contracts.context import CallerIdentity, RequestMeta
from whatsapp_inbox.contracts.payloads import (
    AccountOut,
    AccountStatusOut,
    CreateAccountRequest,
    SessionOut,
)
from whatsapp_inbox.providers.factory import ProviderFactory
from whatsapp_inbox.service.accounts import AccountService, ProviderBuilder
from whatsapp_inbox.service.session_manager import SessionManager

router = APIRouter(prefix="/accounts", tags=["accounts"])


@router.get("", response_model=list[AccountOut])
def list_accounts(
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(get_caller),
):
    return AccountService(db).list_accounts(caller)


@router.post("", response_model=AccountOut, status_code=201)
async def create_account(
    request: CreateAccountRequest,
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(get_caller),
    meta: RequestMeta = Depends(get_request_meta),
    provider_builder: ProviderBuilder = Depends(get_provider_builder),
):
    service = AccountService(db, provider_builder=provider_builder)
    return await service.create_account(caller, request, meta)


@router.get("/{account_id}/status", response_model=AccountStatusOut)
async def account_status(
    account_id: UUID,
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(get_caller),
    meta: RequestMeta = Depends(get_request_meta),
    provider_factory: ProviderFactory = Depends(get_provider_factory),
):
    service = AccountService(db, provider_factory=provider_factory)
    return await service.reconcile_status(caller, account_id, meta)


@router.get("/{account_id}/sessions", response_model=list[SessionOut])
def list_account_sessions(
    account_id: UUID,
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(get_caller),
):
    return SessionManager(db).list_sessions(caller, account_id)
