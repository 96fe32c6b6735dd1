from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from inbox_api.deps import get_caller, get_db, get_provider_factory, get_request_meta
from whatsapp_inbox.contracts.context import CallerIdentity, RequestMeta
from whatsapp_inbox.contracts.payloads import CreateSessionRequest, SessionOut, SessionStatusOut
from whatsapp_inbox.providers.factory import ProviderFactory
from whatsapp_inbox.service.session_manager import SessionManager

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.post("", response_model=SessionOut, status_code=201)
async def create_session(
    request: CreateSessionRequest,
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(get_caller),
    meta: RequestMeta = Depends(get_request_meta),
    provider_factory: ProviderFactory = Depends(get_provider_factory),
):
    """Create a bridge instance and return the session with its QR code."""
    manager = SessionManager(db, provider_factory=provider_factory)
    return await manager.create_session(
        caller,
        request.account_id,
        employee_id=request.employee_id,
        device_name=request.device_name,
        meta=meta,
    )


@router.get("/{session_id}/status", response_model=SessionStatusOut)
async def session_status(
    session_id: UUID,
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(get_caller),
    meta: RequestMeta = Depends(get_request_meta),
    provider_factory: ProviderFactory = Depends(get_provider_factory),
):
    manager = SessionManager(db, provider_factory=provider_factory)
    session = await manager.poll_status(caller, session_id, meta)
    return SessionStatusOut(
        session_id=session.id,
        status=session.status,
        phone_number=session.phone_number,
        last_sync_at=session.last_sync_at,
    )


@router.post("/{session_id}/disconnect", response_model=SessionOut)
async def disconnect_session(
    session_id: UUID,
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(get_caller),
    meta: RequestMeta = Depends(get_request_meta),
    provider_factory: ProviderFactory = Depends(get_provider_factory),
):
    manager = SessionManager(db, provider_factory=provider_factory)
    return await manager.disconnect_session(caller, session_id, meta)
