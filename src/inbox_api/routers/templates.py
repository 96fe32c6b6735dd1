from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from inbox_api.deps import get_caller, get_db, get_request_meta
from whatsapp_inbox.contracts.context import CallerIdentity, RequestMeta
from whatsapp_inbox.contracts.payloads import CreateTemplateRequest, TemplateOut
from whatsapp_inbox.service.templates import TemplateService

router = APIRouter(prefix="/templates", tags=["templates"])


@router.get("", response_model=list[TemplateOut])
def list_templates(
    account_id: UUID = Query(...),
    category: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(get_caller),
):
    return TemplateService(db).list_templates(caller, account_id, category)


@router.post("", response_model=TemplateOut, status_code=201)
def create_template(
    request: CreateTemplateRequest,
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(get_caller),
    meta: RequestMeta = Depends(get_request_meta),
):
    return TemplateService(db).create_template(caller, request, meta)
