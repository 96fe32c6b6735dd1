from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from inbox_api.deps import get_caller, get_db, get_request_meta
from whatsapp_inbox.contracts.context import CallerIdentity, RequestMeta
from whatsapp_inbox.contracts.payloads import (
    ConversationList,
    ConversationOut,
    MessageList,
    MessageOut,
    UpdateConversationRequest,
)
from whatsapp_inbox.persistence.models import ConversationStatus
from whatsapp_inbox.service.inbox import InboxQueries

router = APIRouter(prefix="/conversations", tags=["conversations"])


@router.get("", response_model=ConversationList)
def list_conversations(
    status: Optional[ConversationStatus] = Query(ConversationStatus.OPEN),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(get_caller),
):
    items, total = InboxQueries(db).list_conversations(caller, status, limit, offset)
    return ConversationList(
        items=[ConversationOut.model_validate(c) for c in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{conversation_id}", response_model=ConversationOut)
def get_conversation(
    conversation_id: UUID,
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(get_caller),
):
    return InboxQueries(db).get_conversation(caller, conversation_id)


@router.patch("/{conversation_id}", response_model=ConversationOut)
def update_conversation(
    conversation_id: UUID,
    request: UpdateConversationRequest,
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(get_caller),
    meta: RequestMeta = Depends(get_request_meta),
):
    return InboxQueries(db).update_conversation(caller, conversation_id, request, meta)


@router.get("/{conversation_id}/messages", response_model=MessageList)
def list_messages(
    conversation_id: UUID,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(get_caller),
):
    items, total = InboxQueries(db).list_messages(caller, conversation_id, limit, offset)
    return MessageList(
        items=[MessageOut.model_validate(m) for m in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.post("/{conversation_id}/read", response_model=ConversationOut)
def mark_read(
    conversation_id: UUID,
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(get_caller),
    meta: RequestMeta = Depends(get_request_meta),
):
    return InboxQueries(db).mark_conversation_read(caller, conversation_id, meta)
