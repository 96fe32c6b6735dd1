from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from inbox_api.deps import get_caller, get_db, get_provider_factory, get_request_meta
from whatsapp_inbox.contracts.context import CallerIdentity, RequestMeta
from whatsapp_inbox.contracts.payloads import MessageOut, SendMessageRequest
from whatsapp_inbox.providers.factory import ProviderFactory
from whatsapp_inbox.service.dispatcher import MessageDispatcher

router = APIRouter(prefix="/messages", tags=["messages"])


@router.post("/send", response_model=MessageOut, status_code=201)
async def send_message(
    request: SendMessageRequest,
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(get_caller),
    meta: RequestMeta = Depends(get_request_meta),
    provider_factory: ProviderFactory = Depends(get_provider_factory),
):
    """
    Send a text, media or template message on a conversation.

    A bridge failure still returns 201: the stored message carries
    status=failed with the provider's error.
    """
    body = request.to_body()
    dispatcher = MessageDispatcher(db, provider_factory=provider_factory)
    return await dispatcher.send(caller, request.conversation_id, body, meta)
