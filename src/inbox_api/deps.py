"""Request dependencies: database session, caller identity, provider wiring."""

import logging
from typing import Optional
from uuid import UUID

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from inbox_core.db import get_db
from inbox_api.security import decode_access_token
from whatsapp_inbox.contracts.context import CallerIdentity, RequestMeta
from whatsapp_inbox.providers.factory import (
    ProviderFactory,
    build_provider,
    get_provider_for_account,
)
from whatsapp_inbox.service.accounts import ProviderBuilder

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

__all__ = [
    "get_caller",
    "get_db",
    "get_provider_builder",
    "get_provider_factory",
    "get_request_meta",
]


def _claim(payload: dict, *names: str):
    for name in names:
        if payload.get(name):
            return payload[name]
    return None


async def get_caller(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> CallerIdentity:
    """
    Resolve the caller from a bearer JWT.

    Tokens carry userId, tenantId and licensedModules (snake_case claims are
    accepted too). Tokens are issued by the auth service, never here.
    """
    if credentials is None:
        raise HTTPException(status_code=401, detail="Not authenticated")

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise HTTPException(status_code=401, detail="Invalid token")

    user_id: Optional[str] = _claim(payload, "userId", "sub", "user_id")
    tenant_id: Optional[str] = _claim(payload, "tenantId", "tenant_id")
    modules = _claim(payload, "licensedModules", "licensed_modules") or []
    if isinstance(modules, str):
        modules = [modules]

    if not tenant_id:
        raise HTTPException(status_code=401, detail="Invalid token")

    try:
        return CallerIdentity(
            user_id=UUID(user_id) if user_id else None,
            tenant_id=UUID(tenant_id),
            licensed_modules=tuple(modules),
        )
    except (TypeError, ValueError):
        logger.warning("Token carries malformed ids")
        raise HTTPException(status_code=401, detail="Invalid token")


def get_request_meta(request: Request) -> RequestMeta:
    forwarded = request.headers.get("x-forwarded-for")
    ip_address = (
        forwarded.split(",")[0].strip()
        if forwarded
        else request.headers.get("x-real-ip") or (request.client.host if request.client else None)
    )
    return RequestMeta(ip_address=ip_address, user_agent=request.headers.get("user-agent"))


def get_provider_factory() -> ProviderFactory:
    return get_provider_for_account


def get_provider_builder() -> ProviderBuilder:
    return build_provider
