"""
WhatsApp Inbox Service

FastAPI app for the multi-tenant WhatsApp inbox.

Responsibilities:
- Tenant-facing routes (accounts, sessions, templates, conversations, sends)
- Bridge webhooks (inbound messages, delivery status)
- Mapping engine errors to JSON responses
"""

import logging

from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from inbox_core.logging import setup_logging
from inbox_api.routers import accounts, conversations, messages, sessions, templates, webhooks
from whatsapp_inbox.errors import InboxError

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title="WhatsApp Inbox",
    description="Multi-tenant WhatsApp inbox over self-hosted bridge services",
    version="1.0.0",
)

api_router = APIRouter(prefix="/api/whatsapp")
api_router.include_router(accounts.router)
api_router.include_router(sessions.router)
api_router.include_router(templates.router)
api_router.include_router(conversations.router)
api_router.include_router(messages.router)
api_router.include_router(webhooks.router)
app.include_router(api_router)


@app.exception_handler(InboxError)
async def inbox_error_handler(request: Request, exc: InboxError):
    if exc.status_code >= 500:
        logger.error(f"{exc.code}: {exc.message}", extra={"path": request.url.path})
    else:
        logger.info(f"{exc.code}: {exc.message}", extra={"path": request.url.path})
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = [
        {"loc": [str(part) for part in error.get("loc", ())], "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"error": "Validation error", "code": "VALIDATION_ERROR", "details": details},
    )


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy", "service": "whatsapp-inbox"}


def run():
    """Entry point for the whatsapp-inbox-api script."""
    import uvicorn

    uvicorn.run("inbox_api.main:app", host="0.0.0.0", port=8000)


if __name__ == "__main__":
    run()
