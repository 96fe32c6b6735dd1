"""
Template Service

Reusable outbound message bodies, scoped to an account.
"""

import logging
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from whatsapp_inbox.contracts.context import CallerIdentity, RequestMeta
from whatsapp_inbox.contracts.payloads import CreateTemplateRequest
from whatsapp_inbox.persistence.models import WhatsAppTemplate
from whatsapp_inbox.persistence.repo import WhatsAppRepository
from whatsapp_inbox.routing.access import AccessGuard
from whatsapp_inbox.service.audit import AuditAction, AuditTrail

logger = logging.getLogger(__name__)


class TemplateService:
    def __init__(
        self,
        db: Session,
        guard: AccessGuard | None = None,
        audit: AuditTrail | None = None,
    ):
        self.db = db
        self.repo = WhatsAppRepository(db)
        self.guard = guard or AccessGuard(db)
        self.audit = audit or AuditTrail(db)

    def list_templates(
        self,
        caller: CallerIdentity,
        account_id: UUID,
        category: str | None = None,
    ) -> list[WhatsAppTemplate]:
        self.guard.require_account(caller, account_id)
        return self.repo.list_templates(account_id, category)

    def create_template(
        self,
        caller: CallerIdentity,
        request: CreateTemplateRequest,
        meta: RequestMeta | None = None,
    ) -> WhatsAppTemplate:
        self.guard.require_account(caller, request.account_id)

        try:
            template = self.repo.create_template(
                request.account_id,
                name=request.name,
                category=request.category,
                language_code=request.language_code,
                body_template=request.body_template,
                header_type=request.header_type,
                header_content=request.header_content,
                footer_content=request.footer_content,
                buttons=request.buttons,
                created_by_id=caller.user_id,
            )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        logger.info(
            "Created template",
            extra={"account_id": str(request.account_id), "template_id": str(template.id)},
        )
        self.audit.success(
            request.account_id,
            AuditAction.TEMPLATE_CREATE,
            description=f"Created template {request.name}",
            details={"template_id": str(template.id), "category": request.category},
            caller=caller,
            meta=meta,
        )
        return template
