"""
WhatsApp Inbox Payload Models

Pydantic models for API requests, webhook bodies and API responses.
"""

import re
from datetime import datetime
from typing import Annotated, Any, Literal, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from whatsapp_inbox import errors
from whatsapp_inbox.persistence.models import ConversationStatus, DeploymentType

E164_PATTERN = re.compile(r"^\+?[1-9]\d{1,14}$")

TemplateCategory = Literal["welcome", "order_update", "support", "delivery", "payment", "custom"]


def normalize_e164(phone: str) -> str:
    """
    Normalize a phone number to E.164 with a leading '+'.

    Spaces, dashes and parentheses are stripped first.
    """
    cleaned = re.sub(r"[\s\-()]", "", phone)
    if not E164_PATTERN.match(cleaned):
        raise ValueError("Phone number must be in E.164 format")
    return cleaned if cleaned.startswith("+") else f"+{cleaned}"


# =============================================================================
# Outbound bodies
# =============================================================================


class TextBody(BaseModel):
    kind: Literal["text"] = "text"
    text: str = Field(..., min_length=1, max_length=4096)


class MediaBody(BaseModel):
    kind: Literal["media"] = "media"
    media_url: str = Field(..., min_length=1)
    caption: str | None = Field(None, max_length=1024)
    mime_type: str | None = None


class TemplateBody(BaseModel):
    kind: Literal["template"] = "template"
    template_id: UUID


OutboundBody = Annotated[Union[TextBody, MediaBody, TemplateBody], Field(discriminator="kind")]


class SendMessageRequest(BaseModel):
    """
    Request to send a message on a conversation.

    Exactly one of text, media_url or template_id must be set.
    """

    conversation_id: UUID
    text: str | None = Field(None, max_length=4096)
    media_url: str | None = None
    media_mime_type: str | None = None
    caption: str | None = Field(None, max_length=1024)
    template_id: UUID | None = None

    def to_body(self) -> TextBody | MediaBody | TemplateBody:
        """
        Convert to the tagged outbound body.

        Raises:
            ValidationError: If zero or several content fields are set
        """
        populated = [
            name
            for name, value in (
                ("text", self.text),
                ("media_url", self.media_url),
                ("template_id", self.template_id),
            )
            if value
        ]
        if len(populated) != 1:
            raise errors.ValidationError(
                "Exactly one of text, media_url or template_id is required",
                {"populated": populated},
            )

        if self.text:
            return TextBody(text=self.text)
        if self.media_url:
            return MediaBody(
                media_url=self.media_url,
                caption=self.caption,
                mime_type=self.media_mime_type,
            )
        return TemplateBody(template_id=self.template_id)


# =============================================================================
# Tenant-facing requests
# =============================================================================


class CreateAccountRequest(BaseModel):
    deployment_type: DeploymentType = DeploymentType.SELF_HOSTED
    provider_base_url: str | None = Field(None, max_length=255)
    provider_api_key: str | None = None
    business_name: str | None = Field(None, max_length=255)
    primary_phone: str | None = None

    @field_validator("primary_phone")
    @classmethod
    def validate_phone(cls, value: str | None) -> str | None:
        if value is None or value == "":
            return None
        return normalize_e164(value)


class CreateSessionRequest(BaseModel):
    account_id: UUID
    employee_id: UUID | None = None
    device_name: str | None = Field(None, max_length=100)


class CreateTemplateRequest(BaseModel):
    account_id: UUID
    name: str = Field(..., min_length=1, max_length=100)
    category: TemplateCategory = "custom"
    language_code: str = Field("en", min_length=2, max_length=10)
    body_template: str = Field(..., min_length=1)
    header_type: str | None = None
    header_content: str | None = None
    footer_content: str | None = None
    buttons: list[dict[str, Any]] | None = None


class UpdateConversationRequest(BaseModel):
    session_id: UUID | None = None
    ticket_id: str | None = Field(None, max_length=100)
    status: ConversationStatus | None = None


# =============================================================================
# Webhooks
# =============================================================================


class InboundWebhookPayload(BaseModel):
    """Body of the message webhook; data is parsed leniently by the ingestor."""

    instance: str = Field(..., min_length=1)
    data: dict[str, Any]


class StatusWebhookPayload(BaseModel):
    instance: str | None = None
    data: dict[str, Any]


# =============================================================================
# Responses
# =============================================================================


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class AccountOut(ORMModel):
    """Account as returned by the API. The API key is never included."""

    id: UUID
    tenant_id: UUID
    deployment_type: str
    provider_base_url: str | None = None
    business_name: str | None = None
    primary_phone: str | None = None
    status: str
    error_message: str | None = None
    created_at: datetime
    updated_at: datetime


class AccountStatusOut(BaseModel):
    account_id: UUID
    status: str
    error_message: str | None = None
    phone_number: str | None = None


class SessionOut(ORMModel):
    id: UUID
    account_id: UUID
    employee_id: UUID | None = None
    provider_session_id: str
    qr_code_url: str | None = None
    status: str
    device_name: str | None = None
    phone_number: str | None = None
    daily_sent_count: int
    daily_recv_count: int
    last_sync_at: datetime | None = None
    last_seen_at: datetime | None = None
    is_active: bool
    created_at: datetime


class SessionStatusOut(BaseModel):
    session_id: UUID
    status: str
    phone_number: str | None = None
    last_sync_at: datetime | None = None


class TemplateOut(ORMModel):
    id: UUID
    account_id: UUID
    name: str
    category: str
    language_code: str
    body_template: str
    header_type: str | None = None
    header_content: str | None = None
    footer_content: str | None = None
    buttons: list[dict[str, Any]] | None = None
    created_by_id: UUID | None = None
    created_at: datetime


class ConversationOut(ORMModel):
    id: UUID
    account_id: UUID
    contact_id: UUID
    session_id: UUID | None = None
    status: str
    last_message_at: datetime | None = None
    last_direction: str | None = None
    unread_count: int
    ticket_id: str | None = None
    created_at: datetime


class MessageOut(ORMModel):
    id: UUID
    conversation_id: UUID
    session_id: UUID
    employee_id: UUID | None = None
    direction: str
    message_type: str
    provider_message_id: str | None = None
    from_number: str
    to_number: str
    text: str | None = None
    media_url: str | None = None
    media_mime_type: str | None = None
    media_caption: str | None = None
    template_id: UUID | None = None
    status: str
    error_code: str | None = None
    error_message: str | None = None
    sent_at: datetime | None = None
    delivered_at: datetime | None = None
    read_at: datetime | None = None
    created_at: datetime


class Page(BaseModel):
    total: int
    limit: int
    offset: int


class ConversationList(Page):
    items: list[ConversationOut]


class MessageList(Page):
    items: list[MessageOut]
