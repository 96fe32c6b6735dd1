"""
Request context passed from the HTTP layer into the services.
"""

from dataclasses import dataclass, field
from uuid import UUID


@dataclass(frozen=True)
class CallerIdentity:
    """
    Authenticated caller, as resolved from a verified token.

    Token issuance and licensing live outside this service; the engine only
    consumes the result.
    """

    user_id: UUID | None
    tenant_id: UUID
    licensed_modules: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class RequestMeta:
    """Client details recorded in the audit trail."""

    ip_address: str | None = None
    user_agent: str | None = None
