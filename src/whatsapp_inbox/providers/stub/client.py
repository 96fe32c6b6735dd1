"""
Stub WhatsApp Bridge Provider

Development provider that logs all operations without making real API calls.
Useful for local development and testing.
"""

import logging
from datetime import datetime
from typing import Any
from uuid import uuid4

from whatsapp_inbox.providers.base import (
    BridgeProvider,
    InstanceState,
    ProviderError,
    ProviderResponse,
)

logger = logging.getLogger(__name__)


class StubBridgeProvider(BridgeProvider):
    """
    Stub provider for development and testing.

    - Keeps instances in memory
    - Logs all outbound messages
    - Generates fake message IDs
    - Can be configured to simulate failures
    """

    def __init__(
        self,
        fail_create: bool = False,
        fail_send: bool = False,
        unreachable: bool = False,
    ):
        self.fail_create = fail_create
        self.fail_send = fail_send
        self.unreachable = unreachable
        self.instances: dict[str, dict[str, Any]] = {}
        self.sent_messages: list[dict[str, Any]] = []
        self.deleted_instances: list[str] = []
        self.logged_out_instances: list[str] = []

    def _check_reachable(self) -> None:
        if self.unreachable:
            raise ProviderError("Bridge unreachable (stub)", code="HTTP_ERROR", retryable=True)

    def set_state(self, instance_id: str, state: str, phone_number: str | None = None) -> None:
        """Force the state the stub reports for an instance."""
        instance = self.instances.setdefault(instance_id, {"name": instance_id})
        instance["state"] = state
        if phone_number:
            instance["phone_number"] = phone_number

    async def check_health(self) -> bool:
        return not self.unreachable

    async def create_instance(self, name: str) -> dict[str, Any]:
        self._check_reachable()
        if self.fail_create:
            raise ProviderError(
                "Instance limit reached (stub)",
                code="400",
                details={"message": "Instance limit reached"},
            )

        self.instances[name] = {"name": name, "state": "SCAN_QR_CODE"}
        logger.info("[STUB] Created instance", extra={"instance": name})
        return {"name": name, "status": "created"}

    async def get_qr(self, instance_id: str) -> str:
        self._check_reachable()
        return f"data:image/png;base64,stub-qr-{instance_id}"

    async def get_instance(self, instance_id: str) -> InstanceState:
        self._check_reachable()
        instance = self.instances.get(instance_id)
        if instance is None:
            raise ProviderError("Instance not found (stub)", code="404")

        phone_number = instance.get("phone_number")
        return InstanceState(
            state=instance.get("state"),
            phone_number=phone_number,
            raw_response={"stub": True, **instance},
        )

    async def send_message(
        self,
        instance_id: str,
        to: str,
        text: str | None = None,
        media_url: str | None = None,
        caption: str | None = None,
    ) -> ProviderResponse:
        """Log and return success for a message."""
        message_id = f"stub_msg_{uuid4().hex[:16]}"

        self.sent_messages.append({
            "instance_id": instance_id,
            "to": to,
            "text": text,
            "media_url": media_url,
            "caption": caption,
            "message_id": message_id,
            "timestamp": datetime.utcnow().isoformat(),
        })

        logger.info(
            "[STUB] Sending message",
            extra={"to": to, "instance": instance_id, "message_id": message_id},
        )

        if self.unreachable or self.fail_send:
            return ProviderResponse(
                success=False,
                error_code="STUB_SIMULATED_FAILURE",
                error_message="Simulated failure for testing",
            )

        return ProviderResponse(
            success=True,
            message_id=message_id,
            raw_response={"stub": True, "messageId": message_id},
        )

    async def logout_instance(self, instance_id: str) -> None:
        self._check_reachable()
        self.logged_out_instances.append(instance_id)
        if instance_id in self.instances:
            self.instances[instance_id]["state"] = "DISCONNECTED"

    async def delete_instance(self, instance_id: str) -> None:
        self._check_reachable()
        self.deleted_instances.append(instance_id)
        self.instances.pop(instance_id, None)
