from __future__ import annotations

import uuid
from typing import Any, Iterable

from app.whatsapp.base import (
    GATEWAY_EVENTS,
    ConnectResult,
    GatewayClient,
    GatewayInstance,
    InstanceAlreadyExistsError,
)


class MockGatewayClient(GatewayClient):
    """Gateway em memória para desenvolvimento local e testes."""

    def __init__(self, *, qr_after_attempts: int = 1) -> None:
        self.qr_after_attempts = qr_after_attempts
        self.instances: dict[str, GatewayInstance] = {}
        self.webhooks: dict[str, dict[str, Any]] = {}
        self.connect_attempts: dict[str, int] = {}
        self.calls: list[tuple[str, str]] = []

    def fetch_instance(self, instance_name: str) -> GatewayInstance | None:
        self.calls.append(("fetch", instance_name))
        return self.instances.get(instance_name)

    def list_instances(self) -> list[GatewayInstance]:
        self.calls.append(("list", ""))
        return list(self.instances.values())

    def create_instance(
        self,
        instance_name: str,
        *,
        webhook_url: str,
        events: Iterable[str] = GATEWAY_EVENTS,
    ) -> dict[str, Any]:
        self.calls.append(("create", instance_name))
        if instance_name in self.instances:
            raise InstanceAlreadyExistsError(403, f'{{"error": "This name \\"{instance_name}\\" is already in use / already exists"}}')
        self.instances[instance_name] = GatewayInstance(name=instance_name, state="close")
        self.webhooks[instance_name] = {"url": webhook_url, "events": list(events)}
        return {"instance": {"instanceName": instance_name, "status": "created"}}

    def connect(self, instance_name: str) -> ConnectResult:
        self.calls.append(("connect", instance_name))
        instance = self.instances.get(instance_name)
        if instance is None:
            return ConnectResult(success=False, error=f"404: instance {instance_name} not found")

        attempts = self.connect_attempts.get(instance_name, 0) + 1
        self.connect_attempts[instance_name] = attempts
        if attempts < self.qr_after_attempts:
            return ConnectResult(success=True, payload={"count": 0})

        instance.state = "connecting"
        qr_code = f"data:image/png;base64,mock-{uuid.uuid4().hex[:12]}"
        return ConnectResult(success=True, qr_code=qr_code, payload={"base64": qr_code})

    def delete_instance(self, instance_name: str) -> bool:
        self.calls.append(("delete", instance_name))
        self.connect_attempts.pop(instance_name, None)
        self.webhooks.pop(instance_name, None)
        return self.instances.pop(instance_name, None) is not None

    def mark_open(self, instance_name: str, owner_jid: str | None = None) -> None:
        instance = self.instances.setdefault(instance_name, GatewayInstance(name=instance_name))
        instance.state = "open"
        instance.owner_jid = owner_jid

    def count(self, call: str) -> int:
        return sum(1 for name, _ in self.calls if name == call)
