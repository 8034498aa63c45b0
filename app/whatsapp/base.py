from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Iterable, Protocol

GATEWAY_EVENTS = ("connection.update", "qrcode.updated", "messages.upsert")


class GatewayError(RuntimeError):
    def __init__(self, status_code: int | None, body_text: str, message: str | None = None):
        super().__init__(message or f"Erro gateway {status_code}: {body_text}")
        self.status_code = status_code
        self.body_text = body_text


class GatewayUnavailableError(GatewayError):
    def __init__(self, body_text: str):
        super().__init__(None, body_text, message=f"Gateway WhatsApp indisponível: {body_text}")


class GatewayConfigurationError(GatewayError):
    def __init__(self, body_text: str):
        super().__init__(None, body_text, message=body_text)


class InstanceAlreadyExistsError(GatewayError):
    """Criação recusada porque a instância já existe no gateway."""


@dataclass
class GatewayInstance:
    name: str | None
    state: str | None = None
    owner_jid: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def is_open(self) -> bool:
        return (self.state or "").strip().lower() == "open"


@dataclass
class ConnectResult:
    success: bool
    qr_code: str | None = None
    error: str | None = None
    payload: dict[str, Any] | None = None


class GatewayClient(Protocol):
    def fetch_instance(self, instance_name: str) -> GatewayInstance | None:
        ...

    def list_instances(self) -> list[GatewayInstance]:
        ...

    def create_instance(
        self,
        instance_name: str,
        *,
        webhook_url: str,
        events: Iterable[str] = GATEWAY_EVENTS,
    ) -> dict[str, Any]:
        ...

    def connect(self, instance_name: str) -> ConnectResult:
        ...

    def delete_instance(self, instance_name: str) -> bool:
        ...


SENSITIVE_KEYS = {"apikey", "api_key", "token", "authorization", "base64", "qrcode", "code"}


def _mask_value(value: Any) -> Any:
    if value is None:
        return None
    text = str(value)
    if len(text) <= 4:
        return "****"
    return f"****{text[-4:]}"


def sanitize_payload(payload: Any) -> Any:
    def _sanitize(value: Any) -> Any:
        if isinstance(value, dict):
            return {key: _sanitize_value(key, inner) for key, inner in value.items()}
        if isinstance(value, list):
            return [_sanitize(item) for item in value]
        return value

    def _sanitize_value(key: str, value: Any) -> Any:
        if str(key).lower() in SENSITIVE_KEYS and not isinstance(value, (dict, list)):
            return _mask_value(value)
        return _sanitize(value)

    return _sanitize(payload)


def safe_json(payload: Any) -> str:
    try:
        return json.dumps(payload, ensure_ascii=False)
    except Exception:
        return "{}"
