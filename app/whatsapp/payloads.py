"""Extração tolerante dos payloads do gateway.

O schema da Evolution API muda entre versões: o QR pode vir em ``base64``,
``code`` ou ``qrcode.base64``; o status em ``state`` ou ``connectionStatus``;
o telefone em vários campos. Cada extrator devolve um valor marcado com o
formato reconhecido (``shape``), com ``"unknown"`` quando nenhum bate, em vez
de levantar exceção.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from app.whatsapp.base import GatewayInstance

UNKNOWN_SHAPE = "unknown"

STATUS_CONNECTED = "connected"
STATUS_CONNECTING = "connecting"
STATUS_DISCONNECTED = "disconnected"

EVENT_CONNECTION_UPDATE = "connection.update"
EVENT_QRCODE_UPDATED = "qrcode.updated"
EVENT_MESSAGES_UPSERT = "messages.upsert"


@dataclass(frozen=True)
class QrCodePayload:
    shape: str
    value: str | None = None

    @property
    def present(self) -> bool:
        return bool(self.value)


@dataclass(frozen=True)
class MessageContent:
    shape: str
    content: str
    media_type: str | None = None


def _non_empty_str(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value
    return None


def parse_connect_qr(data: Any) -> QrCodePayload:
    """QR da resposta de ``/instance/connect``: ``base64``, ``code``, ``qrcode.base64`` nessa ordem."""
    if not isinstance(data, dict):
        return QrCodePayload(shape=UNKNOWN_SHAPE)

    value = _non_empty_str(data.get("base64"))
    if value:
        return QrCodePayload(shape="base64", value=value)

    value = _non_empty_str(data.get("code"))
    if value:
        return QrCodePayload(shape="code", value=value)

    qrcode = data.get("qrcode")
    if isinstance(qrcode, dict):
        value = _non_empty_str(qrcode.get("base64"))
        if value:
            return QrCodePayload(shape="qrcode.base64", value=value)

    return QrCodePayload(shape=UNKNOWN_SHAPE)


def parse_qrcode_event(data: Any) -> QrCodePayload:
    """QR do evento ``qrcode.updated``: string direta ou objeto com ``.base64``."""
    if not isinstance(data, dict):
        return QrCodePayload(shape=UNKNOWN_SHAPE)

    qrcode = data.get("qrcode")
    if qrcode:
        value = _non_empty_str(qrcode)
        if value:
            return QrCodePayload(shape="qrcode", value=value)
        if isinstance(qrcode, dict):
            value = _non_empty_str(qrcode.get("base64"))
            if value:
                return QrCodePayload(shape="qrcode.base64", value=value)
        return QrCodePayload(shape=UNKNOWN_SHAPE)

    value = _non_empty_str(data.get("base64"))
    if value:
        return QrCodePayload(shape="base64", value=value)

    return QrCodePayload(shape=UNKNOWN_SHAPE)


def strip_jid(jid: str | None) -> str | None:
    """``5511999999999:12@s.whatsapp.net`` -> ``5511999999999``."""
    if not jid or not isinstance(jid, str):
        return None
    user = jid.split("@", 1)[0]
    user = user.split(":", 1)[0]
    return user.strip() or None


def normalize_event_name(event: Any) -> str:
    # webhook_by_events manda CONNECTION_UPDATE em vez de connection.update
    return str(event or "").strip().lower().replace("_", ".")


def normalize_connection_status(data: Any) -> str:
    if not isinstance(data, dict):
        return STATUS_DISCONNECTED
    raw = data.get("state") or data.get("connectionStatus")
    value = str(raw or "").strip().lower()
    if value == "open":
        return STATUS_CONNECTED
    if value == "connecting":
        return STATUS_CONNECTING
    return STATUS_DISCONNECTED


def extract_connection_phone(data: Any) -> str | None:
    if not isinstance(data, dict):
        return None
    for key in ("phoneNumber", "owner", "ownerJid", "wuid", "id"):
        phone = strip_jid(_non_empty_str(data.get(key)))
        if phone:
            return phone
    return None


def parse_instance_entry(entry: Any) -> GatewayInstance | None:
    """Entrada de ``fetchInstances`` nos formatos v1 (``{"instance": {...}}``) e v2 (plano)."""
    if not isinstance(entry, dict):
        return None

    nested = entry.get("instance")
    if isinstance(nested, dict):
        owner = nested.get("owner")
        if isinstance(owner, dict):
            owner = owner.get("id")
        return GatewayInstance(
            name=nested.get("instanceName") or nested.get("name"),
            state=nested.get("state") or nested.get("status") or entry.get("connectionStatus"),
            owner_jid=_non_empty_str(owner),
            raw=entry,
        )

    name = entry.get("name") or entry.get("instanceName")
    if not name:
        return None
    return GatewayInstance(
        name=name,
        state=entry.get("connectionStatus") or entry.get("state") or entry.get("status"),
        owner_jid=_non_empty_str(entry.get("ownerJid") or entry.get("owner")),
        raw=entry,
    )


def parse_instance_list(data: Any) -> list[GatewayInstance]:
    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list):
        return []
    instances = []
    for entry in data:
        parsed = parse_instance_entry(entry)
        if parsed is not None:
            instances.append(parsed)
    return instances


def select_instance(instances: list[GatewayInstance], instance_name: str) -> GatewayInstance | None:
    if not instances:
        return None
    for instance in instances:
        if instance.name == instance_name:
            return instance
    # a consulta já é filtrada por instanceName; algumas versões não devolvem o nome
    return instances[0]


def normalize_messages(data: Any) -> list[dict[str, Any]]:
    if isinstance(data, list):
        return [item for item in data if isinstance(item, dict)]
    if isinstance(data, dict):
        messages = data.get("messages")
        if isinstance(messages, list):
            return [item for item in messages if isinstance(item, dict)]
        return [data]
    return []


def classify_message_content(message: Any) -> MessageContent:
    if not isinstance(message, dict):
        return MessageContent(shape=UNKNOWN_SHAPE, content="")

    text = _non_empty_str(message.get("conversation"))
    if text:
        return MessageContent(shape="conversation", content=text)

    extended = message.get("extendedTextMessage")
    if isinstance(extended, dict) and _non_empty_str(extended.get("text")):
        return MessageContent(shape="extendedTextMessage", content=extended["text"])

    image = message.get("imageMessage")
    if image is not None:
        caption = _non_empty_str(image.get("caption")) if isinstance(image, dict) else None
        return MessageContent(shape="imageMessage", content=caption or "[Imagem]", media_type="image")

    if message.get("audioMessage") is not None:
        return MessageContent(shape="audioMessage", content="[Áudio]", media_type="audio")

    video = message.get("videoMessage")
    if video is not None:
        caption = _non_empty_str(video.get("caption")) if isinstance(video, dict) else None
        return MessageContent(shape="videoMessage", content=caption or "[Vídeo]", media_type="video")

    document = message.get("documentMessage")
    if document is not None:
        file_name = _non_empty_str(document.get("fileName")) if isinstance(document, dict) else None
        return MessageContent(shape="documentMessage", content=file_name or "[Documento]", media_type="document")

    if message.get("stickerMessage") is not None:
        return MessageContent(shape="stickerMessage", content="[Figurinha]", media_type="sticker")

    return MessageContent(shape=UNKNOWN_SHAPE, content="")
