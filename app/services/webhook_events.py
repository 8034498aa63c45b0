from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.clock import utcnow
from app.core.config import GatewaySettings
from app.core.request_context import set_request_context
from app.models.whatsapp_instance import (
    INSTANCE_STATUS_CONNECTED,
    INSTANCE_STATUS_CONNECTING,
    WhatsAppInstance,
)
from app.services.conversation_store import (
    ConversationConflictError,
    find_instance,
    get_or_create_conversation,
    insert_message,
    message_exists,
)
from app.whatsapp.payloads import (
    EVENT_CONNECTION_UPDATE,
    EVENT_MESSAGES_UPSERT,
    EVENT_QRCODE_UPDATED,
    classify_message_content,
    extract_connection_phone,
    normalize_connection_status,
    normalize_event_name,
    normalize_messages,
    parse_qrcode_event,
    strip_jid,
)

logger = logging.getLogger(__name__)

Handler = Callable[[str, Any], None]


class WebhookEventRouter:
    """Aplica os callbacks do gateway nas tabelas de instância/conversa/mensagem.

    Cada handler é idempotente. Erros internos de um handler são logados e não
    mudam a resposta ao gateway, que reenviaria o lote inteiro.
    """

    def __init__(
        self,
        db: Session,
        *,
        settings: GatewaySettings,
        now: Callable[[], datetime] = utcnow,
    ) -> None:
        self.db = db
        self.settings = settings
        self._now = now
        self._handlers: dict[str, Handler] = {
            EVENT_CONNECTION_UPDATE: self.handle_connection_update,
            EVENT_QRCODE_UPDATED: self.handle_qrcode_updated,
            EVENT_MESSAGES_UPSERT: self.handle_messages_upsert,
        }

    def dispatch(self, payload: dict[str, Any]) -> str:
        event = normalize_event_name(payload.get("event"))
        instance_name = _instance_name(payload.get("instance"))
        data = payload.get("data")
        if data is None:
            data = {}

        handler = self._handlers.get(event)
        if handler is None:
            logger.info("Evento não tratado: %s", payload.get("event"))
            return "ignored"
        if not instance_name:
            logger.warning("Evento %s sem instância, descartado", event)
            return "ignored"

        set_request_context(instance_name=instance_name)
        try:
            handler(instance_name, data)
        except Exception:
            self.db.rollback()
            logger.exception("Handler do webhook falhou event=%s", event)
        return event

    def handle_connection_update(self, instance_name: str, data: Any) -> None:
        row = find_instance(self.db, instance_name)
        if row is None:
            logger.warning("connection.update para instância desconhecida, descartado")
            return

        status = normalize_connection_status(data)
        now = self._now()

        if status == INSTANCE_STATUS_CONNECTED:
            phone = extract_connection_phone(data)
            if phone:
                row.phone_number = phone
            if row.status != INSTANCE_STATUS_CONNECTED or row.connected_at is None:
                row.connected_at = now
            row.qr_code = None
            row.qr_code_expires_at = None

        row.status = status
        row.last_seen = now
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Erro ao atualizar status da conexão")
            return
        logger.info("Status da conexão atualizado: %s", status)

    def handle_qrcode_updated(self, instance_name: str, data: Any) -> None:
        qr = parse_qrcode_event(data)
        if not qr.present:
            logger.info("qrcode.updated sem base64 válido, ignorado")
            return

        row = find_instance(self.db, instance_name)
        if row is None:
            logger.warning("qrcode.updated para instância desconhecida, descartado")
            return

        row.qr_code = qr.value
        row.qr_code_expires_at = self._now() + timedelta(seconds=self.settings.qr_ttl_seconds)
        row.status = INSTANCE_STATUS_CONNECTING
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Erro ao atualizar QR code")
            return
        logger.info("QR code atualizado shape=%s length=%s", qr.shape, len(qr.value or ""))

    def handle_messages_upsert(self, instance_name: str, data: Any) -> None:
        instance = find_instance(self.db, instance_name)
        if instance is None:
            logger.warning("messages.upsert para instância desconhecida, descartado")
            return

        stored = 0
        for message in normalize_messages(data):
            key = message.get("key")
            if not isinstance(key, dict):
                continue
            remote_jid = key.get("remoteJid")
            message_id = key.get("id")
            customer_phone = strip_jid(remote_jid)
            if not customer_phone or not message_id:
                continue

            try:
                if self._store_message(instance, message, key, customer_phone, str(message_id)):
                    stored += 1
            except (SQLAlchemyError, ConversationConflictError):
                self.db.rollback()
                logger.exception("Erro ao gravar mensagem message_id=%s", message_id)

        logger.info("messages.upsert processado stored=%s", stored)

    def _store_message(
        self,
        instance: WhatsAppInstance,
        message: dict[str, Any],
        key: dict[str, Any],
        customer_phone: str,
        message_id: str,
    ) -> bool:
        if message_exists(self.db, instance_id=instance.id, message_id=message_id):
            logger.info("Mensagem duplicada ignorada message_id=%s", message_id)
            return False

        now = self._now()
        conversation = get_or_create_conversation(
            self.db,
            instance=instance,
            customer_phone=customer_phone,
            customer_name=message.get("pushName") or None,
            now=now,
        )
        content = classify_message_content(message.get("message"))
        direction = "outgoing" if key.get("fromMe") else "incoming"
        saved = insert_message(
            self.db,
            instance=instance,
            conversation=conversation,
            message_id=message_id,
            direction=direction,
            content=content,
            now=now,
        )
        return saved is not None


def _instance_name(value: Any) -> str | None:
    if isinstance(value, dict):
        value = value.get("instanceName") or value.get("name")
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None
