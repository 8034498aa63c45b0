from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.whatsapp_conversation import WhatsAppConversation
from app.models.whatsapp_instance import WhatsAppInstance
from app.models.whatsapp_message import WhatsAppMessage
from app.whatsapp.payloads import MessageContent

logger = logging.getLogger(__name__)


class ConversationConflictError(RuntimeError):
    """Conversa sumiu entre o conflito de unicidade e a releitura."""


def find_instance(db: Session, instance_name: str) -> WhatsAppInstance | None:
    return db.query(WhatsAppInstance).filter(WhatsAppInstance.instance_name == instance_name).first()


def find_conversation(db: Session, *, instance_id: int, customer_phone: str) -> WhatsAppConversation | None:
    return (
        db.query(WhatsAppConversation)
        .filter(
            WhatsAppConversation.whatsapp_instance_id == instance_id,
            WhatsAppConversation.customer_phone == customer_phone,
        )
        .first()
    )


def message_exists(db: Session, *, instance_id: int, message_id: str) -> bool:
    return (
        db.query(WhatsAppMessage.id)
        .filter(
            WhatsAppMessage.whatsapp_instance_id == instance_id,
            WhatsAppMessage.message_id == message_id,
        )
        .first()
        is not None
    )


def _touch_conversation(
    conversation: WhatsAppConversation,
    *,
    customer_name: str | None,
    now: datetime,
) -> None:
    conversation.last_message_at = now
    if customer_name:
        conversation.customer_name = customer_name


def get_or_create_conversation(
    db: Session,
    *,
    instance: WhatsAppInstance,
    customer_phone: str,
    customer_name: str | None,
    now: datetime,
) -> WhatsAppConversation:
    conversation = find_conversation(db, instance_id=instance.id, customer_phone=customer_phone)
    if conversation:
        _touch_conversation(conversation, customer_name=customer_name, now=now)
        db.commit()
        return conversation

    conversation = WhatsAppConversation(
        whatsapp_instance_id=instance.id,
        bot_configuration_id=instance.bot_configuration_id,
        customer_phone=customer_phone,
        customer_name=customer_name or None,
        last_message_at=now,
        status="active",
    )
    db.add(conversation)
    try:
        db.commit()
        return conversation
    except IntegrityError:
        db.rollback()

    # outra entrega criou a mesma conversa entre o SELECT e o INSERT
    logger.info("Conversa criada concorrentemente, atualizando phone=%s", customer_phone)
    conversation = find_conversation(db, instance_id=instance.id, customer_phone=customer_phone)
    if conversation is None:
        raise ConversationConflictError(f"Conversa não encontrada após conflito de unicidade: {customer_phone}")
    _touch_conversation(conversation, customer_name=customer_name, now=now)
    db.commit()
    return conversation


def insert_message(
    db: Session,
    *,
    instance: WhatsAppInstance,
    conversation: WhatsAppConversation,
    message_id: str,
    direction: str,
    content: MessageContent,
    now: datetime,
) -> WhatsAppMessage | None:
    """Grava a mensagem uma única vez; devolve None quando ``message_id`` já existe."""
    if message_exists(db, instance_id=instance.id, message_id=message_id):
        return None

    message = WhatsAppMessage(
        conversation_id=conversation.id,
        whatsapp_instance_id=instance.id,
        message_id=message_id,
        direction=direction,
        content=content.content,
        media_type=content.media_type,
        status="sent",
        sent_at=now,
    )
    db.add(message)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return None
    return message
