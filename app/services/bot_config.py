from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session

from app.core.clock import isoformat
from app.models.bot_configuration import BotConfiguration


def get_bot_configuration(db: Session, bot_id: str) -> BotConfiguration | None:
    return db.query(BotConfiguration).filter(BotConfiguration.id == str(bot_id)).first()


def find_active_bot_by_number(db: Session, whatsapp_number: str) -> BotConfiguration | None:
    return (
        db.query(BotConfiguration)
        .filter(
            BotConfiguration.whatsapp_number == whatsapp_number,
            BotConfiguration.is_active.is_(True),
        )
        .first()
    )


def serialize_bot_configuration(bot: BotConfiguration) -> dict[str, Any]:
    return {
        "id": bot.id,
        "organization_id": bot.organization_id,
        "bot_name": bot.bot_name,
        "company_name": bot.company_name,
        "tone_of_voice": bot.tone_of_voice,
        "system_prompt": bot.system_prompt,
        "whatsapp_number": bot.whatsapp_number,
        "typebot_id": bot.typebot_id,
        "knowledge_base_enabled": bool(bot.knowledge_base_enabled),
        "is_active": bool(bot.is_active),
        "created_at": isoformat(bot.created_at),
        "updated_at": isoformat(bot.updated_at),
    }
