from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.services.bot_config import find_active_bot_by_number, serialize_bot_configuration

router = APIRouter(prefix="/api", tags=["bot-config"])
logger = logging.getLogger(__name__)


@router.post("/bot-config")
async def get_bot_config(request: Request, db: Session = Depends(get_db)):
    raw_body = await request.body()
    try:
        if not raw_body:
            raise ValueError("Body is empty string")
        body = json.loads(raw_body)
    except (ValueError, UnicodeDecodeError) as exc:
        logger.warning("bot-config com corpo inválido: %s", exc)
        return JSONResponse({"error": "Request body is empty or invalid JSON."}, status_code=400)

    whatsapp_number = body.get("whatsapp_number") if isinstance(body, dict) else None
    if not whatsapp_number:
        return JSONResponse({"error": "whatsapp_number is required"}, status_code=400)

    bot = find_active_bot_by_number(db, str(whatsapp_number))
    if bot is None:
        logger.info("Bot ativo não encontrado para número %s", whatsapp_number)
        return JSONResponse({"error": "Bot not found"}, status_code=404)

    return serialize_bot_configuration(bot)
