from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.services.webhook_events import WebhookEventRouter
from app.whatsapp.service import get_gateway_settings

router = APIRouter(prefix="/api/whatsapp", tags=["whatsapp-webhook"])
logger = logging.getLogger(__name__)


def get_webhook_router(db: Session = Depends(get_db)) -> WebhookEventRouter:
    return WebhookEventRouter(db, settings=get_gateway_settings())


async def _receive(request: Request, events: WebhookEventRouter):
    raw_body = await request.body()
    try:
        if not raw_body:
            raise ValueError("Body is empty string")
        payload = json.loads(raw_body)
    except (ValueError, UnicodeDecodeError) as exc:
        logger.warning("Webhook com corpo inválido: %s", exc)
        return JSONResponse({"error": f"Invalid JSON body: {exc}"}, status_code=400)

    if not isinstance(payload, dict):
        # JSON válido sem formato de evento: confirma para o gateway não reenviar
        logger.warning("Webhook com corpo não-objeto ignorado type=%s", type(payload).__name__)
        return {"success": True}

    event = await run_in_threadpool(events.dispatch, payload)
    logger.info("Webhook processado event=%s", event)
    return {"success": True}


@router.post("/webhook")
async def whatsapp_webhook(request: Request, events: WebhookEventRouter = Depends(get_webhook_router)):
    return await _receive(request, events)


# webhook_by_events=true acrescenta o nome do evento ao path (/webhook/connection-update)
@router.post("/webhook/{event_path}")
async def whatsapp_webhook_by_event(
    event_path: str,
    request: Request,
    events: WebhookEventRouter = Depends(get_webhook_router),
):
    return await _receive(request, events)
