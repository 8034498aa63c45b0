"""Ciclo de vida da instância WhatsApp de um bot.

Fluxo de conexão: carrega o bot, reaproveita um QR ainda válido, consulta o
gateway, cria a instância quando necessário, busca o QR com tentativas
limitadas e, se nada vier, força delete + recreate e tenta uma última vez.
O resultado é gravado na linha ``whatsapp_instances`` do bot.
"""
from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta
from typing import Any, Callable

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.clock import as_utc, isoformat, utcnow
from app.core.config import GatewaySettings
from app.core.request_context import set_request_context
from app.models.bot_configuration import BotConfiguration
from app.models.whatsapp_instance import (
    INSTANCE_STATUS_CONNECTING,
    INSTANCE_STATUS_DISCONNECTED,
    WhatsAppInstance,
    instance_name_for_bot,
)
from app.services.bot_config import get_bot_configuration
from app.services.conversation_store import find_instance
from app.whatsapp.base import GATEWAY_EVENTS, GatewayClient, GatewayError, InstanceAlreadyExistsError
from app.whatsapp.payloads import strip_jid

logger = logging.getLogger(__name__)

ALREADY_CONNECTED = "already_connected"


class LifecycleError(Exception):
    """Erro exibido ao operador (resposta 400)."""


class InvalidRequestError(LifecycleError):
    pass


class BotConfigNotFoundError(LifecycleError):
    def __init__(self, bot_id: str):
        super().__init__(f"Bot configuration not found: {bot_id}")
        self.bot_id = bot_id


class QrCodeUnavailableError(LifecycleError):
    def __init__(self, instance_name: str):
        super().__init__(f"QR code was not issued for instance {instance_name} after retries and reset")
        self.instance_name = instance_name


class InstanceLifecycleController:
    def __init__(
        self,
        db: Session,
        *,
        gateway: GatewayClient,
        settings: GatewaySettings,
        sleep: Callable[[float], None] = time.sleep,
        now: Callable[[], datetime] = utcnow,
    ) -> None:
        self.db = db
        self.gateway = gateway
        self.settings = settings
        self._sleep = sleep
        self._now = now

    # ------------------------------------------------------------------ connect

    def connect(self, bot_id: str | None) -> dict[str, Any]:
        if bot_id is None or not str(bot_id).strip():
            raise InvalidRequestError("botId is required")
        bot_id = str(bot_id).strip()

        bot = get_bot_configuration(self.db, bot_id)
        if bot is None:
            raise BotConfigNotFoundError(bot_id)

        instance_name = instance_name_for_bot(bot.id)
        bot_phone = bot.whatsapp_number or None
        set_request_context(bot_id=bot.id, instance_name=instance_name)
        logger.info("Processando conexão bot=%s instance=%s", bot.id, instance_name)

        cached = self._pending_qr(instance_name)
        if cached is not None:
            logger.info("QR ainda válido, reaproveitando")
            return {
                "qrCode": cached.qr_code,
                "instanceName": instance_name,
                "phoneNumber": cached.phone_number or bot_phone,
                "expiresAt": isoformat(cached.qr_code_expires_at),
            }

        upstream = self.gateway.fetch_instance(instance_name)
        if upstream is not None and upstream.is_open:
            logger.info("Instância já conectada no gateway")
            return {
                "status": ALREADY_CONNECTED,
                "instanceName": instance_name,
                "phoneNumber": strip_jid(upstream.owner_jid) or bot_phone,
            }

        if upstream is None:
            logger.info("Instância não encontrada no gateway, criando")
            self._create_instance(instance_name, tolerate_failure=False)
        else:
            logger.info("Instância existe no gateway state=%s, buscando QR", upstream.state)

        qr_code = self._acquire_qr(instance_name)
        if not qr_code:
            qr_code = self._force_reset(instance_name)

        expires_at = self._now() + timedelta(seconds=self.settings.qr_ttl_seconds) if qr_code else None
        logger.info("QR final presente=%s", bool(qr_code))
        self._persist_connecting(bot, instance_name, qr_code=qr_code, expires_at=expires_at)

        if not qr_code:
            raise QrCodeUnavailableError(instance_name)

        return {
            "qrCode": qr_code,
            "instanceName": instance_name,
            "phoneNumber": bot_phone,
            "expiresAt": isoformat(expires_at),
        }

    def _pending_qr(self, instance_name: str) -> WhatsAppInstance | None:
        row = find_instance(self.db, instance_name)
        if row is None or row.status != INSTANCE_STATUS_CONNECTING or not row.qr_code:
            return None
        expires_at = as_utc(row.qr_code_expires_at)
        if expires_at is None or expires_at <= self._now():
            return None
        return row

    def _create_instance(self, instance_name: str, *, tolerate_failure: bool) -> bool:
        try:
            self.gateway.create_instance(
                instance_name,
                webhook_url=self.settings.webhook_url,
                events=GATEWAY_EVENTS,
            )
        except InstanceAlreadyExistsError:
            logger.info("Instância já existe no gateway (corrida?), seguindo só com connect")
            return False
        except GatewayError:
            if not tolerate_failure:
                raise
            logger.exception("Falha ao recriar instância no reset, seguindo para última tentativa")
            return False
        logger.info("Instância criada, aguardando QR")
        return True

    def _acquire_qr(self, instance_name: str) -> str | None:
        max_attempts = self.settings.qr_max_attempts
        for attempt in range(1, max_attempts + 1):
            logger.info("Tentativa de QR %s/%s", attempt, max_attempts)
            result = self.gateway.connect(instance_name)
            if result.success and result.qr_code:
                logger.info("QR obtido na tentativa %s", attempt)
                return result.qr_code
            if not result.success:
                logger.info("Tentativa %s falhou: %s", attempt, result.error)
            else:
                logger.info("Tentativa %s sem QR", attempt)

            if attempt < max_attempts:
                self._sleep(self.settings.retry_delay(attempt))
        return None

    def _force_reset(self, instance_name: str) -> str | None:
        logger.warning("QR não obtido após %s tentativas, forçando reset", self.settings.qr_max_attempts)
        self.gateway.delete_instance(instance_name)
        self._sleep(self.settings.reset_cleanup_seconds)

        self._create_instance(instance_name, tolerate_failure=True)
        self._sleep(self.settings.reset_settle_seconds)

        result = self.gateway.connect(instance_name)
        if result.success and result.qr_code:
            return result.qr_code
        logger.warning("Última tentativa após reset sem QR: %s", result.error)
        return None

    def _persist_connecting(
        self,
        bot: BotConfiguration,
        instance_name: str,
        *,
        qr_code: str | None,
        expires_at: datetime | None,
    ) -> None:
        bot_id = bot.id
        bot_phone = bot.whatsapp_number or None
        for attempt in (1, 2):
            try:
                row = find_instance(self.db, instance_name)
                if row is None:
                    row = WhatsAppInstance(bot_configuration_id=bot_id, instance_name=instance_name)
                    self.db.add(row)
                row.bot_configuration_id = bot_id
                row.status = INSTANCE_STATUS_CONNECTING
                row.qr_code = qr_code
                row.qr_code_expires_at = expires_at
                if bot_phone:
                    row.phone_number = bot_phone
                self.db.commit()
                return
            except IntegrityError:
                self.db.rollback()
                if attempt == 2:
                    logger.exception("Upsert da instância falhou após conflito")
                    return
                logger.info("Instância inserida concorrentemente, refazendo como update")
            except SQLAlchemyError:
                self.db.rollback()
                logger.exception("Upsert da instância falhou")
                return

    # --------------------------------------------------------------- disconnect

    def disconnect(self, instance_name: str | None) -> dict[str, Any]:
        if not instance_name or not str(instance_name).strip():
            raise InvalidRequestError("Instance name is required")
        instance_name = str(instance_name).strip()
        set_request_context(instance_name=instance_name)

        logger.info("Removendo instância")
        try:
            deleted = self.gateway.delete_instance(instance_name)
        except Exception:
            logger.exception("Erro ao remover instância do gateway (seguindo mesmo assim)")
            deleted = False
        if not deleted:
            logger.warning("Gateway não confirmou remoção")

        try:
            updated = (
                self.db.query(WhatsAppInstance)
                .filter(WhatsAppInstance.instance_name == instance_name)
                .update(
                    {
                        WhatsAppInstance.status: INSTANCE_STATUS_DISCONNECTED,
                        WhatsAppInstance.qr_code: None,
                        WhatsAppInstance.qr_code_expires_at: None,
                        WhatsAppInstance.phone_number: None,
                    },
                    synchronize_session=False,
                )
            )
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Falha ao resetar instância local")
            raise LifecycleError(f"Failed to update instance {instance_name}") from exc
        logger.info("Instância desconectada localmente rows=%s", updated)
        return {"success": True}

    # ------------------------------------------------------------------- status

    def get_status(self, instance_name: str) -> dict[str, Any] | None:
        row = find_instance(self.db, instance_name)
        if row is None:
            return None

        qr_code = row.qr_code
        expires_at = as_utc(row.qr_code_expires_at)
        qr_expired = False
        if row.status == INSTANCE_STATUS_CONNECTING and expires_at is not None and expires_at <= self._now():
            qr_code = None
            qr_expired = True

        return {
            "instanceName": row.instance_name,
            "botId": row.bot_configuration_id,
            "status": row.status,
            "qrCode": qr_code,
            "qrExpired": qr_expired,
            "expiresAt": isoformat(expires_at),
            "phoneNumber": row.phone_number,
            "connectedAt": isoformat(row.connected_at),
            "lastSeen": isoformat(row.last_seen),
        }
