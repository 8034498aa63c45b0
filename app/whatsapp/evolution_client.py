from __future__ import annotations

import json
import logging
import time
from typing import Any, Iterable

import httpx

from app.core.config import GatewaySettings
from app.core.metrics import request_metrics
from app.whatsapp.base import (
    GATEWAY_EVENTS,
    ConnectResult,
    GatewayClient,
    GatewayConfigurationError,
    GatewayError,
    GatewayInstance,
    GatewayUnavailableError,
    InstanceAlreadyExistsError,
    safe_json,
    sanitize_payload,
)
from app.whatsapp.payloads import parse_connect_qr, parse_instance_list, select_instance

logger = logging.getLogger(__name__)

# Evolution v1 responde "already in use", versões antigas "already exists"
ALREADY_EXISTS_MARKERS = ("already exists", "already in use")


def _decode_json(body_text: str) -> Any:
    try:
        return json.loads(body_text) if body_text else {}
    except json.JSONDecodeError:
        return {}


class EvolutionGatewayClient(GatewayClient):
    """Cliente HTTP da Evolution API (gestão de instâncias)."""

    INTEGRATION = "WHATSAPP-BAILEYS"

    def __init__(self, settings: GatewaySettings, *, transport: httpx.BaseTransport | None = None) -> None:
        self._settings = settings
        self._transport = transport

    def _client(self) -> httpx.Client:
        if not self._settings.base_url:
            raise GatewayConfigurationError("EVOLUTION_API_URL não configurada")
        return httpx.Client(
            base_url=self._settings.base_url,
            headers={"apikey": self._settings.api_key},
            timeout=self._settings.timeout_seconds,
            transport=self._transport,
        )

    def _request(self, operation: str, method: str, path: str, **kwargs: Any) -> httpx.Response:
        client = self._client()
        start = time.perf_counter()
        status_code = None
        try:
            with client:
                response = client.request(method, path, **kwargs)
            status_code = response.status_code
            return response
        except httpx.TransportError as exc:
            logger.warning("Gateway %s %s falhou: %s", method, path, exc)
            raise GatewayUnavailableError(str(exc)) from exc
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            request_metrics.observe_gateway(operation, status_code, duration_ms)

    def fetch_instance(self, instance_name: str) -> GatewayInstance | None:
        response = self._request(
            "fetch_instance",
            "GET",
            "/instance/fetchInstances",
            params={"instanceName": instance_name},
        )
        if not (200 <= response.status_code < 300):
            logger.info(
                "fetchInstances sem resultado status=%s body=%s",
                response.status_code,
                response.text[:500],
            )
            return None

        instances = parse_instance_list(_decode_json(response.text))
        found = select_instance(instances, instance_name)
        if found:
            logger.info("Instância encontrada no gateway name=%s state=%s", found.name, found.state)
        return found

    def list_instances(self) -> list[GatewayInstance]:
        response = self._request("list_instances", "GET", "/instance/fetchInstances")
        if not (200 <= response.status_code < 300):
            raise GatewayError(response.status_code, response.text)
        return parse_instance_list(_decode_json(response.text))

    def create_instance(
        self,
        instance_name: str,
        *,
        webhook_url: str,
        events: Iterable[str] = GATEWAY_EVENTS,
    ) -> dict[str, Any]:
        payload = {
            "instanceName": instance_name,
            # QR é buscado via /instance/connect; gerar aqui estoura o timeout
            "qrcode": False,
            "integration": self.INTEGRATION,
            "webhook": {"url": webhook_url, "events": list(events)},
        }
        response = self._request("create_instance", "POST", "/instance/create", json=payload)
        body_text = response.text
        logger.info(
            "Create response status=%s body=%s",
            response.status_code,
            safe_json(sanitize_payload(_decode_json(body_text))),
        )

        if not (200 <= response.status_code < 300):
            if any(marker in body_text.lower() for marker in ALREADY_EXISTS_MARKERS):
                raise InstanceAlreadyExistsError(response.status_code, body_text)
            raise GatewayError(
                response.status_code,
                body_text,
                message=f"Falha ao criar instância: {body_text}",
            )

        data = _decode_json(body_text)
        return data if isinstance(data, dict) else {}

    def connect(self, instance_name: str) -> ConnectResult:
        try:
            response = self._request("connect", "GET", f"/instance/connect/{instance_name}")
        except GatewayUnavailableError as exc:
            return ConnectResult(success=False, error=str(exc))

        if not (200 <= response.status_code < 300):
            return ConnectResult(success=False, error=f"{response.status_code}: {response.text[:500]}")

        data = _decode_json(response.text)
        if not isinstance(data, dict):
            data = {}
        qr = parse_connect_qr(data)
        logger.info("Connect response qr_shape=%s", qr.shape)
        return ConnectResult(success=True, qr_code=qr.value, payload=data)

    def delete_instance(self, instance_name: str) -> bool:
        try:
            response = self._request("delete_instance", "DELETE", f"/instance/delete/{instance_name}")
        except GatewayError:
            logger.exception("Erro ao remover instância do gateway (seguindo mesmo assim)")
            return False

        logger.info("Delete response status=%s body=%s", response.status_code, response.text[:500])
        return 200 <= response.status_code < 300
