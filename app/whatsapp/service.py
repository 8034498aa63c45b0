from __future__ import annotations

import logging
from functools import lru_cache

from app.core.config import GatewaySettings, load_gateway_settings
from app.whatsapp.base import GatewayClient
from app.whatsapp.evolution_client import EvolutionGatewayClient
from app.whatsapp.mock_client import MockGatewayClient

logger = logging.getLogger(__name__)


def build_gateway_client(settings: GatewaySettings) -> GatewayClient:
    if settings.provider == "mock":
        return MockGatewayClient()
    if settings.provider != "evolution":
        logger.warning("Provider de gateway desconhecido '%s', usando evolution", settings.provider)
    return EvolutionGatewayClient(settings)


@lru_cache(maxsize=1)
def get_gateway_settings() -> GatewaySettings:
    return load_gateway_settings()


@lru_cache(maxsize=1)
def get_gateway_client() -> GatewayClient:
    return build_gateway_client(get_gateway_settings())
