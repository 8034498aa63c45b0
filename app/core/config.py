import os
from dataclasses import dataclass
from dotenv import load_dotenv

# Carrega o .env da raiz do projeto
load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./whatsapp_gateway.db")
ENV = os.getenv("ENV", "dev")
ENV_NORMALIZED = ENV.lower()
IS_DEV = ENV_NORMALIZED in {"dev", "development", "local"}
IS_PROD = ENV_NORMALIZED in {"prod", "production"}

# Evolution API (gateway WhatsApp)
EVOLUTION_API_URL = os.getenv("EVOLUTION_API_URL", "").strip().rstrip("/")
EVOLUTION_API_KEY = os.getenv("EVOLUTION_API_KEY", "").strip()
WHATSAPP_GATEWAY_PROVIDER = os.getenv("WHATSAPP_GATEWAY_PROVIDER", "evolution").strip().lower()
WEBHOOK_BASE_URL = os.getenv("WEBHOOK_BASE_URL", "http://localhost:8000").strip().rstrip("/")
WEBHOOK_PATH = "/api/whatsapp/webhook"

# CORS
_cors_env = os.getenv("CORS_ORIGINS", "*")
CORS_ORIGINS = [origin.strip() for origin in _cors_env.split(",") if origin.strip()] or ["*"]
CORS_ALLOW_ALL = "*" in CORS_ORIGINS


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise RuntimeError(f"Invalid {name}: {raw}") from exc


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"Invalid {name}: {raw}") from exc


@dataclass(frozen=True)
class GatewaySettings:
    base_url: str
    api_key: str
    webhook_url: str
    provider: str = "evolution"
    timeout_seconds: float = 20.0
    qr_max_attempts: int = 10
    qr_short_attempts: int = 2
    qr_short_delay_seconds: float = 1.5
    qr_long_delay_seconds: float = 3.0
    reset_cleanup_seconds: float = 5.0
    reset_settle_seconds: float = 2.0
    qr_ttl_seconds: int = 300

    def retry_delay(self, attempt: int) -> float:
        """Espera após a tentativa ``attempt`` (1-based) do loop de QR."""
        if attempt <= self.qr_short_attempts:
            return self.qr_short_delay_seconds
        return self.qr_long_delay_seconds


def load_gateway_settings() -> GatewaySettings:
    return GatewaySettings(
        base_url=EVOLUTION_API_URL,
        api_key=EVOLUTION_API_KEY,
        webhook_url=f"{WEBHOOK_BASE_URL}{WEBHOOK_PATH}",
        provider=WHATSAPP_GATEWAY_PROVIDER,
        timeout_seconds=_env_float("WHATSAPP_GATEWAY_TIMEOUT_SECONDS", 20.0),
        qr_max_attempts=_env_int("WHATSAPP_QR_MAX_ATTEMPTS", 10),
        qr_short_attempts=_env_int("WHATSAPP_QR_SHORT_ATTEMPTS", 2),
        qr_short_delay_seconds=_env_float("WHATSAPP_QR_SHORT_DELAY_SECONDS", 1.5),
        qr_long_delay_seconds=_env_float("WHATSAPP_QR_LONG_DELAY_SECONDS", 3.0),
        reset_cleanup_seconds=_env_float("WHATSAPP_RESET_CLEANUP_SECONDS", 5.0),
        reset_settle_seconds=_env_float("WHATSAPP_RESET_SETTLE_SECONDS", 2.0),
        qr_ttl_seconds=_env_int("WHATSAPP_QR_TTL_SECONDS", 300),
    )
