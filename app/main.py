import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import CORS_ALLOW_ALL, CORS_ORIGINS, DATABASE_URL
from app.core.database import Base, engine
from app.core.logging_setup import configure_logging
from app.core.startup_checks import (
    ensure_migrations_applied,
    validate_database_environment,
    warn_missing_gateway_configuration,
)
from app.middleware.observability import ObservabilityMiddleware
import app.models  # garante que os models são importados antes do create_all

from app.routers.bot_config import router as bot_config_router
from app.routers.internal_metrics import router as internal_metrics_router
from app.routers.whatsapp_instances import router as whatsapp_instances_router
from app.routers.whatsapp_webhook import router as whatsapp_webhook_router
from app.services.instance_lifecycle import LifecycleError
from app.whatsapp.base import GatewayError

configure_logging()

logger = logging.getLogger(__name__)
STARTUP_PREFIX = "[STARTUP]"
REPO_ROOT = Path(__file__).resolve().parents[1]
ALEMBIC_CONFIG_PATH = Path(
    os.getenv("ALEMBIC_CONFIG", str(REPO_ROOT / "alembic.ini"))
)


@asynccontextmanager
async def lifespan(_: FastAPI):
    _startup_tasks()
    yield


app = FastAPI(
    title="WhatsApp Instance Gateway API",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if CORS_ALLOW_ALL else CORS_ORIGINS,
    allow_credentials=not CORS_ALLOW_ALL,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(ObservabilityMiddleware)


@app.exception_handler(LifecycleError)
async def lifecycle_error_handler(_: Request, exc: LifecycleError):
    logger.warning("Operação recusada: %s", exc)
    return JSONResponse({"error": str(exc)}, status_code=400)


@app.exception_handler(GatewayError)
async def gateway_error_handler(_: Request, exc: GatewayError):
    logger.error("Erro do gateway: %s", exc)
    return JSONResponse({"error": str(exc)}, status_code=400)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(_: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = errors[0].get("msg") if errors else "Invalid request"
    return JSONResponse({"error": str(message)}, status_code=400)


def _startup_tasks() -> None:
    try:
        validate_database_environment()
        if DATABASE_URL.startswith("sqlite"):
            Base.metadata.create_all(bind=engine)
        ensure_migrations_applied(engine=engine, alembic_config_path=ALEMBIC_CONFIG_PATH)
        warn_missing_gateway_configuration()
    except Exception:
        logger.exception("%s ERROR startup failed", STARTUP_PREFIX)
        raise


# Routers
app.include_router(whatsapp_instances_router)
app.include_router(whatsapp_webhook_router)
app.include_router(bot_config_router)
app.include_router(internal_metrics_router)


@app.get("/")
def root():
    return {"status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}
