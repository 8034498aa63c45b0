from __future__ import annotations

from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import GatewaySettings
from app.core.database import Base
import app.models  # noqa: F401
from app.models.bot_configuration import BotConfiguration
from tests.fixtures_data import FIXED_NOW


class SleepRecorder:
    def __init__(self):
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class Clock:
    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def gateway_settings():
    return GatewaySettings(
        base_url="http://evolution.test",
        api_key="test-api-key",
        webhook_url="http://hooks.test/api/whatsapp/webhook",
    )


@pytest.fixture
def sleep_recorder():
    return SleepRecorder()


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def bot(db):
    bot = BotConfiguration(id="b1", bot_name="Atendente", company_name="Loja Teste", is_active=True)
    db.add(bot)
    db.commit()
    return bot
