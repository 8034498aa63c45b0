from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, func

from app.core.database import Base

INSTANCE_STATUS_DISCONNECTED = "disconnected"
INSTANCE_STATUS_CONNECTING = "connecting"
INSTANCE_STATUS_CONNECTED = "connected"
INSTANCE_STATUSES = {
    INSTANCE_STATUS_DISCONNECTED,
    INSTANCE_STATUS_CONNECTING,
    INSTANCE_STATUS_CONNECTED,
}


def instance_name_for_bot(bot_id: str) -> str:
    return f"bot-{bot_id}"


class WhatsAppInstance(Base):
    __tablename__ = "whatsapp_instances"

    id = Column(Integer, primary_key=True)
    bot_configuration_id = Column(String(64), ForeignKey("bot_configurations.id"), index=True, nullable=False)
    # chave natural do upsert; uma linha por instância no gateway
    instance_name = Column(String, unique=True, index=True, nullable=False)

    status = Column(String, nullable=False, default=INSTANCE_STATUS_DISCONNECTED)
    qr_code = Column(Text, nullable=True)
    qr_code_expires_at = Column(DateTime(timezone=True), nullable=True)
    phone_number = Column(String, nullable=True)
    connected_at = Column(DateTime(timezone=True), nullable=True)
    last_seen = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
