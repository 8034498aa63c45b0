from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint, func

from app.core.database import Base

CONVERSATION_STATUSES = {"active", "archived", "closed"}


class WhatsAppConversation(Base):
    __tablename__ = "whatsapp_conversations"
    __table_args__ = (
        UniqueConstraint("whatsapp_instance_id", "customer_phone", name="uq_whatsapp_conversations_instance_phone"),
    )

    id = Column(Integer, primary_key=True)
    whatsapp_instance_id = Column(Integer, ForeignKey("whatsapp_instances.id"), index=True, nullable=False)
    bot_configuration_id = Column(String(64), ForeignKey("bot_configurations.id"), index=True, nullable=True)
    customer_phone = Column(String, nullable=False)
    customer_name = Column(String, nullable=True)
    last_message_at = Column(DateTime(timezone=True), nullable=True)
    status = Column(String, nullable=False, default="active")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
