import uuid

from sqlalchemy import Boolean, Column, DateTime, String, Text, func

from app.core.database import Base


class BotConfiguration(Base):
    __tablename__ = "bot_configurations"

    id = Column(String(64), primary_key=True, default=lambda: str(uuid.uuid4()))
    organization_id = Column(String(64), index=True, nullable=True)
    bot_name = Column(String, nullable=False, default="Assistente")
    company_name = Column(String, nullable=True)
    tone_of_voice = Column(String, nullable=False, default="professional")
    system_prompt = Column(Text, nullable=True)
    whatsapp_number = Column(String, index=True, nullable=True)
    typebot_id = Column(String, nullable=True)
    knowledge_base_enabled = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
