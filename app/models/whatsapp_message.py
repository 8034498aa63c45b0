from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint

from app.core.database import Base

MEDIA_TYPES = {"image", "audio", "video", "document", "sticker"}


class WhatsAppMessage(Base):
    __tablename__ = "whatsapp_messages"
    __table_args__ = (
        UniqueConstraint("whatsapp_instance_id", "message_id", name="uq_whatsapp_messages_instance_message"),
    )

    id = Column(Integer, primary_key=True)
    conversation_id = Column(Integer, ForeignKey("whatsapp_conversations.id"), index=True, nullable=False)
    whatsapp_instance_id = Column(Integer, ForeignKey("whatsapp_instances.id"), nullable=False)
    message_id = Column(String, nullable=False)
    direction = Column(String, nullable=False)
    content = Column(Text, nullable=False, default="")
    media_type = Column(String, nullable=True)
    status = Column(String, nullable=False, default="sent")
    sent_at = Column(DateTime(timezone=True), nullable=False)


Index("ix_whatsapp_messages_conversation_sent", WhatsAppMessage.conversation_id, WhatsAppMessage.sent_at)
