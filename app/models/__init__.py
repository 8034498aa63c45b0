from app.models.bot_configuration import BotConfiguration
from app.models.whatsapp_instance import WhatsAppInstance
from app.models.whatsapp_conversation import WhatsAppConversation
from app.models.whatsapp_message import WhatsAppMessage
