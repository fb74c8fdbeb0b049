"""AI service facade binding declared interfaces to chat models."""

from ai_services.service.ai_services import AiServiceContext, AiServices
from ai_services.service.templates import MemoryId, system_message, user_message
from ai_services.service.token_stream import TokenStream

__all__ = ["AiServiceContext", "AiServices", "MemoryId", "TokenStream", "system_message", "user_message"]
