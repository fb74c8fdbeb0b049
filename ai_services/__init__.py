"""Declarative AI services over OpenAI-compatible chat models."""

from ai_services.errors import (
    AiServicesError,
    IllegalConfigurationError,
    ModelProviderError,
    TokenStreamError,
    ToolInvocationLimitError,
)
from ai_services.memory import ChatMemory, InMemoryChatMemoryStore, MessageWindowChatMemory
from ai_services.messages import (
    AiMessage,
    ChatMessage,
    SystemMessage,
    ToolExecutionRequest,
    ToolExecutionResultMessage,
    UserMessage,
)
from ai_services.models import (
    OpenAiChatModel,
    OpenAiStreamingChatModel,
    Response,
    ScriptedChatModel,
    ScriptedStreamingChatModel,
    TokenUsage,
)
from ai_services.service import AiServices, MemoryId, TokenStream, system_message, user_message
from ai_services.tools import tool

__all__ = [
    "AiMessage",
    "AiServices",
    "AiServicesError",
    "ChatMemory",
    "ChatMessage",
    "IllegalConfigurationError",
    "InMemoryChatMemoryStore",
    "MemoryId",
    "MessageWindowChatMemory",
    "ModelProviderError",
    "OpenAiChatModel",
    "OpenAiStreamingChatModel",
    "Response",
    "ScriptedChatModel",
    "ScriptedStreamingChatModel",
    "SystemMessage",
    "TokenStream",
    "TokenStreamError",
    "TokenUsage",
    "ToolExecutionRequest",
    "ToolExecutionResultMessage",
    "ToolInvocationLimitError",
    "UserMessage",
    "system_message",
    "tool",
    "user_message",
]
