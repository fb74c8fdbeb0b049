"""Chat model contracts and their OpenAI and scripted implementations."""

from ai_services.models.base import (
    ChatLanguageModel,
    CompleteResponse,
    FinishReason,
    PartialResponse,
    Response,
    StreamEvent,
    StreamingChatLanguageModel,
    TokenUsage,
)
from ai_services.models.factory import build_chat_model, build_streaming_chat_model
from ai_services.models.mock import ScriptedChatModel, ScriptedStreamingChatModel
from ai_services.models.openai_client import OpenAiChatModel, OpenAiStreamingChatModel

__all__ = [
    "ChatLanguageModel",
    "CompleteResponse",
    "FinishReason",
    "OpenAiChatModel",
    "OpenAiStreamingChatModel",
    "PartialResponse",
    "Response",
    "ScriptedChatModel",
    "ScriptedStreamingChatModel",
    "StreamEvent",
    "StreamingChatLanguageModel",
    "TokenUsage",
    "build_chat_model",
    "build_streaming_chat_model",
]
