from __future__ import annotations

import logging

from ai_services.core.settings import Settings
from ai_services.errors import IllegalConfigurationError
from ai_services.models.base import ChatLanguageModel, StreamingChatLanguageModel
from ai_services.models.mock import ScriptedChatModel, ScriptedStreamingChatModel
from ai_services.models.openai_client import OpenAiChatModel, OpenAiStreamingChatModel

logger = logging.getLogger(__name__)


def _openai_kwargs(settings: Settings) -> dict[str, object]:
    if not settings.openai_api_key:
        raise IllegalConfigurationError("OPENAI_API_KEY is required unless AI_SERVICES_USE_MOCK is enabled")
    return {
        "api_key": settings.openai_api_key,
        "base_url": settings.openai_base_url,
        "model_name": settings.model_name,
        "temperature": settings.temperature,
        "timeout_seconds": settings.timeout_seconds,
        "max_retries": settings.max_retries,
    }


def build_chat_model(settings: Settings) -> ChatLanguageModel:
    """Create a chat model with a real or scripted backend."""

    if settings.use_mock:
        logger.info("using ScriptedChatModel", extra={"mock_messages_file": settings.mock_messages_file})
        return ScriptedChatModel.from_file(settings.mock_messages_file)

    logger.info("using OpenAiChatModel", extra={"model_name": settings.model_name})
    return OpenAiChatModel(**_openai_kwargs(settings))


def build_streaming_chat_model(settings: Settings) -> StreamingChatLanguageModel:
    """Create a streaming chat model with a real or scripted backend."""

    if settings.use_mock:
        logger.info("using ScriptedStreamingChatModel", extra={"mock_messages_file": settings.mock_messages_file})
        return ScriptedStreamingChatModel.from_file(settings.mock_messages_file)

    logger.info("using OpenAiStreamingChatModel", extra={"model_name": settings.model_name})
    return OpenAiStreamingChatModel(**_openai_kwargs(settings))
