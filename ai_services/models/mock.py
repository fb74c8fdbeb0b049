from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
import logging
from pathlib import Path
import re

from ai_services.messages import AiMessage, ChatMessage
from ai_services.models.base import CompleteResponse, PartialResponse, Response, StreamEvent, TokenUsage
from ai_services.tools.specification import ToolSpecification

logger = logging.getLogger(__name__)

MOCK_MESSAGE_DELIMITER = "\n\n--- message ---\n\n"
_TOKEN_PATTERN = re.compile(r"\s*\S+")


def load_mock_messages(messages_file: str) -> list[str]:
    path = Path(messages_file)
    raw_content = path.read_text(encoding="utf-8")
    parsed_messages = [chunk.strip() for chunk in raw_content.split(MOCK_MESSAGE_DELIMITER)]
    messages = [message for message in parsed_messages if message]
    if not messages:
        raise ValueError(
            f"No mock messages found in {path}. Use delimiter {MOCK_MESSAGE_DELIMITER!r} between messages."
        )
    return messages


def split_tokens(text: str) -> list[str]:
    return _TOKEN_PATTERN.findall(text)


class _ScriptedModelBase:
    def __init__(self, responses: Sequence[AiMessage | str]) -> None:
        if not responses:
            raise ValueError("scripted model needs at least one response")
        self._responses = [AiMessage(text=item) if isinstance(item, str) else item for item in responses]
        self._next_index = 0
        self.calls: list[tuple[list[ChatMessage], list[ToolSpecification]]] = []

    @classmethod
    def from_file(cls, messages_file: str):
        messages = load_mock_messages(messages_file)
        logger.info("loaded mock model messages", extra={"messages_count": len(messages)})
        return cls(messages)

    def _next_response(
        self,
        messages: Sequence[ChatMessage],
        tool_specifications: Sequence[ToolSpecification] | None,
    ) -> Response:
        self.calls.append((list(messages), list(tool_specifications or [])))
        message = self._responses[self._next_index]
        self._next_index = (self._next_index + 1) % len(self._responses)
        output_tokens = len(split_tokens(message.text or ""))
        input_tokens = sum(len(split_tokens(item.text or "")) for item in messages)
        return Response(
            content=message,
            token_usage=TokenUsage(input_tokens=input_tokens, output_tokens=output_tokens),
            finish_reason="tool_execution" if message.has_tool_execution_requests() else "stop",
        )


class ScriptedChatModel(_ScriptedModelBase):
    """Offline chat model cycling through predefined responses."""

    async def generate(
        self,
        messages: Sequence[ChatMessage],
        tool_specifications: Sequence[ToolSpecification] | None = None,
    ) -> Response:
        return self._next_response(messages, tool_specifications)


class ScriptedStreamingChatModel(_ScriptedModelBase):
    """Offline streaming model replaying predefined responses word by word."""

    async def stream(
        self,
        messages: Sequence[ChatMessage],
        tool_specifications: Sequence[ToolSpecification] | None = None,
    ) -> AsyncIterator[StreamEvent]:
        response = self._next_response(messages, tool_specifications)
        for token in split_tokens(response.content.text or ""):
            yield PartialResponse(token=token)
        yield CompleteResponse(response=response)
