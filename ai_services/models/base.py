from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass
from typing import Literal, Protocol

from ai_services.messages import AiMessage, ChatMessage
from ai_services.tools.specification import ToolSpecification

FinishReason = Literal["stop", "length", "tool_execution", "content_filter", "other"]


@dataclass(frozen=True)
class TokenUsage:
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def __add__(self, other: TokenUsage | None) -> TokenUsage:
        if other is None:
            return self
        return TokenUsage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
        )

    __radd__ = __add__


@dataclass(frozen=True)
class Response:
    content: AiMessage
    token_usage: TokenUsage | None = None
    finish_reason: FinishReason | None = None


@dataclass(frozen=True)
class PartialResponse:
    token: str


@dataclass(frozen=True)
class CompleteResponse:
    response: Response


StreamEvent = PartialResponse | CompleteResponse


class ChatLanguageModel(Protocol):
    """Model answering a conversation in a single response."""

    async def generate(
        self,
        messages: Sequence[ChatMessage],
        tool_specifications: Sequence[ToolSpecification] | None = None,
    ) -> Response:
        ...


class StreamingChatLanguageModel(Protocol):
    """Model streaming its answer token by token.

    Implementations yield any number of ``PartialResponse`` events followed by
    exactly one ``CompleteResponse`` carrying the aggregated message.
    """

    def stream(
        self,
        messages: Sequence[ChatMessage],
        tool_specifications: Sequence[ToolSpecification] | None = None,
    ) -> AsyncIterator[StreamEvent]:
        ...
