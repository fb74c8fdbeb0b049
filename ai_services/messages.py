from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, Literal

ChatMessageType = Literal["system", "user", "ai", "tool_execution_result"]


@dataclass(frozen=True)
class ToolExecutionRequest:
    """A tool call the model asked for, with its JSON-encoded arguments."""

    name: str
    arguments: str = "{}"
    id: str | None = None


class ChatMessage:
    """Base type of every message exchanged with a chat model."""

    type: ClassVar[ChatMessageType]
    text: str | None


@dataclass(frozen=True)
class SystemMessage(ChatMessage):
    type: ClassVar[ChatMessageType] = "system"

    text: str


@dataclass(frozen=True)
class UserMessage(ChatMessage):
    type: ClassVar[ChatMessageType] = "user"

    text: str
    name: str | None = None


@dataclass(frozen=True)
class AiMessage(ChatMessage):
    type: ClassVar[ChatMessageType] = "ai"

    text: str | None = None
    tool_execution_requests: tuple[ToolExecutionRequest, ...] = field(default_factory=tuple)

    @property
    def tool_execution_request(self) -> ToolExecutionRequest | None:
        return self.tool_execution_requests[0] if self.tool_execution_requests else None

    def has_tool_execution_requests(self) -> bool:
        return bool(self.tool_execution_requests)


@dataclass(frozen=True)
class ToolExecutionResultMessage(ChatMessage):
    type: ClassVar[ChatMessageType] = "tool_execution_result"

    id: str | None
    tool_name: str
    text: str

    @classmethod
    def from_request(cls, request: ToolExecutionRequest, result: str) -> ToolExecutionResultMessage:
        return cls(id=request.id, tool_name=request.name, text=result)
