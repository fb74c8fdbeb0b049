from __future__ import annotations

from collections.abc import Hashable, Sequence
from typing import Protocol

from ai_services.messages import ChatMessage


class ChatMemoryStore(Protocol):
    """Protocol for persisting chat memory contents keyed by memory id."""

    def get_messages(self, memory_id: Hashable) -> list[ChatMessage]:
        ...

    def update_messages(self, memory_id: Hashable, messages: Sequence[ChatMessage]) -> None:
        ...

    def delete_messages(self, memory_id: Hashable) -> None:
        ...


class InMemoryChatMemoryStore:
    """Process-local chat memory store backed by a dict."""

    def __init__(self) -> None:
        self._messages: dict[Hashable, list[ChatMessage]] = {}

    def get_messages(self, memory_id: Hashable) -> list[ChatMessage]:
        return list(self._messages.get(memory_id, []))

    def update_messages(self, memory_id: Hashable, messages: Sequence[ChatMessage]) -> None:
        self._messages[memory_id] = list(messages)

    def delete_messages(self, memory_id: Hashable) -> None:
        self._messages.pop(memory_id, None)
