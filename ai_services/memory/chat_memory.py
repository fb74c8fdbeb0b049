from __future__ import annotations

from collections.abc import Hashable
import logging
from typing import Protocol

from ai_services.errors import IllegalConfigurationError
from ai_services.memory.store import ChatMemoryStore, InMemoryChatMemoryStore
from ai_services.messages import AiMessage, ChatMessage, SystemMessage, ToolExecutionResultMessage

logger = logging.getLogger(__name__)

DEFAULT_MEMORY_ID = "default"


class ChatMemory(Protocol):
    """Conversation history used as context for subsequent model calls."""

    @property
    def id(self) -> Hashable:
        ...

    def add(self, message: ChatMessage) -> None:
        ...

    def messages(self) -> list[ChatMessage]:
        ...

    def clear(self) -> None:
        ...


class MessageWindowChatMemory:
    """Chat memory retaining at most ``max_messages`` messages.

    The oldest messages are evicted first. A single system message is kept
    at the head of the window and never evicted. Evicting an AI message that
    requested tools also evicts the tool results that answer it, so the
    window never starts with an orphaned tool result.

    A window must be larger than the longest tool round it will hold (one AI
    message plus its results); a smaller one can evict a whole round and
    leave the window empty. AI services reject windows below two messages
    when tools are configured.
    """

    def __init__(
        self,
        max_messages: int,
        *,
        memory_id: Hashable = DEFAULT_MEMORY_ID,
        store: ChatMemoryStore | None = None,
    ) -> None:
        if max_messages < 1:
            raise IllegalConfigurationError("max_messages must be at least 1")
        self._max_messages = max_messages
        self._id = memory_id
        self._store = store if store is not None else InMemoryChatMemoryStore()

    @classmethod
    def with_capacity(cls, max_messages: int) -> MessageWindowChatMemory:
        return cls(max_messages)

    @property
    def id(self) -> Hashable:
        return self._id

    @property
    def max_messages(self) -> int:
        return self._max_messages

    def add(self, message: ChatMessage) -> None:
        messages = self._store.get_messages(self._id)
        if isinstance(message, SystemMessage):
            existing = next((item for item in messages if isinstance(item, SystemMessage)), None)
            if existing == message:
                return
            if existing is not None:
                messages.remove(existing)
            messages.insert(0, message)
        else:
            messages.append(message)

        self._ensure_capacity(messages)
        self._store.update_messages(self._id, messages)

    def messages(self) -> list[ChatMessage]:
        messages = self._store.get_messages(self._id)
        self._ensure_capacity(messages)
        return messages

    def clear(self) -> None:
        self._store.delete_messages(self._id)

    def _ensure_capacity(self, messages: list[ChatMessage]) -> None:
        while len(messages) > self._max_messages:
            evict_index = 1 if isinstance(messages[0], SystemMessage) else 0
            if evict_index >= len(messages):
                return
            evicted = messages.pop(evict_index)
            logger.debug(
                "evicting message from chat memory",
                extra={"memory_id": self._id, "message_type": evicted.type},
            )
            if isinstance(evicted, AiMessage) and evicted.has_tool_execution_requests():
                while evict_index < len(messages) and isinstance(messages[evict_index], ToolExecutionResultMessage):
                    messages.pop(evict_index)
