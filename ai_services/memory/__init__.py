"""Bounded conversation memories and their stores."""

from ai_services.memory.chat_memory import DEFAULT_MEMORY_ID, ChatMemory, MessageWindowChatMemory
from ai_services.memory.store import ChatMemoryStore, InMemoryChatMemoryStore

__all__ = [
    "DEFAULT_MEMORY_ID",
    "ChatMemory",
    "ChatMemoryStore",
    "InMemoryChatMemoryStore",
    "MessageWindowChatMemory",
]
