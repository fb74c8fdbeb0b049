"""Shared test utilities and fixtures for ai-services tests."""

from __future__ import annotations

import math
from types import SimpleNamespace

import pytest

from ai_services.core.settings import Settings
from ai_services.tools import tool


class Calculator:
    """Tool object recording every call it receives."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    @tool("Calculates the square root of a number")
    def square_root(self, number: float) -> float:
        self.calls.append(number)
        return math.sqrt(number)


class FakeCompletions:
    """Stand-in for ``AsyncOpenAI().chat.completions`` returning canned payloads."""

    def __init__(self, *, completion: object | None = None, chunks: list[object] | None = None, error: Exception | None = None) -> None:
        self._completion = completion
        self._chunks = chunks or []
        self._error = error
        self.calls: list[dict] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self._error is not None:
            raise self._error
        if kwargs.get("stream"):
            chunks = self._chunks

            async def _gen():
                for chunk in chunks:
                    yield chunk

            return _gen()
        return self._completion


def build_fake_openai_client(completions: FakeCompletions) -> SimpleNamespace:
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


def text_chunk(text: str, finish_reason: str | None = None) -> SimpleNamespace:
    return SimpleNamespace(
        choices=[SimpleNamespace(delta=SimpleNamespace(content=text, tool_calls=None), finish_reason=finish_reason)],
        usage=None,
    )


def tool_call_chunk(
    *,
    index: int,
    call_id: str | None = None,
    name: str | None = None,
    arguments: str | None = None,
    finish_reason: str | None = None,
) -> SimpleNamespace:
    call = SimpleNamespace(index=index, id=call_id, function=SimpleNamespace(name=name, arguments=arguments))
    return SimpleNamespace(
        choices=[SimpleNamespace(delta=SimpleNamespace(content=None, tool_calls=[call]), finish_reason=finish_reason)],
        usage=None,
    )


def usage_chunk(prompt_tokens: int, completion_tokens: int) -> SimpleNamespace:
    return SimpleNamespace(
        choices=[],
        usage=SimpleNamespace(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens),
    )


@pytest.fixture
def calculator() -> Calculator:
    return Calculator()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(_env_file=None)
