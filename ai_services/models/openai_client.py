from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass, field
import logging
from typing import Any

from openai import APIError, APIStatusError, APITimeoutError, AsyncOpenAI, RateLimitError

from ai_services.errors import ModelProviderError
from ai_services.messages import (
    AiMessage,
    ChatMessage,
    SystemMessage,
    ToolExecutionRequest,
    ToolExecutionResultMessage,
    UserMessage,
)
from ai_services.models.base import (
    CompleteResponse,
    FinishReason,
    PartialResponse,
    Response,
    StreamEvent,
    TokenUsage,
)
from ai_services.tools.specification import ToolSpecification

logger = logging.getLogger(__name__)

DEFAULT_MODEL_NAME = "gpt-4o-mini"

_FINISH_REASONS: dict[str, FinishReason] = {
    "stop": "stop",
    "length": "length",
    "tool_calls": "tool_execution",
    "function_call": "tool_execution",
    "content_filter": "content_filter",
}


def to_openai_messages(messages: Sequence[ChatMessage]) -> list[dict[str, Any]]:
    payload: list[dict[str, Any]] = []
    for message in messages:
        if isinstance(message, SystemMessage):
            payload.append({"role": "system", "content": message.text})
        elif isinstance(message, UserMessage):
            item: dict[str, Any] = {"role": "user", "content": message.text}
            if message.name:
                item["name"] = message.name
            payload.append(item)
        elif isinstance(message, AiMessage):
            item = {"role": "assistant", "content": message.text}
            if message.tool_execution_requests:
                item["tool_calls"] = [
                    {
                        "id": request.id,
                        "type": "function",
                        "function": {"name": request.name, "arguments": request.arguments},
                    }
                    for request in message.tool_execution_requests
                ]
            payload.append(item)
        elif isinstance(message, ToolExecutionResultMessage):
            payload.append({"role": "tool", "tool_call_id": message.id, "content": message.text})
        else:
            raise TypeError(f"unsupported chat message type: {type(message).__name__}")
    return payload


def to_openai_tools(tool_specifications: Sequence[ToolSpecification]) -> list[dict[str, Any]]:
    return [
        {
            "type": "function",
            "function": {
                "name": specification.name,
                "description": specification.description,
                "parameters": specification.parameters,
            },
        }
        for specification in tool_specifications
    ]


def finish_reason_from(value: str | None) -> FinishReason | None:
    if value is None:
        return None
    return _FINISH_REASONS.get(value, "other")


def token_usage_from(usage: Any) -> TokenUsage | None:
    if usage is None:
        return None
    return TokenUsage(
        input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
        output_tokens=getattr(usage, "completion_tokens", 0) or 0,
    )


def map_provider_error(exc: APIError) -> ModelProviderError:
    if isinstance(exc, APITimeoutError):
        return ModelProviderError(status_code=504, message=str(exc))
    if isinstance(exc, RateLimitError):
        return ModelProviderError(status_code=429, message=str(exc))
    if isinstance(exc, APIStatusError):
        status = exc.status_code
        mapped_status = 502 if status and status >= 500 else (status or 502)
        return ModelProviderError(status_code=mapped_status, message=str(exc))
    return ModelProviderError(status_code=502, message=str(exc))


class _OpenAiModelBase:
    def __init__(
        self,
        api_key: str | None = None,
        *,
        model_name: str = DEFAULT_MODEL_NAME,
        base_url: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        timeout_seconds: float = 60.0,
        max_retries: int = 2,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self._client = client or AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout_seconds,
            max_retries=max_retries,
        )
        self._model_name = model_name
        self._temperature = temperature
        self._max_tokens = max_tokens

    @classmethod
    def with_api_key(cls, api_key: str | None):
        return cls(api_key)

    @property
    def model_name(self) -> str:
        return self._model_name

    def _payload(
        self,
        messages: Sequence[ChatMessage],
        tool_specifications: Sequence[ToolSpecification] | None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self._model_name,
            "messages": to_openai_messages(messages),
        }
        if self._temperature is not None:
            payload["temperature"] = self._temperature
        if self._max_tokens is not None:
            payload["max_tokens"] = self._max_tokens
        if tool_specifications:
            payload["tools"] = to_openai_tools(tool_specifications)
        return payload


class OpenAiChatModel(_OpenAiModelBase):
    """Chat model answering through the OpenAI chat completions API."""

    async def generate(
        self,
        messages: Sequence[ChatMessage],
        tool_specifications: Sequence[ToolSpecification] | None = None,
    ) -> Response:
        payload = self._payload(messages, tool_specifications)
        logger.debug(
            "requesting chat completion",
            extra={"model": self._model_name, "messages_count": len(messages)},
        )
        try:
            completion = await self._client.chat.completions.create(**payload)
        except APIError as exc:
            raise map_provider_error(exc) from exc

        choice = completion.choices[0]
        tool_calls = getattr(choice.message, "tool_calls", None) or []
        requests = tuple(
            ToolExecutionRequest(id=call.id, name=call.function.name, arguments=call.function.arguments)
            for call in tool_calls
        )
        return Response(
            content=AiMessage(text=choice.message.content, tool_execution_requests=requests),
            token_usage=token_usage_from(completion.usage),
            finish_reason=finish_reason_from(choice.finish_reason),
        )


@dataclass
class _ToolCallBuilder:
    id: str | None = None
    name: str = ""
    arguments: list[str] = field(default_factory=list)

    def build(self) -> ToolExecutionRequest:
        return ToolExecutionRequest(id=self.id, name=self.name, arguments="".join(self.arguments) or "{}")


class OpenAiStreamingChatModel(_OpenAiModelBase):
    """Chat model streaming answers from the OpenAI chat completions API."""

    async def stream(
        self,
        messages: Sequence[ChatMessage],
        tool_specifications: Sequence[ToolSpecification] | None = None,
    ) -> AsyncIterator[StreamEvent]:
        payload = self._payload(messages, tool_specifications)
        payload["stream"] = True
        payload["stream_options"] = {"include_usage": True}
        logger.debug(
            "streaming chat completion",
            extra={"model": self._model_name, "messages_count": len(messages)},
        )

        text_parts: list[str] = []
        tool_calls: dict[int, _ToolCallBuilder] = {}
        finish_reason: FinishReason | None = None
        token_usage: TokenUsage | None = None
        try:
            stream = await self._client.chat.completions.create(**payload)
            async for chunk in stream:
                if getattr(chunk, "usage", None) is not None:
                    token_usage = token_usage_from(chunk.usage)
                if not chunk.choices:
                    continue
                choice = chunk.choices[0]
                delta = choice.delta
                if delta is not None and delta.content:
                    text_parts.append(delta.content)
                    yield PartialResponse(token=delta.content)
                for call in (getattr(delta, "tool_calls", None) or []) if delta is not None else []:
                    builder = tool_calls.setdefault(call.index, _ToolCallBuilder())
                    if call.id:
                        builder.id = call.id
                    if call.function is not None:
                        if call.function.name:
                            builder.name += call.function.name
                        if call.function.arguments:
                            builder.arguments.append(call.function.arguments)
                if choice.finish_reason is not None:
                    finish_reason = finish_reason_from(choice.finish_reason)
        except APIError as exc:
            raise map_provider_error(exc) from exc

        requests = tuple(tool_calls[index].build() for index in sorted(tool_calls))
        text = "".join(text_parts) if text_parts or not requests else None
        message = AiMessage(text=text, tool_execution_requests=requests)
        yield CompleteResponse(
            response=Response(content=message, token_usage=token_usage, finish_reason=finish_reason)
        )
