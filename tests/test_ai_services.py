"""Unit tests for AI service assembly and turn orchestration."""

from __future__ import annotations

import asyncio
import math
from typing import Annotated

import pytest

from ai_services.errors import IllegalConfigurationError, ToolInvocationLimitError
from ai_services.memory import MessageWindowChatMemory
from ai_services.messages import (
    AiMessage,
    SystemMessage,
    ToolExecutionRequest,
    ToolExecutionResultMessage,
    UserMessage,
)
from ai_services.models import Response, ScriptedChatModel, ScriptedStreamingChatModel, TokenUsage
from ai_services.service import AiServices, MemoryId, TokenStream, system_message, user_message

SQUARE_ROOT_QUESTION = "What is the square root of 485906798473894056 in scientific notation?"


class Assistant:
    def chat(self, user_message: str) -> TokenStream: ...


class BlockingAssistant:
    async def chat(self, user_message: str) -> str: ...


class Translator:
    @system_message("You translate from English to {language}.")
    @user_message("Translate: {text}")
    async def translate(self, text: str, language: str = "German") -> AiMessage: ...


class PerUserAssistant:
    async def chat(self, user_id: Annotated[str, MemoryId()], message: str) -> Response: ...


async def _collect(stream: TokenStream) -> str:
    answer: list[str] = []
    future: asyncio.Future[str] = asyncio.get_running_loop().create_future()
    stream.on_next(answer.append).on_complete(lambda _response: future.set_result("".join(answer))).on_error(
        future.set_exception
    ).start()
    return await asyncio.wait_for(future, timeout=30)


def _square_root_request() -> ToolExecutionRequest:
    return ToolExecutionRequest(id="call-1", name="square_root", arguments='{"number": 485906798473894056}')


@pytest.mark.asyncio
async def test_streams_answer() -> None:
    model = ScriptedStreamingChatModel(["The capital of Germany is Berlin."])
    assistant = AiServices.create(Assistant, model)

    answer = await _collect(assistant.chat("What is the capital of Germany?"))

    assert "Berlin" in answer
    assert model.calls[0][0] == [UserMessage(text="What is the capital of Germany?")]
    assert model.calls[0][1] == []


@pytest.mark.asyncio
async def test_streams_answers_with_memory() -> None:
    chat_memory = MessageWindowChatMemory.with_capacity(10)
    model = ScriptedStreamingChatModel(["Nice to meet you, Klaus!", "Your name is Klaus."])
    assistant = AiServices.builder(Assistant).streaming_chat_language_model(model).chat_memory(chat_memory).build()

    first_user_message = "Hi, my name is Klaus"
    first_answer = await _collect(assistant.chat(first_user_message))
    assert "Klaus" in first_answer

    second_user_message = "What is my name?"
    second_answer = await _collect(assistant.chat(second_user_message))
    assert "Klaus" in second_answer

    messages = chat_memory.messages()
    assert len(messages) == 4
    assert isinstance(messages[0], UserMessage)
    assert messages[0].text == first_user_message
    assert isinstance(messages[1], AiMessage)
    assert messages[1].text == first_answer
    assert isinstance(messages[2], UserMessage)
    assert messages[2].text == second_user_message
    assert isinstance(messages[3], AiMessage)
    assert messages[3].text == second_answer
    assert model.calls[1][0] == messages[:3]


@pytest.mark.asyncio
async def test_executes_tool_then_streams_answer(calculator) -> None:
    chat_memory = MessageWindowChatMemory.with_capacity(10)
    model = ScriptedStreamingChatModel(
        [
            AiMessage(tool_execution_requests=(_square_root_request(),)),
            "The square root of 485906798473894056 is approximately 6.97070153193991E8.",
        ]
    )
    assistant = (
        AiServices.builder(Assistant)
        .streaming_chat_language_model(model)
        .chat_memory(chat_memory)
        .tools(calculator)
        .build()
    )

    answer = await _collect(assistant.chat(SQUARE_ROOT_QUESTION))

    assert "6.97" in answer
    assert calculator.calls == [485906798473894056.0]

    messages = chat_memory.messages()
    assert len(messages) == 4
    assert isinstance(messages[0], UserMessage)
    assert messages[0].text == SQUARE_ROOT_QUESTION
    assert isinstance(messages[1], AiMessage)
    assert messages[1].tool_execution_request.name == "square_root"
    assert messages[1].tool_execution_request.arguments.replace(" ", "") == '{"number":485906798473894056}'
    assert messages[1].text is None
    assert isinstance(messages[2], ToolExecutionResultMessage)
    assert messages[2].text == str(math.sqrt(485906798473894056.0))
    assert isinstance(messages[3], AiMessage)
    assert "6.97" in messages[3].text

    advertised = model.calls[0][1]
    assert [spec.name for spec in advertised] == ["square_root"]
    assert model.calls[1][0] == messages[:3]


@pytest.mark.asyncio
async def test_tools_work_without_memory(calculator) -> None:
    model = ScriptedStreamingChatModel(
        [AiMessage(tool_execution_requests=(_square_root_request(),)), "About 6.97e8."]
    )
    assistant = AiServices.builder(Assistant).streaming_chat_language_model(model).tools(calculator).build()

    stream = assistant.chat(SQUARE_ROOT_QUESTION)
    tokens = [token async for token in stream]

    assert "".join(tokens) == "About 6.97e8."
    assert calculator.calls == [485906798473894056.0]
    assert stream.response is not None
    assert stream.response.token_usage is not None
    assert stream.response.token_usage.output_tokens == 2
    assert isinstance(model.calls[1][0][-1], ToolExecutionResultMessage)


@pytest.mark.asyncio
async def test_calls_without_memory_do_not_share_context() -> None:
    model = ScriptedStreamingChatModel(["first", "second"])
    assistant = AiServices.create(Assistant, model)

    await _collect(assistant.chat("one"))
    await _collect(assistant.chat("two"))

    assert model.calls[1][0] == [UserMessage(text="two")]


@pytest.mark.asyncio
async def test_stops_after_max_sequential_tool_invocations(calculator) -> None:
    chat_memory = MessageWindowChatMemory(50)
    model = ScriptedStreamingChatModel([AiMessage(tool_execution_requests=(_square_root_request(),))])
    assistant = (
        AiServices.builder(Assistant)
        .streaming_chat_language_model(model)
        .chat_memory(chat_memory)
        .tools(calculator)
        .max_sequential_tool_invocations(2)
        .build()
    )
    errors: list[BaseException] = []

    await assistant.chat("loop forever").on_next(lambda _token: None).on_error(errors.append).start()

    assert len(errors) == 1
    assert isinstance(errors[0], ToolInvocationLimitError)
    assert len(calculator.calls) == 2

    messages = chat_memory.messages()
    assert [message.type for message in messages] == [
        "user",
        "ai",
        "tool_execution_result",
        "ai",
        "tool_execution_result",
    ]
    assert not (isinstance(messages[-1], AiMessage) and messages[-1].has_tool_execution_requests())


@pytest.mark.asyncio
async def test_blocking_method_returns_text_and_sums_usage(calculator) -> None:
    model = ScriptedChatModel([AiMessage(tool_execution_requests=(_square_root_request(),)), "About 6.97e8."])
    chat_memory = MessageWindowChatMemory(10)
    assistant = (
        AiServices.builder(BlockingAssistant)
        .chat_language_model(model)
        .chat_memory(chat_memory)
        .tools(calculator)
        .build()
    )

    answer = await assistant.chat(SQUARE_ROOT_QUESTION)

    assert answer == "About 6.97e8."
    assert [message.type for message in chat_memory.messages()] == ["user", "ai", "tool_execution_result", "ai"]
    assert isinstance(assistant, BlockingAssistant)


@pytest.mark.asyncio
async def test_templates_render_system_and_user_messages() -> None:
    model = ScriptedChatModel(["Hallo Welt"])
    translator = AiServices.create(Translator, model)

    message = await translator.translate("Hello world")

    assert message == AiMessage(text="Hallo Welt")
    assert model.calls[0][0] == [
        SystemMessage(text="You translate from English to German."),
        UserMessage(text="Translate: Hello world"),
    ]


@pytest.mark.asyncio
async def test_memory_id_selects_memory_per_user() -> None:
    model = ScriptedChatModel(["Hi Klaus", "Hi Francine", "You are Klaus"])
    memories: dict[str, MessageWindowChatMemory] = {}

    def provide(memory_id):
        memories[memory_id] = MessageWindowChatMemory(10, memory_id=memory_id)
        return memories[memory_id]

    assistant = AiServices.builder(PerUserAssistant).chat_language_model(model).chat_memory_provider(provide).build()

    await assistant.chat("klaus", "I am Klaus")
    await assistant.chat("francine", "I am Francine")
    response = await assistant.chat(user_id="klaus", message="Who am I?")

    assert response.content.text == "You are Klaus"
    assert isinstance(response.token_usage, TokenUsage)
    assert [message.text for message in memories["klaus"].messages()] == [
        "I am Klaus",
        "Hi Klaus",
        "Who am I?",
        "You are Klaus",
    ]
    assert len(memories["francine"].messages()) == 2


def test_build_rejects_missing_models() -> None:
    with pytest.raises(IllegalConfigurationError):
        AiServices.builder(Assistant).build()


def test_build_rejects_streaming_method_without_streaming_model() -> None:
    with pytest.raises(IllegalConfigurationError):
        AiServices.create(Assistant, ScriptedChatModel(["x"]))


def test_build_rejects_memory_id_without_provider() -> None:
    with pytest.raises(IllegalConfigurationError):
        AiServices.create(PerUserAssistant, ScriptedChatModel(["x"]))


def test_build_rejects_memory_and_provider_together() -> None:
    builder = (
        AiServices.builder(PerUserAssistant)
        .chat_language_model(ScriptedChatModel(["x"]))
        .chat_memory(MessageWindowChatMemory(2))
        .chat_memory_provider(lambda memory_id: MessageWindowChatMemory(2, memory_id=memory_id))
    )

    with pytest.raises(IllegalConfigurationError):
        builder.build()


class _SyncTextAssistant:
    def chat(self, user_message: str) -> str: ...


class _TwoArgumentAssistant:
    async def chat(self, first: str, second: str) -> str: ...


class _UnknownTemplateAssistant:
    @user_message("Tell me about {topic}")
    async def chat(self, subject: str) -> str: ...


@pytest.mark.parametrize("interface", [_SyncTextAssistant, _TwoArgumentAssistant, _UnknownTemplateAssistant])
def test_build_rejects_malformed_interfaces(interface) -> None:
    with pytest.raises(IllegalConfigurationError):
        AiServices.create(interface, ScriptedChatModel(["x"]))


@pytest.mark.asyncio
async def test_blocking_limit_keeps_memory_usable_for_next_turn(calculator) -> None:
    chat_memory = MessageWindowChatMemory(50)
    model = ScriptedChatModel([AiMessage(tool_execution_requests=(_square_root_request(),))])
    assistant = (
        AiServices.builder(BlockingAssistant)
        .chat_language_model(model)
        .chat_memory(chat_memory)
        .tools(calculator)
        .max_sequential_tool_invocations(1)
        .build()
    )

    with pytest.raises(ToolInvocationLimitError):
        await assistant.chat("loop")

    assert chat_memory.messages()[-1] == ToolExecutionResultMessage.from_request(
        _square_root_request(), str(math.sqrt(485906798473894056.0))
    )


def test_build_rejects_single_message_window_with_tools(calculator) -> None:
    builder = (
        AiServices.builder(Assistant)
        .streaming_chat_language_model(ScriptedStreamingChatModel(["x"]))
        .chat_memory(MessageWindowChatMemory(1))
        .tools(calculator)
    )

    with pytest.raises(IllegalConfigurationError):
        builder.build()


@pytest.mark.asyncio
async def test_provided_single_message_window_is_rejected_with_tools(calculator) -> None:
    model = ScriptedChatModel(["x"])
    assistant = (
        AiServices.builder(PerUserAssistant)
        .chat_language_model(model)
        .chat_memory_provider(lambda memory_id: MessageWindowChatMemory(1, memory_id=memory_id))
        .tools(calculator)
        .build()
    )

    with pytest.raises(IllegalConfigurationError):
        await assistant.chat("klaus", "hi")
    assert model.calls == []
