from __future__ import annotations

from collections.abc import Callable, Hashable, Mapping, Sequence
import inspect
import logging
from typing import Any, Generic, TypeVar

from ai_services.errors import AiServicesError, IllegalConfigurationError, ToolInvocationLimitError
from ai_services.memory.chat_memory import DEFAULT_MEMORY_ID, ChatMemory
from ai_services.messages import ChatMessage, SystemMessage, ToolExecutionResultMessage, UserMessage
from ai_services.models.base import (
    ChatLanguageModel,
    CompleteResponse,
    PartialResponse,
    Response,
    StreamingChatLanguageModel,
    TokenUsage,
)
from ai_services.service.templates import MethodSpec
from ai_services.service.token_stream import TokenSink, TokenStream
from ai_services.tools.executor import ToolExecutor
from ai_services.tools.specification import ToolSpecification

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_SEQUENTIAL_TOOL_INVOCATIONS = 10

ChatMemoryProvider = Callable[[Hashable], ChatMemory]


class _CallScopedMemory:
    """Unbounded memory living for a single call when no chat memory is configured."""

    id = None

    def __init__(self) -> None:
        self._messages: list[ChatMessage] = []

    def add(self, message: ChatMessage) -> None:
        self._messages.append(message)

    def messages(self) -> list[ChatMessage]:
        return list(self._messages)

    def clear(self) -> None:
        self._messages.clear()


MIN_MEMORY_CAPACITY_WITH_TOOLS = 2


def _check_tool_memory_capacity(memory: ChatMemory) -> None:
    capacity = getattr(memory, "max_messages", None)
    if capacity is not None and capacity < MIN_MEMORY_CAPACITY_WITH_TOOLS:
        raise IllegalConfigurationError(
            f"chat memory must hold at least {MIN_MEMORY_CAPACITY_WITH_TOOLS} messages when tools are configured, "
            f"got {capacity}"
        )


def _add_usage(total: TokenUsage | None, usage: TokenUsage | None) -> TokenUsage | None:
    if total is None:
        return usage
    return total + usage


class AiServiceContext:
    """Shared state of one built AI service: models, memories and tools."""

    def __init__(
        self,
        *,
        chat_model: ChatLanguageModel | None,
        streaming_model: StreamingChatLanguageModel | None,
        chat_memory: ChatMemory | None,
        chat_memory_provider: ChatMemoryProvider | None,
        tool_executor: ToolExecutor,
        max_sequential_tool_invocations: int,
    ) -> None:
        self.chat_model = chat_model
        self.streaming_model = streaming_model
        self.chat_memory = chat_memory
        self.chat_memory_provider = chat_memory_provider
        self.tool_executor = tool_executor
        self.max_sequential_tool_invocations = max_sequential_tool_invocations
        self._memories: dict[Hashable, ChatMemory] = {}

    @property
    def tool_specifications(self) -> list[ToolSpecification] | None:
        return self.tool_executor.specifications or None

    def memory_for(self, memory_id: Hashable | None) -> ChatMemory:
        if self.chat_memory is not None:
            return self.chat_memory
        if self.chat_memory_provider is None:
            return _CallScopedMemory()

        key = DEFAULT_MEMORY_ID if memory_id is None else memory_id
        memory = self._memories.get(key)
        if memory is None:
            memory = self.chat_memory_provider(key)
            if self.tool_executor:
                _check_tool_memory_capacity(memory)
            self._memories[key] = memory
        return memory

    async def run_turn(
        self,
        method: MethodSpec,
        arguments: Mapping[str, Any],
        on_token: TokenSink | None = None,
    ) -> Response:
        memory_id = method.memory_id(arguments)
        memory = self.memory_for(memory_id)
        logger.debug("running ai service turn", extra={"method": method.name, "memory_id": memory_id})

        system_text = method.system_text(arguments)
        if system_text is not None:
            memory.add(SystemMessage(text=system_text))
        memory.add(UserMessage(text=method.user_text(arguments)))

        token_usage: TokenUsage | None = None
        tool_rounds = 0
        while True:
            if method.streaming:
                response = await self._stream_model(memory.messages(), on_token)
            else:
                response = await self._call_model(memory.messages())
            token_usage = _add_usage(token_usage, response.token_usage)

            message = response.content
            if not message.has_tool_execution_requests():
                memory.add(message)
                return Response(content=message, token_usage=token_usage, finish_reason=response.finish_reason)

            # an unanswered tool request must never reach memory
            tool_rounds += 1
            if tool_rounds > self.max_sequential_tool_invocations:
                raise ToolInvocationLimitError(
                    f"model requested tools more than {self.max_sequential_tool_invocations} times in a row"
                )
            memory.add(message)
            for request in message.tool_execution_requests:
                logger.info(
                    "executing tool requested by model",
                    extra={"tool_name": request.name, "tool_call_id": request.id},
                )
                result = await self.tool_executor.execute(request)
                memory.add(ToolExecutionResultMessage.from_request(request, result))

    async def _call_model(self, messages: Sequence[ChatMessage]) -> Response:
        assert self.chat_model is not None
        return await self.chat_model.generate(messages, self.tool_specifications)

    async def _stream_model(self, messages: Sequence[ChatMessage], on_token: TokenSink | None) -> Response:
        assert self.streaming_model is not None
        response: Response | None = None
        async for event in self.streaming_model.stream(messages, self.tool_specifications):
            if isinstance(event, PartialResponse):
                if on_token is not None:
                    await on_token(event.token)
            elif isinstance(event, CompleteResponse):
                response = event.response
        if response is None:
            raise AiServicesError("streaming model finished without a complete response")
        return response


def _interface_methods(interface: type) -> dict[str, Callable[..., Any]]:
    methods: dict[str, Callable[..., Any]] = {}
    for klass in reversed(interface.__mro__):
        if klass is object:
            continue
        for name, value in vars(klass).items():
            if name.startswith("_") or not inspect.isfunction(value):
                continue
            methods[name] = value
    return methods


def _streaming_method(context: AiServiceContext, method: MethodSpec) -> Callable[..., TokenStream]:
    def implementation(self: Any, *args: Any, **kwargs: Any) -> TokenStream:
        bound = method.signature.bind(self, *args, **kwargs)
        bound.apply_defaults()
        arguments = dict(bound.arguments)
        return TokenStream(lambda on_token: context.run_turn(method, arguments, on_token))

    return implementation


def _async_method(context: AiServiceContext, method: MethodSpec) -> Callable[..., Any]:
    async def implementation(self: Any, *args: Any, **kwargs: Any) -> Any:
        bound = method.signature.bind(self, *args, **kwargs)
        bound.apply_defaults()
        response = await context.run_turn(method, dict(bound.arguments))
        if method.return_mode == "text":
            return response.content.text
        if method.return_mode == "message":
            return response.content
        return response

    return implementation


class AiServices(Generic[T]):
    """Builds implementations of user-declared interfaces backed by a chat model.

    The interface is a class whose public methods are declared but not
    implemented. Methods returning ``TokenStream`` stream their answer
    through a streaming model; ``async`` methods returning ``str``,
    ``AiMessage`` or ``Response`` use a single-response chat model.
    """

    def __init__(self, interface: type[T]) -> None:
        if not inspect.isclass(interface):
            raise IllegalConfigurationError(f"{interface!r} is not a class")
        self._interface = interface
        self._chat_model: ChatLanguageModel | None = None
        self._streaming_model: StreamingChatLanguageModel | None = None
        self._chat_memory: ChatMemory | None = None
        self._chat_memory_provider: ChatMemoryProvider | None = None
        self._tools: list[Any] = []
        self._max_sequential_tool_invocations = DEFAULT_MAX_SEQUENTIAL_TOOL_INVOCATIONS

    @classmethod
    def builder(cls, interface: type[T]) -> AiServices[T]:
        return cls(interface)

    @classmethod
    def create(cls, interface: type[T], model: ChatLanguageModel | StreamingChatLanguageModel) -> T:
        builder = cls(interface)
        if hasattr(model, "stream"):
            builder.streaming_chat_language_model(model)  # type: ignore[arg-type]
        if hasattr(model, "generate"):
            builder.chat_language_model(model)  # type: ignore[arg-type]
        return builder.build()

    def chat_language_model(self, model: ChatLanguageModel) -> AiServices[T]:
        self._chat_model = model
        return self

    def streaming_chat_language_model(self, model: StreamingChatLanguageModel) -> AiServices[T]:
        self._streaming_model = model
        return self

    def chat_memory(self, memory: ChatMemory) -> AiServices[T]:
        self._chat_memory = memory
        return self

    def chat_memory_provider(self, provider: ChatMemoryProvider) -> AiServices[T]:
        self._chat_memory_provider = provider
        return self

    def tools(self, *objects: Any) -> AiServices[T]:
        self._tools.extend(objects)
        return self

    def max_sequential_tool_invocations(self, limit: int) -> AiServices[T]:
        if limit < 1:
            raise IllegalConfigurationError("max_sequential_tool_invocations must be at least 1")
        self._max_sequential_tool_invocations = limit
        return self

    def build(self) -> T:
        if self._chat_model is None and self._streaming_model is None:
            raise IllegalConfigurationError("a chat model or a streaming chat model is required")
        if self._chat_memory is not None and self._chat_memory_provider is not None:
            raise IllegalConfigurationError("configure either chat_memory or chat_memory_provider, not both")

        specs = [MethodSpec.from_function(func) for func in _interface_methods(self._interface).values()]
        if not specs:
            raise IllegalConfigurationError(f"{self._interface.__name__} declares no methods")
        for spec in specs:
            if spec.streaming and self._streaming_model is None:
                raise IllegalConfigurationError(f"{spec.name} returns TokenStream but no streaming model is configured")
            if not spec.streaming and self._chat_model is None:
                raise IllegalConfigurationError(f"{spec.name} needs a chat model but none is configured")
            if spec.memory_id_parameter is not None and self._chat_memory_provider is None:
                raise IllegalConfigurationError(f"{spec.name} declares a MemoryId but no chat_memory_provider is set")

        if self._tools and self._chat_memory is not None:
            _check_tool_memory_capacity(self._chat_memory)

        context = AiServiceContext(
            chat_model=self._chat_model,
            streaming_model=self._streaming_model,
            chat_memory=self._chat_memory,
            chat_memory_provider=self._chat_memory_provider,
            tool_executor=ToolExecutor(*self._tools),
            max_sequential_tool_invocations=self._max_sequential_tool_invocations,
        )

        namespace: dict[str, Any] = {"__module__": self._interface.__module__, "_ai_service_context": context}
        for spec in specs:
            factory = _streaming_method if spec.streaming else _async_method
            implementation = factory(context, spec)
            implementation.__name__ = spec.name
            implementation.__qualname__ = f"{self._interface.__name__}Service.{spec.name}"
            namespace[spec.name] = implementation

        service_class = type(f"{self._interface.__name__}Service", (self._interface,), namespace)
        logger.debug(
            "built ai service",
            extra={
                "interface": self._interface.__name__,
                "methods": [spec.name for spec in specs],
                "tools": [spec.name for spec in context.tool_executor.specifications],
            },
        )
        return service_class()
