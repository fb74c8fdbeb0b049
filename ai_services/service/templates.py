from __future__ import annotations

from collections.abc import Callable, Hashable, Mapping
from dataclasses import dataclass
import inspect
import string
from typing import Annotated, Any, Literal, get_args, get_origin, get_type_hints

from ai_services.errors import IllegalConfigurationError
from ai_services.messages import AiMessage
from ai_services.models.base import Response
from ai_services.service.token_stream import TokenStream

_SYSTEM_MESSAGE_ATTRIBUTE = "__ai_system_message__"
_USER_MESSAGE_ATTRIBUTE = "__ai_user_message__"

ReturnMode = Literal["stream", "text", "message", "response"]
_ASYNC_RETURN_TYPES: dict[Any, ReturnMode] = {str: "text", AiMessage: "message", Response: "response"}


class MemoryId:
    """Marks the parameter selecting the chat memory, as in ``Annotated[str, MemoryId()]``."""

    def __repr__(self) -> str:
        return "MemoryId()"


def system_message(template: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Attach a system message template rendered from the call arguments."""

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        setattr(func, _SYSTEM_MESSAGE_ATTRIBUTE, template)
        return func

    return decorator


def user_message(template: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Attach a user message template rendered from the call arguments."""

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        setattr(func, _USER_MESSAGE_ATTRIBUTE, template)
        return func

    return decorator


def _template_fields(template: str) -> set[str]:
    fields = {field for _, field, _, _ in string.Formatter().parse(template) if field}
    return {field.split(".")[0].split("[")[0] for field in fields}


def _is_memory_id(annotation: Any) -> bool:
    if get_origin(annotation) is not Annotated:
        return False
    return any(isinstance(meta, MemoryId) or meta is MemoryId for meta in get_args(annotation)[1:])


@dataclass(frozen=True)
class MethodSpec:
    """How one interface method turns its arguments into a model call."""

    name: str
    signature: inspect.Signature
    streaming: bool
    return_mode: ReturnMode
    system_template: str | None
    user_template: str | None
    user_parameter: str | None
    memory_id_parameter: str | None

    @classmethod
    def from_function(cls, func: Callable[..., Any]) -> MethodSpec:
        name = func.__name__
        signature = inspect.signature(func)
        try:
            hints = get_type_hints(func, include_extras=True)
        except (NameError, TypeError) as exc:
            raise IllegalConfigurationError(f"cannot resolve annotations of {name}: {exc}") from exc

        return_type = hints.get("return")
        if return_type is TokenStream:
            if inspect.iscoroutinefunction(func):
                raise IllegalConfigurationError(f"{name} returns TokenStream and must not be async")
            streaming, return_mode = True, "stream"
        elif return_type in _ASYNC_RETURN_TYPES:
            if not inspect.iscoroutinefunction(func):
                raise IllegalConfigurationError(f"{name} must be declared with async def")
            streaming, return_mode = False, _ASYNC_RETURN_TYPES[return_type]
        else:
            raise IllegalConfigurationError(
                f"{name} must return TokenStream, str, AiMessage or Response, not {return_type!r}"
            )

        parameters = [parameter for parameter in signature.parameters.values() if parameter.name != "self"]
        memory_id_parameters = [parameter.name for parameter in parameters if _is_memory_id(hints.get(parameter.name))]
        if len(memory_id_parameters) > 1:
            raise IllegalConfigurationError(f"{name} declares more than one MemoryId parameter")
        memory_id_parameter = memory_id_parameters[0] if memory_id_parameters else None
        prompt_parameters = [parameter.name for parameter in parameters if parameter.name != memory_id_parameter]

        system_template = getattr(func, _SYSTEM_MESSAGE_ATTRIBUTE, None)
        user_template = getattr(func, _USER_MESSAGE_ATTRIBUTE, None)
        available = {parameter.name for parameter in parameters}
        for template in (system_template, user_template):
            if template is None:
                continue
            missing = _template_fields(template) - available
            if missing:
                raise IllegalConfigurationError(f"{name} template references unknown parameters {sorted(missing)}")

        user_parameter: str | None = None
        if user_template is None:
            if len(prompt_parameters) != 1:
                raise IllegalConfigurationError(
                    f"{name} needs exactly one user message parameter or a @user_message template"
                )
            user_parameter = prompt_parameters[0]

        return cls(
            name=name,
            signature=signature,
            streaming=streaming,
            return_mode=return_mode,
            system_template=system_template,
            user_template=user_template,
            user_parameter=user_parameter,
            memory_id_parameter=memory_id_parameter,
        )

    def system_text(self, arguments: Mapping[str, Any]) -> str | None:
        if self.system_template is None:
            return None
        return self.system_template.format_map(arguments)

    def user_text(self, arguments: Mapping[str, Any]) -> str:
        if self.user_template is not None:
            return self.user_template.format_map(arguments)
        assert self.user_parameter is not None
        return str(arguments[self.user_parameter])

    def memory_id(self, arguments: Mapping[str, Any]) -> Hashable | None:
        if self.memory_id_parameter is None:
            return None
        return arguments[self.memory_id_parameter]
