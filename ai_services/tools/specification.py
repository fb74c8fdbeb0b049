from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
import inspect
from typing import Any, get_type_hints

from pydantic import BaseModel, ConfigDict, create_model

from ai_services.errors import IllegalConfigurationError

_TOOL_ATTRIBUTE = "__ai_tool__"


@dataclass(frozen=True)
class ToolInfo:
    name: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class ToolSpecification:
    """Name, description and JSON schema of a tool as advertised to the model."""

    name: str
    description: str
    parameters: dict[str, Any] = field(default_factory=lambda: {"type": "object", "properties": {}})


def tool(
    func: Callable[..., Any] | str | None = None,
    *,
    name: str | None = None,
    description: str | None = None,
) -> Any:
    """Mark a function or method as a tool the model may call.

    Usable bare (``@tool``), with a description (``@tool("Adds numbers")``)
    or with keywords (``@tool(name="add", description="Adds numbers")``).
    """

    if callable(func):
        setattr(func, _TOOL_ATTRIBUTE, ToolInfo(name=name, description=description))
        return func

    if isinstance(func, str):
        description = func

    def decorator(target: Callable[..., Any]) -> Callable[..., Any]:
        setattr(target, _TOOL_ATTRIBUTE, ToolInfo(name=name, description=description))
        return target

    return decorator


def is_tool(candidate: Any) -> bool:
    return callable(candidate) and isinstance(getattr(candidate, _TOOL_ATTRIBUTE, None), ToolInfo)


def find_tools(obj: Any) -> list[Callable[..., Any]]:
    """Return the tool callables exposed by ``obj`` in declaration order."""

    if is_tool(obj) and (inspect.isfunction(obj) or inspect.ismethod(obj)):
        return [obj]

    found: list[Callable[..., Any]] = []
    for attribute in _declared_attributes(type(obj)):
        candidate = getattr(obj, attribute, None)
        if is_tool(candidate):
            found.append(candidate)
    return found


def _declared_attributes(cls: type) -> list[str]:
    names: list[str] = []
    for klass in reversed(cls.__mro__):
        for attribute in vars(klass):
            if attribute.startswith("__") or attribute in names:
                continue
            names.append(attribute)
    return names


def tool_name(func: Callable[..., Any]) -> str:
    info: ToolInfo = getattr(func, _TOOL_ATTRIBUTE)
    return info.name or func.__name__


def arguments_model(func: Callable[..., Any]) -> type[BaseModel]:
    """Build a pydantic model describing the arguments of ``func``."""

    signature = inspect.signature(func)
    try:
        hints = get_type_hints(func)
    except (NameError, TypeError) as exc:
        raise IllegalConfigurationError(f"cannot resolve annotations of tool {func.__name__}: {exc}") from exc

    fields: dict[str, Any] = {}
    for parameter in signature.parameters.values():
        if parameter.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            raise IllegalConfigurationError(f"tool {func.__name__} cannot declare *args or **kwargs")
        annotation = hints.get(parameter.name, Any)
        default = ... if parameter.default is inspect.Parameter.empty else parameter.default
        fields[parameter.name] = (annotation, default)

    model_name = "".join(part.capitalize() for part in tool_name(func).split("_")) + "Arguments"
    return create_model(model_name, __config__=ConfigDict(extra="ignore"), **fields)


def tool_specification(func: Callable[..., Any]) -> ToolSpecification:
    info: ToolInfo = getattr(func, _TOOL_ATTRIBUTE)
    description = info.description or _first_paragraph(inspect.getdoc(func)) or tool_name(func)

    schema = arguments_model(func).model_json_schema()
    schema.pop("title", None)
    for property_schema in schema.get("properties", {}).values():
        property_schema.pop("title", None)
    schema.setdefault("properties", {})

    return ToolSpecification(name=tool_name(func), description=description, parameters=schema)


def tool_specifications_from(*objects: Any) -> list[ToolSpecification]:
    return [tool_specification(func) for obj in objects for func in find_tools(obj)]


def _first_paragraph(doc: str | None) -> str:
    if not doc:
        return ""
    return " ".join(doc.strip().split("\n\n", maxsplit=1)[0].split())
