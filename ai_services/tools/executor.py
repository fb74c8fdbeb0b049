from __future__ import annotations

from collections.abc import Callable
import inspect
import json
import logging
from typing import Any

from pydantic import BaseModel, ValidationError

from ai_services.errors import IllegalConfigurationError
from ai_services.messages import ToolExecutionRequest
from ai_services.tools.specification import (
    ToolSpecification,
    arguments_model,
    find_tools,
    tool_name,
    tool_specification,
)

logger = logging.getLogger(__name__)


class _BoundTool:
    def __init__(self, func: Callable[..., Any]) -> None:
        self.func = func
        self.specification = tool_specification(func)
        self.arguments_model = arguments_model(func)


class ToolExecutor:
    """Dispatches tool execution requests to the tool callables of one or more objects."""

    def __init__(self, *objects: Any) -> None:
        self._tools: dict[str, _BoundTool] = {}
        for obj in objects:
            funcs = find_tools(obj)
            if not funcs:
                raise IllegalConfigurationError(f"{obj!r} does not expose any @tool callables")
            for func in funcs:
                name = tool_name(func)
                if name in self._tools:
                    raise IllegalConfigurationError(f"duplicate tool name {name!r}")
                self._tools[name] = _BoundTool(func)

    @property
    def specifications(self) -> list[ToolSpecification]:
        return [bound.specification for bound in self._tools.values()]

    def __bool__(self) -> bool:
        return bool(self._tools)

    async def execute(self, request: ToolExecutionRequest) -> str:
        bound = self._tools.get(request.name)
        if bound is None:
            logger.warning("model requested unknown tool", extra={"tool_name": request.name})
            return f"Error: there is no tool called {request.name}"

        try:
            raw_arguments = json.loads(request.arguments or "{}")
        except json.JSONDecodeError as exc:
            logger.warning("tool arguments are not valid JSON", extra={"tool_name": request.name})
            return f"Error: arguments are not valid JSON: {exc}"
        if not isinstance(raw_arguments, dict):
            return "Error: arguments must be a JSON object"

        try:
            validated = bound.arguments_model.model_validate(raw_arguments)
        except ValidationError as exc:
            logger.warning("tool arguments failed validation", extra={"tool_name": request.name})
            return f"Error: invalid arguments: {exc}"

        kwargs = {name: getattr(validated, name) for name in type(validated).model_fields}
        logger.debug("executing tool", extra={"tool_name": request.name, "tool_call_id": request.id})
        try:
            result = bound.func(**kwargs)
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:  # noqa: BLE001
            logger.exception("tool execution failed", extra={"tool_name": request.name})
            return f"Error: {exc}"

        return render_tool_result(result)


def render_tool_result(result: Any) -> str:
    if result is None:
        return "Success"
    if isinstance(result, str):
        return result
    if isinstance(result, BaseModel):
        return result.model_dump_json()
    if isinstance(result, (dict, list, tuple)):
        return json.dumps(result, default=str)
    return str(result)
