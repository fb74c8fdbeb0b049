"""Tool declaration, specification and dispatch."""

from ai_services.tools.executor import ToolExecutor, render_tool_result
from ai_services.tools.specification import ToolSpecification, tool, tool_specification, tool_specifications_from

__all__ = [
    "ToolExecutor",
    "ToolSpecification",
    "render_tool_result",
    "tool",
    "tool_specification",
    "tool_specifications_from",
]
