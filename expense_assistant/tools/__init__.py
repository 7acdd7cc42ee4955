"""Tool catalog and dispatch package."""

from expense_assistant.tools.catalog import (
    ToolDefinition,
    definitions,
    get_definition,
    is_known_tool,
)
from expense_assistant.tools.dispatcher import (
    InvalidArgumentsError,
    ToolDispatcher,
    ToolError,
    UnknownToolError,
)

__all__ = [
    "InvalidArgumentsError",
    "ToolDefinition",
    "ToolDispatcher",
    "ToolError",
    "UnknownToolError",
    "definitions",
    "get_definition",
    "is_known_tool",
]
