"""
Tool Catalog

The fixed set of ledger operations the language model may request.

DESIGN DECISION: The catalog is built once at import time and never
changes. The same definitions are advertised to the completion service
and used by the dispatcher to reject unknown tool names.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from expense_assistant.models.expense import ExpenseCategory, TotalPeriod


class ToolDefinition(BaseModel):
    """Declarative schema of one invokable operation."""
    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    properties: dict[str, Any] = Field(default_factory=dict)
    required: tuple[str, ...] = ()

    @property
    def parameters(self) -> dict[str, Any]:
        """JSON schema object for the arguments."""
        return {
            "type": "object",
            "properties": self.properties,
            "required": list(self.required),
        }

    def to_function_spec(self) -> dict[str, Any]:
        """Build an OpenAI-style function spec."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


_CATEGORIES = [c.value for c in ExpenseCategory]


_DEFINITIONS: tuple[ToolDefinition, ...] = (
    ToolDefinition(
        name="add_expense",
        description="Add a new expense to the database",
        properties={
            "amount": {"type": "number", "description": "Amount spent"},
            "category": {
                "type": "string",
                "enum": _CATEGORIES,
                "description": "Expense category",
            },
            "date": {
                "type": "string",
                "description": "Date in YYYY-MM-DD format (default: today)",
            },
            "description": {"type": "string", "description": "Optional description"},
        },
        required=("amount", "category"),
    ),
    ToolDefinition(
        name="get_expenses",
        description="Retrieve expenses based on filters",
        properties={
            "category": {
                "type": "string",
                "enum": _CATEGORIES,
                "description": "Filter by category",
            },
            "startDate": {"type": "string", "description": "Start date YYYY-MM-DD"},
            "endDate": {"type": "string", "description": "End date YYYY-MM-DD"},
            "limit": {"type": "number", "description": "Number of results (0 or omitted for all)"},
        },
    ),
    ToolDefinition(
        name="calculate_total",
        description="Calculate total expenses for a period",
        properties={
            "period": {
                "type": "string",
                "enum": [p.value for p in TotalPeriod],
                "description": "Time period",
            },
            "category": {
                "type": "string",
                "enum": _CATEGORIES,
                "description": "Specific category",
            },
        },
        required=("period",),
    ),
    ToolDefinition(
        name="delete_expense",
        description="Delete an expense by ID",
        properties={
            "id": {"type": "string", "description": "Expense ID to delete"},
        },
        required=("id",),
    ),
)

_BY_NAME: dict[str, ToolDefinition] = {d.name: d for d in _DEFINITIONS}


def definitions() -> tuple[ToolDefinition, ...]:
    """All tool definitions, in advertising order."""
    return _DEFINITIONS


def get_definition(name: str) -> Optional[ToolDefinition]:
    return _BY_NAME.get(name)


def is_known_tool(name: str) -> bool:
    return name in _BY_NAME
