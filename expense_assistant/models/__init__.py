"""
Data Models Package

This package contains all Pydantic models used in the Expense Assistant.
All data flowing through the system must conform to these schemas.
"""

from expense_assistant.models.conversation import (
    ChatReply,
    CompletionResponse,
    Conversation,
    ExchangeStatus,
    Message,
    Role,
    ToolInvocation,
    ToolResult,
)
from expense_assistant.models.expense import (
    AddExpenseArgs,
    CalculateTotalArgs,
    DeleteExpenseArgs,
    ExpenseCategory,
    ExpenseEntry,
    GetExpensesArgs,
    NewExpense,
    TotalPeriod,
)
from expense_assistant.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Conversation models
    "ChatReply",
    "CompletionResponse",
    "Conversation",
    "ExchangeStatus",
    "Message",
    "Role",
    "ToolInvocation",
    "ToolResult",
    # Ledger models
    "AddExpenseArgs",
    "CalculateTotalArgs",
    "DeleteExpenseArgs",
    "ExpenseCategory",
    "ExpenseEntry",
    "GetExpensesArgs",
    "NewExpense",
    "TotalPeriod",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
