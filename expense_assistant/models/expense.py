"""
Ledger Data Models for Expense Assistant

These models define the schemas for expense records and for the
arguments the language model supplies when it asks for a ledger
operation.

DESIGN DECISION: Tool arguments arrive as loosely-typed JSON produced by
the model. Each tool gets its own argument record so that bad input is
rejected by validation before any ledger call is made with partial data.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class ExpenseCategory(str, Enum):
    """
    Supported expense categories.

    DESIGN DECISION: Using explicit categories rather than free text ensures
    consistent categorization and enables reliable totals per category.
    """
    FOOD = "food"
    TRAVEL = "travel"
    BILLS = "bills"
    SHOPPING = "shopping"
    OTHER = "other"


class TotalPeriod(str, Enum):
    """Time windows understood by calculate_total."""
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    ALL = "all"


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _normalize_category(value: Any) -> Any:
    """Accept 'Food' or ' food ' from the model as well as 'food'."""
    if isinstance(value, str):
        return value.strip().lower() or None
    return value


# =============================================================================
# LEDGER RECORDS
# =============================================================================

class NewExpense(BaseModel):
    """An expense that has not been stored yet."""
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Decimal = Field(
        ...,
        gt=0,
        description="Amount spent"
    )
    category: ExpenseCategory
    date: date
    description: Optional[str] = None


class ExpenseEntry(BaseModel):
    """
    A stored expense.

    Owned and persisted by the ledger adapter. The owner_id is the
    authorization scope every ledger operation is filtered by.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        default_factory=lambda: str(uuid4()),
        description="Unique expense ID"
    )
    owner_id: str = Field(
        ...,
        min_length=1,
        description="Owner this expense belongs to"
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Amount spent"
    )
    category: ExpenseCategory
    date: date
    description: Optional[str] = None
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the expense was recorded (UTC)"
    )

    @field_validator('created_at')
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        # Rows written before timestamps carried an offset are UTC
        return as_utc(v)

    @classmethod
    def from_new(cls, owner_id: str, expense: NewExpense) -> "ExpenseEntry":
        return cls(
            owner_id=owner_id,
            amount=expense.amount,
            category=expense.category,
            date=expense.date,
            description=expense.description,
        )

    def to_result_dict(self) -> dict:
        """Convert to a JSON-friendly dict for tool results."""
        return {
            "id": self.id,
            "user_id": self.owner_id,
            "amount": float(self.amount),
            "category": self.category.value,
            "date": self.date.isoformat(),
            "description": self.description,
            "created_at": self.created_at.isoformat(),
        }


# =============================================================================
# TOOL ARGUMENT RECORDS
# =============================================================================

class ToolArguments(BaseModel):
    """Base for decoded tool arguments. Unknown keys are ignored."""
    model_config = ConfigDict(
        extra="ignore",
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class AddExpenseArgs(ToolArguments):
    amount: Decimal = Field(..., gt=0)
    category: ExpenseCategory
    expense_date: Optional[date] = Field(default=None, alias="date")
    description: Optional[str] = None

    @field_validator('category', mode='before')
    @classmethod
    def normalize_category(cls, v: Any) -> Any:
        return _normalize_category(v)

    @field_validator('expense_date', 'description', mode='before')
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


class GetExpensesArgs(ToolArguments):
    category: Optional[ExpenseCategory] = None
    start_date: Optional[date] = Field(default=None, alias="startDate")
    end_date: Optional[date] = Field(default=None, alias="endDate")
    limit: Optional[int] = Field(default=None, ge=1)

    @field_validator('category', mode='before')
    @classmethod
    def normalize_category(cls, v: Any) -> Any:
        return _normalize_category(v)

    @field_validator('start_date', 'end_date', mode='before')
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator('limit', mode='before')
    @classmethod
    def zero_means_unlimited(cls, v: Any) -> Any:
        if v in (0, "", "0"):
            return None
        return v


class CalculateTotalArgs(ToolArguments):
    period: TotalPeriod
    category: Optional[ExpenseCategory] = None

    @field_validator('period', mode='before')
    @classmethod
    def normalize_period(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator('category', mode='before')
    @classmethod
    def normalize_category(cls, v: Any) -> Any:
        return _normalize_category(v)


class DeleteExpenseArgs(ToolArguments):
    id: str = Field(..., min_length=1)

    @field_validator('id', mode='before')
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        # Models sometimes send numeric ids unquoted
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v
