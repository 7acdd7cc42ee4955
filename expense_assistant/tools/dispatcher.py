"""
Tool Dispatcher

Executes a tool invocation requested by the language model against the
ledger, on behalf of exactly one owner.

GUARANTEES:
- One ToolResult per invocation, carrying the invocation's call_id
- Failures (unknown tool, bad arguments, storage errors, bugs) become an
  error payload; nothing raises past execute()
- A failing invocation never prevents its siblings from running
- No ledger call is made without an owner_id or with partially valid
  arguments
"""

import asyncio
import calendar
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Awaitable, Callable, Optional, Sequence, Type, TypeVar

import structlog
from pydantic import ValidationError

from expense_assistant.models.conversation import ToolInvocation, ToolResult
from expense_assistant.models.expense import (
    AddExpenseArgs,
    CalculateTotalArgs,
    DeleteExpenseArgs,
    GetExpensesArgs,
    NewExpense,
    ToolArguments,
    TotalPeriod,
)
from expense_assistant.services.storage import LedgerInterface, StorageError
from expense_assistant.tools.catalog import is_known_tool


logger = structlog.get_logger(__name__)

ArgsT = TypeVar("ArgsT", bound=ToolArguments)


class ToolError(Exception):
    """Base exception for tool dispatch failures."""
    pass


class UnknownToolError(ToolError):
    """The model asked for a tool that is not in the catalog."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"unknown tool: {name}")


class InvalidArgumentsError(ToolError):
    """Tool arguments were missing, malformed or out of range."""
    pass


def one_month_before(day: date) -> date:
    """
    Same day of the previous calendar month.

    The day is clamped to the length of that month, so 31 March maps to
    28 (or 29) February.
    """
    year, month = (day.year, day.month - 1) if day.month > 1 else (day.year - 1, 12)
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def period_start(period: TotalPeriod, today: date) -> Optional[date]:
    """Earliest date included in a calculate_total period."""
    if period == TotalPeriod.TODAY:
        return today
    if period == TotalPeriod.WEEK:
        return today - timedelta(days=7)
    if period == TotalPeriod.MONTH:
        return one_month_before(today)
    return None


def decode_arguments(model: Type[ArgsT], arguments: Any) -> ArgsT:
    """
    Validate raw tool arguments into a typed record.

    Raises:
        InvalidArgumentsError: If arguments are not an object or fail validation
    """
    if not isinstance(arguments, dict):
        raise InvalidArgumentsError("arguments must be a JSON object")

    try:
        return model.model_validate(arguments)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or 'arguments'}: {err['msg']}"
            for err in e.errors()
        )
        raise InvalidArgumentsError(f"invalid arguments: {problems}") from e


class ToolDispatcher:
    """
    Maps tool invocations to ledger operations.

    The clock supplies "today" for default dates and period filters.
    """

    def __init__(
        self,
        ledger: LedgerInterface,
        clock: Callable[[], date] = date.today,
    ):
        self._ledger = ledger
        self._clock = clock
        self._handlers: dict[str, Callable[[str, Any], Awaitable[dict]]] = {
            "add_expense": self._execute_add_expense,
            "get_expenses": self._execute_get_expenses,
            "calculate_total": self._execute_calculate_total,
            "delete_expense": self._execute_delete_expense,
        }

    async def execute(
        self,
        invocation: ToolInvocation,
        owner_id: str,
    ) -> ToolResult:
        """
        Execute one invocation and return its result.

        Never raises: every failure is converted to {"error": message}.
        """
        log = logger.bind(
            tool=invocation.name,
            call_id=invocation.call_id,
            owner_id=owner_id,
        )

        if not owner_id:
            log.warning("tool_rejected_without_owner")
            return ToolResult.failure(invocation, "not authenticated")

        try:
            if not is_known_tool(invocation.name):
                raise UnknownToolError(invocation.name)
            handler = self._handlers[invocation.name]
            payload = await handler(owner_id, invocation.arguments)
        except ToolError as e:
            log.info("tool_rejected", error=str(e))
            return ToolResult.failure(invocation, str(e))
        except StorageError as e:
            log.error("tool_storage_error", error=str(e))
            return ToolResult.failure(invocation, str(e))
        except Exception as e:
            log.exception("tool_unexpected_error")
            return ToolResult.failure(invocation, f"unexpected error: {e}")

        log.info("tool_executed")
        return ToolResult(
            call_id=invocation.call_id,
            name=invocation.name,
            payload=payload,
        )

    async def execute_all(
        self,
        invocations: Sequence[ToolInvocation],
        owner_id: str,
    ) -> list[ToolResult]:
        """
        Execute a batch concurrently.

        Results come back in the order the invocations were given.
        """
        return list(
            await asyncio.gather(
                *(self.execute(invocation, owner_id) for invocation in invocations)
            )
        )

    async def _execute_add_expense(self, owner_id: str, arguments: Any) -> dict:
        args = decode_arguments(AddExpenseArgs, arguments)
        entry = await self._ledger.add_expense(
            owner_id,
            NewExpense(
                amount=args.amount,
                category=args.category,
                date=args.expense_date or self._clock(),
                description=args.description,
            ),
        )
        return {"success": True, "expense": entry.to_result_dict()}

    async def _execute_get_expenses(self, owner_id: str, arguments: Any) -> dict:
        args = decode_arguments(GetExpensesArgs, arguments)
        entries = await self._ledger.list_expenses(
            owner_id,
            category=args.category,
            start_date=args.start_date,
            end_date=args.end_date,
            limit=args.limit,
        )
        return {"expenses": [entry.to_result_dict() for entry in entries]}

    async def _execute_calculate_total(self, owner_id: str, arguments: Any) -> dict:
        args = decode_arguments(CalculateTotalArgs, arguments)
        today = self._clock()

        entries = await self._ledger.list_expenses(
            owner_id,
            category=args.category,
            start_date=period_start(args.period, today),
            end_date=today if args.period == TotalPeriod.TODAY else None,
        )

        total = Decimal("0")
        by_category: dict[str, Decimal] = {}
        for entry in entries:
            total += entry.amount
            key = entry.category.value
            by_category[key] = by_category.get(key, Decimal("0")) + entry.amount

        return {
            "total": float(total),
            "byCategory": {key: float(value) for key, value in by_category.items()},
            "count": len(entries),
        }

    async def _execute_delete_expense(self, owner_id: str, arguments: Any) -> dict:
        args = decode_arguments(DeleteExpenseArgs, arguments)
        deleted = await self._ledger.delete_expense(owner_id, args.id)
        # Idempotent: a second delete of the same id is still a success
        return {"success": True, "deleted": deleted}
