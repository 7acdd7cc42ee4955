"""
Tests for the tool catalog and dispatcher.

The dispatcher is exercised against the in-memory ledger with a fixed
clock, so period boundaries are deterministic.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from expense_assistant.models.conversation import ToolInvocation
from expense_assistant.models.expense import ExpenseCategory, NewExpense, TotalPeriod
from expense_assistant.tools import (
    ToolDispatcher,
    definitions,
    get_definition,
    is_known_tool,
)
from expense_assistant.tools.dispatcher import one_month_before, period_start

from conftest import TODAY, FailingLedger


def invoke(name: str, arguments=None, call_id: str = "call_1") -> ToolInvocation:
    return ToolInvocation(
        call_id=call_id,
        name=name,
        arguments={} if arguments is None else arguments,
    )


async def seed(ledger, owner_id: str, amount: str, category: str, day: date, description=None):
    return await ledger.add_expense(
        owner_id,
        NewExpense(
            amount=Decimal(amount),
            category=ExpenseCategory(category),
            date=day,
            description=description,
        ),
    )


class TestToolCatalog:
    """Tests for the fixed tool catalog."""

    def test_catalog_has_four_tools(self):
        """Test the advertised tool names and order."""
        assert [d.name for d in definitions()] == [
            "add_expense",
            "get_expenses",
            "calculate_total",
            "delete_expense",
        ]

    def test_required_parameters(self):
        """Test which parameters each tool requires."""
        assert get_definition("add_expense").required == ("amount", "category")
        assert get_definition("get_expenses").required == ()
        assert get_definition("calculate_total").required == ("period",)
        assert get_definition("delete_expense").required == ("id",)

    def test_category_enum_is_advertised(self):
        """Test that the model is told the closed category set."""
        schema = get_definition("add_expense").parameters
        assert schema["properties"]["category"]["enum"] == [
            "food", "travel", "bills", "shopping", "other",
        ]

    def test_function_spec_shape(self):
        """Test the OpenAI function spec for one tool."""
        spec = get_definition("delete_expense").to_function_spec()
        assert spec["type"] == "function"
        assert spec["function"]["name"] == "delete_expense"
        assert spec["function"]["parameters"]["type"] == "object"
        assert spec["function"]["parameters"]["required"] == ["id"]

    def test_unknown_tool(self):
        """Test lookups of names outside the catalog."""
        assert not is_known_tool("drop_table")
        assert get_definition("drop_table") is None


class TestPeriods:
    """Tests for calculate_total period boundaries."""

    def test_week_is_seven_days_back(self):
        """Test the week window."""
        assert period_start(TotalPeriod.WEEK, date(2024, 3, 10)) == date(2024, 3, 3)

    def test_today_and_all(self):
        """Test the today and all windows."""
        assert period_start(TotalPeriod.TODAY, TODAY) == TODAY
        assert period_start(TotalPeriod.ALL, TODAY) is None

    def test_month_clamps_to_shorter_month(self):
        """Test that 31 March maps to the end of February."""
        assert one_month_before(date(2024, 3, 31)) == date(2024, 2, 29)
        assert one_month_before(date(2023, 3, 31)) == date(2023, 2, 28)

    def test_month_wraps_year(self):
        """Test that January goes back to December of the previous year."""
        assert one_month_before(date(2024, 1, 15)) == date(2023, 12, 15)


class TestAddExpense:
    """Tests for the add_expense tool."""

    @pytest.mark.asyncio
    async def test_add_expense_defaults_date_to_today(self, dispatcher, ledger):
        """Test that a missing date means today."""
        result = await dispatcher.execute(
            invoke("add_expense", {"amount": 250, "category": "food"}), "user-1"
        )

        assert result.call_id == "call_1"
        assert result.payload["success"] is True
        expense = result.payload["expense"]
        assert expense["amount"] == 250.0
        assert expense["category"] == "food"
        assert expense["date"] == TODAY.isoformat()
        assert expense["user_id"] == "user-1"
        assert len(ledger.all_entries()) == 1

    @pytest.mark.asyncio
    async def test_add_expense_keeps_explicit_date(self, dispatcher, ledger):
        """Test that a model-resolved date is stored as given."""
        result = await dispatcher.execute(
            invoke(
                "add_expense",
                {"amount": 40, "category": "travel", "date": "2024-03-30", "description": "taxi"},
            ),
            "user-1",
        )
        assert result.payload["expense"]["date"] == "2024-03-30"
        assert result.payload["expense"]["description"] == "taxi"

    @pytest.mark.asyncio
    async def test_add_expense_rejects_bad_arguments_without_writing(self, dispatcher, ledger):
        """Test that invalid arguments never reach the ledger."""
        result = await dispatcher.execute(
            invoke("add_expense", {"amount": -3, "category": "food"}), "user-1"
        )

        assert result.is_error
        assert result.payload["error"].startswith("invalid arguments:")
        assert "amount" in result.payload["error"]
        assert ledger.all_entries() == []

    @pytest.mark.asyncio
    async def test_undecodable_arguments(self, dispatcher, ledger):
        """Test that a raw non-JSON argument string is rejected."""
        result = await dispatcher.execute(
            invoke("add_expense", "amount=5, category=food"), "user-1"
        )
        assert result.payload == {"error": "arguments must be a JSON object"}
        assert ledger.all_entries() == []

    @pytest.mark.asyncio
    async def test_add_expense_keeps_long_description(self, dispatcher, ledger):
        """Test that a long description is stored in full."""
        description = "x" * 1000
        result = await dispatcher.execute(
            invoke("add_expense", {"amount": 12, "category": "other", "description": description}),
            "user-1",
        )

        assert result.payload["success"] is True
        assert ledger.all_entries()[0].description == description


class TestGetExpenses:
    """Tests for the get_expenses tool."""

    @pytest.mark.asyncio
    async def test_get_expenses_newest_first(self, dispatcher, ledger):
        """Test ordering by date descending."""
        await seed(ledger, "user-1", "10", "food", date(2024, 3, 1))
        await seed(ledger, "user-1", "20", "bills", date(2024, 3, 20))
        await seed(ledger, "user-1", "30", "food", date(2024, 3, 10))

        result = await dispatcher.execute(invoke("get_expenses"), "user-1")
        dates = [e["date"] for e in result.payload["expenses"]]
        assert dates == ["2024-03-20", "2024-03-10", "2024-03-01"]

    @pytest.mark.asyncio
    async def test_get_expenses_filters(self, dispatcher, ledger):
        """Test category, date range and limit filters together."""
        await seed(ledger, "user-1", "10", "food", date(2024, 3, 1))
        await seed(ledger, "user-1", "20", "food", date(2024, 3, 15))
        await seed(ledger, "user-1", "25", "food", date(2024, 3, 16))
        await seed(ledger, "user-1", "30", "bills", date(2024, 3, 15))

        result = await dispatcher.execute(
            invoke(
                "get_expenses",
                {"category": "food", "startDate": "2024-03-10", "endDate": "2024-03-31", "limit": 1},
            ),
            "user-1",
        )
        expenses = result.payload["expenses"]
        assert len(expenses) == 1
        assert expenses[0]["amount"] == 25.0

    @pytest.mark.asyncio
    async def test_large_or_zero_limit_returns_everything(self, dispatcher, ledger):
        """Test that a large limit is honored and zero means no limit."""
        for day in range(1, 4):
            await seed(ledger, "user-1", "10", "food", date(2024, 3, day))

        for limit in (1000, 0):
            result = await dispatcher.execute(invoke("get_expenses", {"limit": limit}), "user-1")
            assert not result.is_error
            assert len(result.payload["expenses"]) == 3

    @pytest.mark.asyncio
    async def test_owner_isolation(self, dispatcher, ledger):
        """Test that one owner never sees another owner's rows."""
        await seed(ledger, "user-1", "10", "food", TODAY)
        await seed(ledger, "user-2", "99", "food", TODAY)

        result = await dispatcher.execute(invoke("get_expenses"), "user-1")
        assert [e["user_id"] for e in result.payload["expenses"]] == ["user-1"]


class TestCalculateTotal:
    """Tests for the calculate_total tool."""

    @pytest.mark.asyncio
    async def test_total_matches_category_breakdown(self, dispatcher, ledger):
        """Test that byCategory sums to total."""
        await seed(ledger, "user-1", "100.25", "food", TODAY)
        await seed(ledger, "user-1", "50", "bills", TODAY - timedelta(days=2))
        await seed(ledger, "user-1", "20.50", "food", TODAY - timedelta(days=400))
        await seed(ledger, "user-2", "1000", "food", TODAY)

        result = await dispatcher.execute(
            invoke("calculate_total", {"period": "all"}), "user-1"
        )
        payload = result.payload

        assert payload["total"] == 170.75
        assert payload["byCategory"] == {"food": 120.75, "bills": 50.0}
        assert sum(payload["byCategory"].values()) == pytest.approx(payload["total"])
        assert payload["count"] == 3

    @pytest.mark.asyncio
    async def test_month_period_boundary(self, dispatcher, ledger):
        """Test that the month window starts one calendar month back."""
        await seed(ledger, "user-1", "1", "other", date(2024, 2, 29))
        await seed(ledger, "user-1", "2", "other", date(2024, 2, 28))

        result = await dispatcher.execute(
            invoke("calculate_total", {"period": "month"}), "user-1"
        )
        assert result.payload["total"] == 1.0
        assert result.payload["count"] == 1

    @pytest.mark.asyncio
    async def test_week_period_boundary(self, dispatcher, ledger):
        """Test that the week window includes exactly seven days back."""
        await seed(ledger, "user-1", "1", "other", TODAY - timedelta(days=7))
        await seed(ledger, "user-1", "2", "other", TODAY - timedelta(days=8))

        result = await dispatcher.execute(
            invoke("calculate_total", {"period": "week"}), "user-1"
        )
        assert result.payload["total"] == 1.0

    @pytest.mark.asyncio
    async def test_today_with_category(self, dispatcher, ledger):
        """Test the today window combined with a category filter."""
        await seed(ledger, "user-1", "5", "food", TODAY)
        await seed(ledger, "user-1", "7", "travel", TODAY)
        await seed(ledger, "user-1", "9", "food", TODAY - timedelta(days=1))

        result = await dispatcher.execute(
            invoke("calculate_total", {"period": "today", "category": "food"}), "user-1"
        )
        assert result.payload == {"total": 5.0, "byCategory": {"food": 5.0}, "count": 1}

    @pytest.mark.asyncio
    async def test_empty_ledger_totals_zero(self, dispatcher):
        """Test totals over nothing."""
        result = await dispatcher.execute(
            invoke("calculate_total", {"period": "all"}), "user-1"
        )
        assert result.payload == {"total": 0.0, "byCategory": {}, "count": 0}


class TestDeleteExpense:
    """Tests for the delete_expense tool."""

    @pytest.mark.asyncio
    async def test_delete_is_idempotent(self, dispatcher, ledger):
        """Test that deleting twice succeeds both times."""
        entry = await seed(ledger, "user-1", "10", "food", TODAY)

        first = await dispatcher.execute(invoke("delete_expense", {"id": entry.id}), "user-1")
        second = await dispatcher.execute(invoke("delete_expense", {"id": entry.id}), "user-1")

        assert first.payload == {"success": True, "deleted": True}
        assert second.payload == {"success": True, "deleted": False}
        assert ledger.all_entries() == []

    @pytest.mark.asyncio
    async def test_delete_other_owner_row_is_noop(self, dispatcher, ledger):
        """Test that another owner's id is not deleted."""
        entry = await seed(ledger, "user-2", "10", "food", TODAY)

        result = await dispatcher.execute(invoke("delete_expense", {"id": entry.id}), "user-1")

        assert result.payload["deleted"] is False
        assert len(ledger.all_entries()) == 1


class TestDispatchFailures:
    """Tests for failures converted into error payloads."""

    @pytest.mark.asyncio
    async def test_unknown_tool(self, dispatcher):
        """Test that an unknown tool name is an error result, not an exception."""
        result = await dispatcher.execute(invoke("drop_table", {}), "user-1")
        assert result.payload == {"error": "unknown tool: drop_table"}

    @pytest.mark.asyncio
    async def test_missing_owner(self, dispatcher, ledger):
        """Test that nothing runs without an owner."""
        result = await dispatcher.execute(
            invoke("add_expense", {"amount": 1, "category": "food"}), ""
        )
        assert result.payload == {"error": "not authenticated"}
        assert ledger.all_entries() == []

    @pytest.mark.asyncio
    async def test_storage_error_becomes_payload(self):
        """Test that backend failures are reported to the model."""
        dispatcher = ToolDispatcher(FailingLedger(), clock=lambda: TODAY)
        result = await dispatcher.execute(
            invoke("add_expense", {"amount": 1, "category": "food"}), "user-1"
        )
        assert result.is_error
        assert "backend unavailable" in result.payload["error"]

    @pytest.mark.asyncio
    async def test_batch_preserves_order_and_isolates_failures(self, dispatcher, ledger):
        """Test that one bad call does not stop its siblings."""
        results = await dispatcher.execute_all(
            [
                invoke("add_expense", {"amount": 10, "category": "food"}, call_id="a"),
                invoke("add_expense", {"category": "food"}, call_id="b"),
                invoke("nope", {}, call_id="c"),
                invoke("add_expense", {"amount": 20, "category": "bills"}, call_id="d"),
            ],
            "user-1",
        )

        assert [r.call_id for r in results] == ["a", "b", "c", "d"]
        assert [r.is_error for r in results] == [False, True, True, False]
        assert len(ledger.all_entries()) == 2
