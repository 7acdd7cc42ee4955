"""
In-Memory Storage Implementation

Used for tests and for running the app locally without Google Sheets.
Data lives only as long as the process.
"""

from datetime import date
from typing import Optional
from uuid import UUID

from expense_assistant.models.audit import AuditEvent
from expense_assistant.models.expense import (
    ExpenseCategory,
    ExpenseEntry,
    NewExpense,
)
from expense_assistant.services.storage.interface import (
    AuditStorageInterface,
    LedgerInterface,
)


class InMemoryLedger(LedgerInterface):
    """Ledger kept in a dict keyed by expense id."""

    def __init__(self, entries: Optional[list[ExpenseEntry]] = None):
        self._entries: dict[str, ExpenseEntry] = {}
        for entry in entries or []:
            self._entries[entry.id] = entry

    async def add_expense(
        self,
        owner_id: str,
        expense: NewExpense,
    ) -> ExpenseEntry:
        entry = ExpenseEntry.from_new(owner_id, expense)
        self._entries[entry.id] = entry
        return entry

    async def list_expenses(
        self,
        owner_id: str,
        category: Optional[ExpenseCategory] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: Optional[int] = None,
    ) -> list[ExpenseEntry]:
        matches = [
            entry for entry in self._entries.values()
            if entry.owner_id == owner_id
            and (category is None or entry.category == category)
            and (start_date is None or entry.date >= start_date)
            and (end_date is None or entry.date <= end_date)
        ]
        matches.sort(key=lambda e: (e.date, e.created_at), reverse=True)

        if limit is not None:
            matches = matches[:limit]
        return matches

    async def delete_expense(
        self,
        owner_id: str,
        expense_id: str,
    ) -> bool:
        entry = self._entries.get(expense_id)
        if entry is None or entry.owner_id != owner_id:
            return False
        del self._entries[expense_id]
        return True

    def all_entries(self) -> list[ExpenseEntry]:
        """Every stored entry regardless of owner (for inspection)."""
        return list(self._entries.values())


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit list."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        return [e for e in self._events if e.correlation_id == correlation_id]

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]
