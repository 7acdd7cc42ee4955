"""
Abstract Storage Interface

DESIGN DECISION: The tool dispatcher only sees these interfaces. Google
Sheets and the in-memory store are interchangeable behind them.

Every ledger method takes the owner_id first. Implementations MUST filter
by it: an expense that belongs to another owner is invisible, and cannot
be deleted.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Optional
from uuid import UUID

from expense_assistant.models.audit import AuditEvent
from expense_assistant.models.expense import (
    ExpenseCategory,
    ExpenseEntry,
    NewExpense,
)


class LedgerInterface(ABC):
    """
    Abstract interface for the expense ledger.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods. Each mutation is a single atomic
    operation from the caller's point of view.
    """

    @abstractmethod
    async def add_expense(
        self,
        owner_id: str,
        expense: NewExpense,
    ) -> ExpenseEntry:
        """
        Insert one expense for an owner.

        Returns:
            The stored entry, with its generated id

        Raises:
            StorageError: If the insert fails
        """
        pass

    @abstractmethod
    async def list_expenses(
        self,
        owner_id: str,
        category: Optional[ExpenseCategory] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: Optional[int] = None,
    ) -> list[ExpenseEntry]:
        """
        List an owner's expenses, newest date first.

        Args:
            owner_id: Owner to scope the query to
            category: Only this category
            start_date: Only expenses on or after this date
            end_date: Only expenses on or before this date
            limit: Maximum number of results

        Filters compose conjunctively.

        Raises:
            StorageError: If the query fails
        """
        pass

    @abstractmethod
    async def delete_expense(
        self,
        owner_id: str,
        expense_id: str,
    ) -> bool:
        """
        Delete the expense matching both id and owner.

        Returns:
            True if a row was removed, False if nothing matched

        Raises:
            StorageError: If the delete fails
        """
        pass


class AuditStorageInterface(ABC):
    """Where audit events are kept. Append only."""

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """Store one event; True once it is durable."""
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Events of one exchange, oldest first."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Latest events across all exchanges, newest first."""
        pass


class StorageError(Exception):
    """A backend read or write failed. The message is safe to show the model."""
    pass


class ConnectionError(StorageError):
    """The backend could not be reached or authorized."""
    pass
