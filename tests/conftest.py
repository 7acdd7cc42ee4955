"""
Shared fixtures for Expense Assistant tests.

No real API calls are made: the completion service is replaced by a
scripted fake and the ledger lives in memory.
"""

from datetime import date
from typing import Optional, Sequence, Union

import pytest

from expense_assistant.audit import AuditLogger
from expense_assistant.models.conversation import (
    CompletionResponse,
    Message,
    ToolInvocation,
)
from expense_assistant.orchestrator import ExpenseChatFlow
from expense_assistant.services.completion import CompletionClient
from expense_assistant.services.storage import (
    InMemoryAuditStorage,
    InMemoryLedger,
    StorageError,
)
from expense_assistant.tools import ToolDefinition, ToolDispatcher


TODAY = date(2024, 3, 31)


class FakeCompletionClient(CompletionClient):
    """
    Plays back scripted responses, one per call.

    A scripted item that is an exception is raised instead of returned.
    Every call is recorded as (messages, tools).
    """

    def __init__(self, *script: Union[CompletionResponse, Exception]):
        self._script = list(script)
        self.calls: list[tuple[list[Message], Optional[list[ToolDefinition]]]] = []

    async def complete(
        self,
        messages: Sequence[Message],
        tools: Optional[Sequence[ToolDefinition]] = None,
    ) -> CompletionResponse:
        self.calls.append((list(messages), list(tools) if tools else None))
        if not self._script:
            raise AssertionError("completion called more times than scripted")
        item = self._script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class FailingLedger(InMemoryLedger):
    """Ledger whose every operation fails like an unreachable backend."""

    async def add_expense(self, owner_id, expense):
        raise StorageError("Failed to save expense: backend unavailable")

    async def list_expenses(self, owner_id, **filters):
        raise StorageError("Failed to list expenses: backend unavailable")

    async def delete_expense(self, owner_id, expense_id):
        raise StorageError("Failed to delete expense: backend unavailable")


def text(content: Optional[str]) -> CompletionResponse:
    """A completion that only carries text."""
    return CompletionResponse(content=content)


def calls(*invocations: tuple, content: Optional[str] = None) -> CompletionResponse:
    """A completion requesting tools; each invocation is (call_id, name, arguments)."""
    return CompletionResponse(
        content=content,
        tool_invocations=[
            ToolInvocation(call_id=call_id, name=name, arguments=arguments)
            for call_id, name, arguments in invocations
        ],
    )


@pytest.fixture
def ledger() -> InMemoryLedger:
    return InMemoryLedger()


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage) -> AuditLogger:
    return AuditLogger(audit_storage)


@pytest.fixture
def dispatcher(ledger) -> ToolDispatcher:
    return ToolDispatcher(ledger, clock=lambda: TODAY)


@pytest.fixture
def make_flow(ledger, audit_logger):
    """Build an ExpenseChatFlow around a scripted completion client."""

    def _make(*script, flow_ledger=None):
        client = FakeCompletionClient(*script)
        flow = ExpenseChatFlow(
            completion_client=client,
            ledger=flow_ledger or ledger,
            audit_logger=audit_logger,
            clock=lambda: TODAY,
        )
        return flow, client

    return _make
