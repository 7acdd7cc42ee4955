"""
Main Orchestrator for Expense Assistant

This module ties the components together and defines the end-to-end flow
for one user message:

    BUILD_PROMPT → AWAIT_COMPLETION_1 → DONE
                                      ↘ DISPATCH_TOOLS → BUILD_FOLLOWUP_PROMPT
                                        → AWAIT_COMPLETION_2 → DONE

DESIGN DECISION: The orchestrator enforces the boundaries:
- No ledger operation runs without an authenticated owner
- At most one tool round per message; the follow-up round gets no tools
- Only a failed FIRST completion call turns into an error reply; tool
  failures and a failed follow-up are absorbed into a normal reply
- Every step is audited
"""

import json
import logging
from datetime import date
from enum import Enum
from typing import Callable, Iterable, Optional, Sequence
from uuid import UUID

import structlog

from expense_assistant.audit import AuditLogger, create_correlation_id
from expense_assistant.config import Settings, get_settings
from expense_assistant.models.conversation import (
    ChatReply,
    CompletionResponse,
    Conversation,
    ExchangeStatus,
    Message,
    ToolResult,
)
from expense_assistant.models.expense import ExpenseCategory
from expense_assistant.services.completion import (
    CompletionClient,
    CompletionError,
    OpenAICompletionClient,
    PaymentRequiredError,
    RateLimitedError,
)
from expense_assistant.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedger,
    InMemoryLedger,
    LedgerInterface,
)
from expense_assistant.tools import ToolDispatcher, definitions


logger = structlog.get_logger(__name__)


class ExchangeState(str, Enum):
    """States of one exchange, in the order they can be visited."""
    BUILD_PROMPT = "build_prompt"
    AWAIT_COMPLETION_1 = "await_completion_1"
    DISPATCH_TOOLS = "dispatch_tools"
    BUILD_FOLLOWUP_PROMPT = "build_followup_prompt"
    AWAIT_COMPLETION_2 = "await_completion_2"
    DONE = "done"


# User-facing replies for failures of the first completion call
STATUS_MESSAGES = {
    ExchangeStatus.RATE_LIMITED: "Rate limit exceeded. Please try again in a moment.",
    ExchangeStatus.PAYMENT_REQUIRED: "AI credits exhausted. Please add credits to continue.",
    ExchangeStatus.UPSTREAM_ERROR: "Sorry, I encountered an error. Please try again.",
}

SIGN_IN_MESSAGE = "Please sign in so I can record and look up your expenses."

EMPTY_REPLY_MESSAGE = "Sorry, I didn't catch that. Could you rephrase?"


SYSTEM_PROMPT_TEMPLATE = """You are an intelligent expense tracking assistant. Help users manage their expenses naturally.

Current date: {today}

Available actions you can perform:
1. ADD_EXPENSE - Record a new expense
2. VIEW_EXPENSES - Show expenses (all, by date, by category)
3. DELETE_EXPENSE - Remove an expense
4. ANALYTICS - Calculate totals and provide insights

When users want to add an expense, extract:
- amount (number)
- category ({categories})
- date (default to today)
- description (optional)

Resolve relative dates like "yesterday" or "last Friday" against the current date.

Respond in a friendly, conversational tone. Use the tools provided to interact with the database."""


def build_system_prompt(today: date) -> str:
    """Fixed system instruction, stamped with today's date."""
    return SYSTEM_PROMPT_TEMPLATE.format(
        today=today.isoformat(),
        categories=", ".join(c.value for c in ExpenseCategory),
    )


def classify_completion_error(error: CompletionError) -> ExchangeStatus:
    """Map a completion failure to the status shown to the caller."""
    if isinstance(error, RateLimitedError):
        return ExchangeStatus.RATE_LIMITED
    if isinstance(error, PaymentRequiredError):
        return ExchangeStatus.PAYMENT_REQUIRED
    return ExchangeStatus.UPSTREAM_ERROR


def summarize_tool_results(results: Sequence[ToolResult]) -> str:
    """
    Last-resort reply when no model text is available after tools ran.

    Built only from the results themselves; never empty.
    """
    succeeded = sum(1 for r in results if not r.is_error)
    if succeeded == len(results):
        return (
            f"Done. I completed {succeeded} action(s), "
            "but couldn't write a summary. Check your expense list for details."
        )
    return (
        f"I completed {succeeded} of {len(results)} action(s); "
        "some could not be completed. Check your expense list for details."
    )


class ExpenseChatFlow:
    """
    Orchestrates one chat exchange per user message.

    FLOW:
    1. System prompt + history + user message → completion (with tools)
    2. No tool calls, or no owner → reply with the model's text
    3. Otherwise run every tool call against the ledger
    4. Prompt + assistant tool-call turn + tool results → completion (no tools)
    5. Return the reply and the raw tool results

    No conversation state is kept here: history comes in with each call
    and the extended conversation goes back out in the ChatReply.
    """

    def __init__(
        self,
        completion_client: CompletionClient,
        ledger: LedgerInterface,
        dispatcher: Optional[ToolDispatcher] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Callable[[], date] = date.today,
    ):
        self._completion_client = completion_client
        self._clock = clock
        self._dispatcher = dispatcher or ToolDispatcher(ledger, clock=clock)
        self._audit_logger = audit_logger or AuditLogger()

    def build_prompt(
        self,
        history: Iterable[Message],
        user_message: str,
    ) -> list[Message]:
        """System instruction, then the full prior conversation, then the new message."""
        return [
            Message.system(build_system_prompt(self._clock())),
            *history,
            Message.user(user_message),
        ]

    @staticmethod
    def build_followup_prompt(
        messages: Sequence[Message],
        first: CompletionResponse,
        results: Sequence[ToolResult],
    ) -> list[Message]:
        """
        The first round's input, the assistant turn that asked for tools,
        and one tool message per result in invocation order.
        """
        return [
            *messages,
            Message.assistant(first.content, tool_calls=first.tool_invocations),
            *(
                Message.tool(result.call_id, json.dumps(result.payload, default=str))
                for result in results
            ),
        ]

    async def handle(
        self,
        user_message: str,
        conversation_history: Iterable[Message] = (),
        owner_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> ChatReply:
        """
        Handle one user message.

        Args:
            user_message: What the user typed
            conversation_history: Prior turns (a Conversation or any sequence of Messages)
            owner_id: Authenticated owner; None if the request is unauthenticated
            correlation_id: Ties the audit events of this exchange together

        Returns:
            ChatReply with the reply text and every ToolResult produced
        """
        correlation_id = correlation_id or create_correlation_id()
        history = Conversation.of(conversation_history)
        log = logger.bind(correlation_id=str(correlation_id), owner_id=owner_id)

        await self._audit_logger.log_message_received(
            owner_id=owner_id,
            history_length=len(history.messages),
            correlation_id=correlation_id,
        )

        log.debug("exchange_state", state=ExchangeState.BUILD_PROMPT.value)
        messages = self.build_prompt(history.messages, user_message)

        log.debug("exchange_state", state=ExchangeState.AWAIT_COMPLETION_1.value)
        try:
            first = await self._completion_client.complete(messages, tools=definitions())
        except CompletionError as e:
            status = classify_completion_error(e)
            await self._audit_logger.log_completion_failed(
                status=status.value,
                error_message=str(e),
                owner_id=owner_id,
                correlation_id=correlation_id,
            )
            return ChatReply(
                reply=STATUS_MESSAGES[status],
                status=status,
                conversation=history,
            )
        except Exception as e:
            log.exception("completion_unexpected_error")
            await self._audit_logger.log_error(
                error_type=type(e).__name__,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            return ChatReply(
                reply=STATUS_MESSAGES[ExchangeStatus.UPSTREAM_ERROR],
                status=ExchangeStatus.UPSTREAM_ERROR,
                conversation=history,
            )

        if not first.has_tool_invocations:
            return await self._finish(
                history, user_message, first.content or EMPTY_REPLY_MESSAGE,
                [], False, owner_id, correlation_id,
            )

        tool_names = [inv.name for inv in first.tool_invocations]

        if not owner_id:
            await self._audit_logger.log_tools_skipped(
                tool_names=tool_names,
                correlation_id=correlation_id,
            )
            return await self._finish(
                history, user_message, first.content or SIGN_IN_MESSAGE,
                [], False, owner_id, correlation_id,
            )

        log.debug("exchange_state", state=ExchangeState.DISPATCH_TOOLS.value)
        await self._audit_logger.log_tools_requested(
            tool_names=tool_names,
            owner_id=owner_id,
            correlation_id=correlation_id,
        )
        results = await self._dispatcher.execute_all(first.tool_invocations, owner_id)
        for result in results:
            await self._audit_logger.log_tool_result(
                call_id=result.call_id,
                tool_name=result.name,
                error_message=result.payload.get("error") if result.is_error else None,
                owner_id=owner_id,
                correlation_id=correlation_id,
            )

        log.debug("exchange_state", state=ExchangeState.BUILD_FOLLOWUP_PROMPT.value)
        followup = self.build_followup_prompt(messages, first, results)

        log.debug("exchange_state", state=ExchangeState.AWAIT_COMPLETION_2.value)
        reply: Optional[str] = None
        degraded = False
        try:
            second = await self._completion_client.complete(followup)
            reply = second.content
        except CompletionError as e:
            degraded = True
            await self._audit_logger.log_followup_failed(
                error_message=str(e),
                owner_id=owner_id,
                correlation_id=correlation_id,
            )
        except Exception as e:
            degraded = True
            log.exception("followup_unexpected_error")
            await self._audit_logger.log_followup_failed(
                error_message=f"{type(e).__name__}: {e}",
                owner_id=owner_id,
                correlation_id=correlation_id,
            )

        if not reply:
            degraded = True
            reply = first.content or summarize_tool_results(results)

        return await self._finish(
            history, user_message, reply, results, degraded, owner_id, correlation_id,
        )

    async def _finish(
        self,
        history: Conversation,
        user_message: str,
        reply: str,
        results: list[ToolResult],
        degraded: bool,
        owner_id: Optional[str],
        correlation_id: UUID,
    ) -> ChatReply:
        logger.debug(
            "exchange_state",
            state=ExchangeState.DONE.value,
            correlation_id=str(correlation_id),
        )
        await self._audit_logger.log_reply_generated(
            tool_result_count=len(results),
            degraded=degraded,
            owner_id=owner_id,
            correlation_id=correlation_id,
        )
        return ChatReply(
            reply=reply,
            tool_results=results,
            degraded=degraded,
            conversation=history.append(
                Message.user(user_message),
                Message.assistant(reply),
            ),
        )


def create_app_components(
    settings: Optional[Settings] = None,
) -> tuple[ExpenseChatFlow, LedgerInterface]:
    """
    Factory function to create all application components.

    Uses Google Sheets when APP settings ask for it and it can be
    configured; otherwise keeps the ledger in memory.

    Returns:
        (chat_flow, ledger)
    """
    settings = settings or get_settings()

    # structlog renders through stdlib logging; the level gate lives there
    logging.basicConfig(format="%(message)s", level=settings.app.log_level)

    ledger: LedgerInterface = InMemoryLedger()
    audit_logger = AuditLogger()

    if settings.app.use_sheets_storage:
        try:
            sheets_client = GoogleSheetsClient(settings.google_sheets)
            ledger = GoogleSheetsLedger(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue without it
            logger.warning("sheets_storage_unavailable", error=str(e))

    completion_client = OpenAICompletionClient(settings.completion)

    chat_flow = ExpenseChatFlow(
        completion_client=completion_client,
        ledger=ledger,
        audit_logger=audit_logger,
    )

    return chat_flow, ledger
