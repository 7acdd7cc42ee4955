"""
Abstract Completion Client Interface

The orchestration loop talks to the language model only through this
interface. One call is one round: messages (and optionally the tool
catalog) go in, free text and/or tool invocations come out.

Failures are reported with three distinguishable exception classes
because the caller shows different guidance for each of them.
"""

from abc import ABC, abstractmethod
from typing import Optional, Sequence

from expense_assistant.models.conversation import CompletionResponse, Message
from expense_assistant.tools.catalog import ToolDefinition


class CompletionClient(ABC):
    """
    Sends a conversation to a chat-completions service.

    Implementations must not retry internally; the loop treats every
    call as a single attempt.
    """

    @abstractmethod
    async def complete(
        self,
        messages: Sequence[Message],
        tools: Optional[Sequence[ToolDefinition]] = None,
    ) -> CompletionResponse:
        """
        Run one completion round.

        Args:
            messages: Ordered conversation, system prompt first
            tools: Tool definitions to advertise; None disables tool calling

        Raises:
            RateLimitedError: The service is throttling us
            PaymentRequiredError: Credits or billing block the call
            TransportError: Any other non-success outcome
        """
        pass


class CompletionError(Exception):
    """Base exception for completion service failures."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class RateLimitedError(CompletionError):
    """The completion service signalled throttling (HTTP 429)."""
    pass


class PaymentRequiredError(CompletionError):
    """Usage credits or billing blocked the call (HTTP 402)."""
    pass


class TransportError(CompletionError):
    """Any other failure talking to the completion service."""
    pass
