"""
Conversation Models for Expense Assistant

The shared vocabulary between the orchestration loop, the completion
client and the tool dispatcher: messages, tool invocations requested by
the model, and the results sent back to it.

DESIGN DECISION: Messages are frozen and a Conversation only grows by
returning a new value. The loop appends, never mutates or reorders, and
no conversation state lives inside the process between calls.
"""

from enum import Enum
from typing import Any, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    """Who a message is from."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class ToolInvocation(BaseModel):
    """
    A tool call requested by the completion service.

    call_id is the join key used to attach the result back to this request.
    arguments holds the decoded JSON object; if the model sent something
    that did not decode, it holds the raw string instead and the dispatcher
    rejects it.
    """
    model_config = ConfigDict(frozen=True)

    call_id: str
    name: str
    arguments: Any = Field(default_factory=dict)
    raw_arguments: Optional[str] = Field(
        default=None,
        description="Argument string exactly as the service sent it"
    )


class ToolResult(BaseModel):
    """Outcome of one ToolInvocation. Exactly one per invocation."""
    model_config = ConfigDict(frozen=True)

    call_id: str
    name: str
    payload: dict[str, Any]

    @property
    def is_error(self) -> bool:
        return "error" in self.payload

    @classmethod
    def failure(cls, invocation: ToolInvocation, message: str) -> "ToolResult":
        return cls(
            call_id=invocation.call_id,
            name=invocation.name,
            payload={"error": message},
        )


class Message(BaseModel):
    """One conversation turn."""
    model_config = ConfigDict(frozen=True)

    role: Role
    content: str = ""
    tool_call_id: Optional[str] = None
    # Only set on the assistant turn that requested tools
    tool_calls: tuple[ToolInvocation, ...] = ()

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role=Role.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(
        cls,
        content: Optional[str] = None,
        tool_calls: Iterable[ToolInvocation] = (),
    ) -> "Message":
        return cls(
            role=Role.ASSISTANT,
            content=content or "",
            tool_calls=tuple(tool_calls),
        )

    @classmethod
    def tool(cls, call_id: str, content: str) -> "Message":
        return cls(role=Role.TOOL, content=content, tool_call_id=call_id)


class Conversation(BaseModel):
    """
    Ordered, immutable sequence of messages.

    Order is significant: it is the context the completion service
    reasons over.
    """
    model_config = ConfigDict(frozen=True)

    messages: tuple[Message, ...] = ()

    @classmethod
    def of(cls, messages: Iterable[Message] = ()) -> "Conversation":
        if isinstance(messages, Conversation):
            return messages
        return cls(messages=tuple(messages))

    def append(self, *messages: Message) -> "Conversation":
        return Conversation(messages=self.messages + tuple(messages))


class CompletionResponse(BaseModel):
    """What one round with the completion service produced."""

    content: Optional[str] = None
    tool_invocations: list[ToolInvocation] = Field(default_factory=list)

    @property
    def has_tool_invocations(self) -> bool:
        return len(self.tool_invocations) > 0


class ExchangeStatus(str, Enum):
    """
    Outcome class of one exchange.

    Hosts that expose the loop over HTTP use http_status; others show
    different guidance for each value.
    """
    OK = "ok"
    RATE_LIMITED = "rate_limited"
    PAYMENT_REQUIRED = "payment_required"
    UPSTREAM_ERROR = "upstream_error"

    @property
    def http_status(self) -> int:
        return {
            ExchangeStatus.OK: 200,
            ExchangeStatus.RATE_LIMITED: 429,
            ExchangeStatus.PAYMENT_REQUIRED: 402,
            ExchangeStatus.UPSTREAM_ERROR: 500,
        }[self]


class ChatReply(BaseModel):
    """
    Result of handling one user message.

    tool_results is non-empty whenever ledger operations ran; callers use
    it to refresh any cached view of the ledger.
    """

    reply: str
    tool_results: list[ToolResult] = Field(default_factory=list)
    status: ExchangeStatus = ExchangeStatus.OK
    degraded: bool = Field(
        default=False,
        description="True when the follow-up round failed and a fallback reply was used"
    )
    conversation: Conversation = Field(default_factory=Conversation)

    @property
    def is_error(self) -> bool:
        return self.status != ExchangeStatus.OK

    def to_response_dict(self) -> dict:
        """Body shape for HTTP hosts: {response, toolResults} or {error}."""
        if self.is_error:
            return {"error": self.reply}
        return {
            "response": self.reply,
            "toolResults": [
                {
                    "tool_call_id": result.call_id,
                    "function_name": result.name,
                    "result": result.payload,
                }
                for result in self.tool_results
            ],
            "degraded": self.degraded,
        }
