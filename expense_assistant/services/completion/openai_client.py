"""
Completion Client for OpenAI-compatible Gateways

DESIGN DECISION: The completion service speaks the OpenAI chat-completions
protocol (the default gateway fronts Gemini behind that protocol), so we
use the official openai SDK rather than hand-building HTTP requests.

This service handles:
1. Converting our Message / ToolDefinition models to the wire format
2. Converting the first choice of the response back to a CompletionResponse
3. Mapping SDK exceptions to RateLimitedError / PaymentRequiredError /
   TransportError

The SDK's own retries are disabled: nothing is retried inside the loop.
"""

import json
from typing import Any, Optional, Sequence

import openai
import structlog
from openai import AsyncOpenAI

from expense_assistant.config import CompletionSettings, get_settings
from expense_assistant.models.conversation import (
    CompletionResponse,
    Message,
    Role,
    ToolInvocation,
)
from expense_assistant.services.completion.interface import (
    CompletionClient,
    PaymentRequiredError,
    RateLimitedError,
    TransportError,
)
from expense_assistant.tools.catalog import ToolDefinition


logger = structlog.get_logger(__name__)


def message_to_wire(message: Message) -> dict[str, Any]:
    """Convert a Message to an OpenAI chat message dict."""
    if message.role == Role.TOOL:
        return {
            "role": "tool",
            "tool_call_id": message.tool_call_id,
            "content": message.content,
        }

    if message.role == Role.ASSISTANT and message.tool_calls:
        return {
            "role": "assistant",
            # content may be null when tool_calls is present
            "content": message.content or None,
            "tool_calls": [
                {
                    "id": call.call_id,
                    "type": "function",
                    "function": {
                        "name": call.name,
                        "arguments": (
                            call.raw_arguments
                            if call.raw_arguments is not None
                            else json.dumps(call.arguments)
                        ),
                    },
                }
                for call in message.tool_calls
            ],
        }

    return {"role": message.role.value, "content": message.content}


def parse_tool_calls(raw_tool_calls: Optional[Sequence[Any]]) -> list[ToolInvocation]:
    """
    Normalize tool calls from an OpenAI response message.

    Arguments that fail to decode are kept as the raw string so the
    dispatcher can report them as invalid instead of silently using {}.
    """
    invocations = []
    for tc in raw_tool_calls or []:
        function = getattr(tc, "function", None)
        if function is None:
            continue

        raw = function.arguments or "{}"
        try:
            arguments = json.loads(raw)
        except json.JSONDecodeError:
            arguments = raw

        invocations.append(
            ToolInvocation(
                call_id=tc.id,
                name=function.name,
                arguments=arguments,
                raw_arguments=raw,
            )
        )
    return invocations


class OpenAICompletionClient(CompletionClient):
    """
    Completion client backed by openai.AsyncOpenAI.

    Works with any service exposing /chat/completions in OpenAI format.
    """

    def __init__(
        self,
        settings: Optional[CompletionSettings] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self._settings = settings or get_settings().completion
        self._client = client or AsyncOpenAI(
            api_key=self._settings.api_key,
            base_url=self._settings.base_url,
            timeout=self._settings.timeout_seconds,
            max_retries=0,
        )

    def _build_request(
        self,
        messages: Sequence[Message],
        tools: Optional[Sequence[ToolDefinition]],
    ) -> dict[str, Any]:
        request: dict[str, Any] = {
            "model": self._settings.model_name,
            "messages": [message_to_wire(m) for m in messages],
            "temperature": self._settings.temperature,
            "max_tokens": self._settings.max_tokens,
        }
        if tools:
            request["tools"] = [tool.to_function_spec() for tool in tools]
            request["tool_choice"] = "auto"
        return request

    async def complete(
        self,
        messages: Sequence[Message],
        tools: Optional[Sequence[ToolDefinition]] = None,
    ) -> CompletionResponse:
        request = self._build_request(messages, tools)

        try:
            response = await self._client.chat.completions.create(**request)
        except openai.RateLimitError as e:
            logger.warning("completion_rate_limited", status_code=e.status_code)
            raise RateLimitedError(
                "Rate limit exceeded", status_code=e.status_code
            ) from e
        except openai.APIStatusError as e:
            logger.error(
                "completion_gateway_error",
                status_code=e.status_code,
                error=str(e),
            )
            if e.status_code == 402:
                raise PaymentRequiredError(
                    "Payment required", status_code=e.status_code
                ) from e
            raise TransportError(
                f"Completion gateway error: {e.status_code}",
                status_code=e.status_code,
            ) from e
        except openai.APIError as e:
            # Connection failures and timeouts
            logger.error("completion_transport_error", error=str(e))
            raise TransportError(f"Completion service unreachable: {e}") from e

        if not response.choices:
            raise TransportError("Completion service returned no choices")

        message = response.choices[0].message
        return CompletionResponse(
            content=message.content,
            tool_invocations=parse_tool_calls(message.tool_calls),
        )
