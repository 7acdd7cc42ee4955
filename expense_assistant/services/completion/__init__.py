"""
Completion Services Package

Abstract completion client plus an implementation for OpenAI-compatible
chat-completions gateways.
"""

from expense_assistant.services.completion.interface import (
    CompletionClient,
    CompletionError,
    PaymentRequiredError,
    RateLimitedError,
    TransportError,
)
from expense_assistant.services.completion.openai_client import (
    OpenAICompletionClient,
)

__all__ = [
    "CompletionClient",
    "CompletionError",
    "OpenAICompletionClient",
    "PaymentRequiredError",
    "RateLimitedError",
    "TransportError",
]
