"""Services package."""

from expense_assistant.services.completion import (
    CompletionClient,
    CompletionError,
    OpenAICompletionClient,
    PaymentRequiredError,
    RateLimitedError,
    TransportError,
)
from expense_assistant.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedger,
    InMemoryAuditStorage,
    InMemoryLedger,
    LedgerInterface,
    StorageError,
)

__all__ = [
    # Completion services
    "CompletionClient",
    "CompletionError",
    "OpenAICompletionClient",
    "PaymentRequiredError",
    "RateLimitedError",
    "TransportError",
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedger",
    "InMemoryAuditStorage",
    "InMemoryLedger",
    "LedgerInterface",
    "StorageError",
]
