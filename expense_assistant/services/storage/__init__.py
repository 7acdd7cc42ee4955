"""
Storage Services Package

Provides abstract interfaces and concrete implementations for the expense
ledger and the audit log. Google Sheets is the persistent backend; the
in-memory implementation backs tests and local runs.
"""

from expense_assistant.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    LedgerInterface,
    StorageError,
)
from expense_assistant.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryLedger,
)
from expense_assistant.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedger,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LedgerInterface",
    # Exceptions
    "ConnectionError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryLedger",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedger",
]
