"""
Audit Models for Expense Assistant

One event per orchestration step, so a single exchange can be replayed
from its correlation id: what the user sent, which tools the model asked
for, how each one ended, and whether the reply was degraded.

Events are only ever appended.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator


class AuditEventType(str, Enum):
    """Kinds of audited steps, one per orchestration state that matters."""
    # Exchange lifecycle
    MESSAGE_RECEIVED = "message_received"
    REPLY_GENERATED = "reply_generated"

    # Completion service
    COMPLETION_FAILED = "completion_failed"
    FOLLOWUP_FAILED = "followup_failed"

    # Tool execution
    TOOLS_REQUESTED = "tools_requested"
    TOOLS_SKIPPED = "tools_skipped"
    TOOL_EXECUTED = "tool_executed"
    TOOL_FAILED = "tool_failed"

    # Anything else
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """One audited step of an exchange. owner_id is None when unauthenticated."""

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO
    owner_id: Optional[str] = None
    correlation_id: Optional[UUID] = None
    description: str
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None

    @field_validator('timestamp')
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def to_log_dict(self) -> dict:
        """Flat key-value form for structlog."""
        return self.model_dump(mode="json")

    def to_sheets_row(self) -> list:
        """Cells in AUDIT_COLUMNS order; absent values become empty cells."""
        values = self.model_dump(mode="json")
        values["timestamp"] = self.timestamp.isoformat()
        values["details"] = json.dumps(self.details, default=str) if self.details else ""
        return [
            "" if values[key] is None else values[key]
            for key in (
                "event_id", "timestamp", "event_type", "severity", "owner_id",
                "correlation_id", "description", "details", "error_message",
            )
        ]


class AuditEventBuilder:
    """
    Named constructors for the events the orchestrator emits.

    Usage:
        event = AuditEventBuilder.message_received(owner_id, length, correlation_id)
        event = AuditEventBuilder.tool_executed(call_id, name, owner_id, correlation_id)
    """

    @staticmethod
    def message_received(
        owner_id: Optional[str],
        history_length: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MESSAGE_RECEIVED,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description="User message received",
            details={
                "history_length": history_length,
                "authenticated": owner_id is not None,
            },
        )

    @staticmethod
    def completion_failed(
        status: str,
        error_message: str,
        owner_id: Optional[str],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COMPLETION_FAILED,
            severity=AuditSeverity.ERROR,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description=f"Completion service call failed: {status}",
            error_message=error_message,
            details={"status": status},
        )

    @staticmethod
    def followup_failed(
        error_message: str,
        owner_id: Optional[str],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FOLLOWUP_FAILED,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description="Follow-up completion failed, using fallback reply",
            error_message=error_message,
        )

    @staticmethod
    def tools_requested(
        tool_names: list[str],
        owner_id: Optional[str],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TOOLS_REQUESTED,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description=f"Model requested {len(tool_names)} tool call(s)",
            details={"tools": tool_names},
        )

    @staticmethod
    def tools_skipped(
        tool_names: list[str],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TOOLS_SKIPPED,
            severity=AuditSeverity.WARNING,
            correlation_id=correlation_id,
            description="Tool calls skipped: no authenticated owner",
            details={"tools": tool_names},
        )

    @staticmethod
    def tool_executed(
        call_id: str,
        tool_name: str,
        owner_id: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TOOL_EXECUTED,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description=f"Tool executed: {tool_name}",
            details={"call_id": call_id, "tool": tool_name},
        )

    @staticmethod
    def tool_failed(
        call_id: str,
        tool_name: str,
        error_message: str,
        owner_id: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TOOL_FAILED,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description=f"Tool failed: {tool_name}",
            error_message=error_message,
            details={"call_id": call_id, "tool": tool_name},
        )

    @staticmethod
    def reply_generated(
        tool_result_count: int,
        degraded: bool,
        owner_id: Optional[str],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.REPLY_GENERATED,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description="Reply generated" + (" (degraded)" if degraded else ""),
            details={
                "tool_result_count": tool_result_count,
                "degraded": degraded,
            },
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
