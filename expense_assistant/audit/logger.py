"""
Audit Logger

Writes AuditEvents to the structured log and, when configured, to an
audit store. A failing store is reported in the log and otherwise
ignored: auditing never changes the outcome of an exchange.
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from expense_assistant.models.audit import AuditEvent, AuditEventBuilder
from expense_assistant.services.storage import AuditStorageInterface


# JSON lines through stdlib logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """Front door for audit events; one instance per app."""

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        self._storage = storage
        self._logger = structlog.get_logger("expense_assistant.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Record one event.

        Returns False only when a configured store rejected the write.
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_message_received(
        self,
        owner_id: Optional[str],
        history_length: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.message_received(
            owner_id=owner_id,
            history_length=history_length,
            correlation_id=correlation_id,
        ))

    async def log_completion_failed(
        self,
        status: str,
        error_message: str,
        owner_id: Optional[str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.completion_failed(
            status=status,
            error_message=error_message,
            owner_id=owner_id,
            correlation_id=correlation_id,
        ))

    async def log_followup_failed(
        self,
        error_message: str,
        owner_id: Optional[str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.followup_failed(
            error_message=error_message,
            owner_id=owner_id,
            correlation_id=correlation_id,
        ))

    async def log_tools_requested(
        self,
        tool_names: list[str],
        owner_id: Optional[str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.tools_requested(
            tool_names=tool_names,
            owner_id=owner_id,
            correlation_id=correlation_id,
        ))

    async def log_tools_skipped(
        self,
        tool_names: list[str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.tools_skipped(
            tool_names=tool_names,
            correlation_id=correlation_id,
        ))

    async def log_tool_result(
        self,
        call_id: str,
        tool_name: str,
        error_message: Optional[str],
        owner_id: str,
        correlation_id: UUID,
    ) -> None:
        """Log one tool outcome, as executed or failed."""
        if error_message is None:
            event = AuditEventBuilder.tool_executed(
                call_id=call_id,
                tool_name=tool_name,
                owner_id=owner_id,
                correlation_id=correlation_id,
            )
        else:
            event = AuditEventBuilder.tool_failed(
                call_id=call_id,
                tool_name=tool_name,
                error_message=error_message,
                owner_id=owner_id,
                correlation_id=correlation_id,
            )
        await self.log(event)

    async def log_reply_generated(
        self,
        tool_result_count: int,
        degraded: bool,
        owner_id: Optional[str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.reply_generated(
            tool_result_count=tool_result_count,
            degraded=degraded,
            owner_id=owner_id,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """New id for one exchange; every event of that exchange carries it."""
    return uuid4()
