"""
Audit Logger

DESIGN DECISION: Every change to a user's records is logged, together
with archives and collaborator failures.

The audit logger:
- Is async to match the storage layer
- Gracefully handles failures (never crashes the app if logging fails)
- Supports correlation IDs to trace related events
- Stamps events with the session owner when there is one
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from finance_tracker.models.audit import AuditEvent, AuditEventBuilder
from finance_tracker.services.storage import AuditStorageInterface


# Configure structlog for local logging
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
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An audit store, when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
        user_email: Optional[str] = None,
    ):
        self._storage = storage
        self._user_email = user_email
        self._logger = structlog.get_logger("finance_tracker.audit")

    def for_user(self, user_email: Optional[str]) -> "AuditLogger":
        """Same sink, events stamped with another session owner."""
        return AuditLogger(self._storage, user_email)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.
        Returns True if storage write succeeded (or no storage configured).
        """
        if event.user_email is None and self._user_email:
            event = event.model_copy(update={"user_email": self._user_email})

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
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_session_started(self, user_email: str) -> None:
        await self.log(AuditEventBuilder.session_started(user_email))

    async def log_session_ended(self, user_email: str) -> None:
        await self.log(AuditEventBuilder.session_ended(user_email))

    async def log_record_created(
        self,
        collection: str,
        record_id: str,
        summary: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.record_created(
            collection=collection,
            record_id=record_id,
            summary=summary,
            correlation_id=correlation_id,
        ))

    async def log_record_updated(
        self,
        collection: str,
        record_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.record_updated(
            collection=collection,
            record_id=record_id,
            correlation_id=correlation_id,
        ))

    async def log_record_deleted(
        self,
        collection: str,
        record_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.record_deleted(
            collection=collection,
            record_id=record_id,
            correlation_id=correlation_id,
        ))

    async def log_validation_failed(
        self,
        record_type: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.validation_failed(
            record_type=record_type,
            issues=issues,
            correlation_id=correlation_id,
        ))

    async def log_report_archived(
        self,
        report_id: str,
        period_label: str,
        history_key: str,
        cleared: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.report_archived(
            report_id=report_id,
            period_label=period_label,
            history_key=history_key,
            cleared=cleared,
            correlation_id=correlation_id,
        ))

    async def log_report_deleted(
        self,
        report_id: str,
        history_key: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.report_deleted(
            report_id=report_id,
            history_key=history_key,
            correlation_id=correlation_id,
        ))

    async def log_ai_completed(
        self,
        operation: str,
        model_name: str,
        source_count: int = 0,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.ai_request_completed(
            operation=operation,
            model_name=model_name,
            source_count=source_count,
            correlation_id=correlation_id,
        ))

    async def log_ai_failed(
        self,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.ai_request_failed(
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        await self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a user action (e.g. archiving a month) and
    pass it through all subsequent operations.
    """
    return uuid4()
