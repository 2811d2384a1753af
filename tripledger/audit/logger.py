"""
Audit Logger

DESIGN DECISION: Every significant action in the system is logged.
This provides:
1. Traceability of project, ledger and admin changes
2. A record of partial cascades that need follow-up
3. Debugging capability

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
"""

from typing import Optional

import structlog

from tripledger.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from tripledger.services.storage import AuditStorageInterface


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
    2. The audit storage backend (for persistence), when configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
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
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_project_created(self, project_id: str, owner_id: str, name: str) -> None:
        await self.log(AuditEventBuilder.project_created(project_id, owner_id, name))

    async def log_project_updated(
        self,
        project_id: str,
        owner_id: str,
        fields: list[str],
        by_admin: bool = False,
    ) -> None:
        await self.log(
            AuditEventBuilder.project_updated(project_id, owner_id, fields, by_admin)
        )

    async def log_access(
        self,
        project_id: str,
        owner_id: Optional[str],
        granted: bool,
    ) -> None:
        """Log an access-gate outcome."""
        if granted:
            event = AuditEventBuilder.access_granted(project_id, owner_id)
        else:
            event = AuditEventBuilder.access_denied(project_id, owner_id)
        await self.log(event)

    async def log_entry_changed(
        self,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: str,
        owner_id: str,
        project_id: str,
    ) -> None:
        """Log a transaction or daily report create/update/delete."""
        await self.log(
            AuditEventBuilder.entry_changed(
                event_type, entity_type, entity_id, owner_id, project_id
            )
        )

    async def log_cascade_completed(
        self,
        project_id: str,
        owner_id: str,
        transactions_deleted: int,
        reports_deleted: int,
        by_admin: bool = False,
    ) -> None:
        await self.log(
            AuditEventBuilder.cascade_completed(
                project_id, owner_id, transactions_deleted, reports_deleted, by_admin
            )
        )

    async def log_cascade_partial(
        self,
        project_id: str,
        owner_id: str,
        deleted: list[str],
        remaining: list[str],
        error_message: str,
        by_admin: bool = False,
    ) -> None:
        await self.log(
            AuditEventBuilder.cascade_partial(
                project_id, owner_id, deleted, remaining, error_message, by_admin
            )
        )

    async def log_admin_login(self, succeeded: bool) -> None:
        await self.log(AuditEventBuilder.admin_login(succeeded))

    async def log_receipts_exported(self, row_count: int, filename: Optional[str] = None) -> None:
        await self.log(AuditEventBuilder.receipts_exported(row_count, filename))

    async def log_receipt_scan(self, succeeded: bool, error_message: Optional[str] = None) -> None:
        await self.log(AuditEventBuilder.receipt_scanned(succeeded, error_message))

    async def log_store_error(
        self,
        operation: str,
        error_message: str,
        owner_id: Optional[str] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
    ) -> None:
        """Log a store failure that was caught at the session boundary."""
        await self.log(
            AuditEventBuilder.store_error(
                operation, error_message, owner_id, entity_type, entity_id
            )
        )

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(error_type, error_message, details))
