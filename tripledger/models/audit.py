"""
Audit Models for Trip Ledger

Every significant action in the system is logged for audit purposes.
This provides:
1. Traceability of who changed which project's books
2. Debugging information when a cascade stops partway
3. A record of access-gate and admin-login outcomes

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Projects
    PROJECT_CREATED = "project_created"
    PROJECT_UPDATED = "project_updated"

    # Access gate
    ACCESS_GRANTED = "access_granted"
    ACCESS_DENIED = "access_denied"

    # Ledger entries
    TRANSACTION_CREATED = "transaction_created"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"
    REPORT_CREATED = "report_created"
    REPORT_UPDATED = "report_updated"
    REPORT_DELETED = "report_deleted"

    # Cascade delete
    CASCADE_COMPLETED = "cascade_completed"
    CASCADE_PARTIAL = "cascade_partial"

    # Admin surface
    ADMIN_LOGIN_SUCCEEDED = "admin_login_succeeded"
    ADMIN_LOGIN_FAILED = "admin_login_failed"
    ADMIN_PROJECT_EDITED = "admin_project_edited"
    RECEIPTS_EXPORTED = "receipts_exported"

    # Receipt scanning
    RECEIPT_SCAN_COMPLETED = "receipt_scan_completed"
    RECEIPT_SCAN_FAILED = "receipt_scan_failed"

    # System events
    STORE_ERROR = "store_error"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'project', 'transaction', 'report')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Store ID of the entity this event relates to"
    )
    owner_id: Optional[str] = Field(
        default=None,
        description="Owner scope the entity lives under"
    )

    # Event details
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    # User action tracking
    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )
    is_admin_action: bool = Field(
        default=False,
        description="Was this triggered through the admin surface?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "owner_id": self.owner_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
            "is_admin_action": self.is_admin_action,
        }

    def to_document_fields(self) -> dict:
        """
        Convert to a flat field map for the document store.

        Nested details are JSON-encoded because documents are flat.
        """
        fields = self.to_log_dict()
        fields["details"] = json.dumps(self.details, default=str) if self.details else ""
        return fields


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.project_created(project_id, owner_id, name)
        event = AuditEventBuilder.access_denied(project_id, owner_id)
    """

    @staticmethod
    def project_created(project_id: str, owner_id: str, name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROJECT_CREATED,
            entity_type="project",
            entity_id=project_id,
            owner_id=owner_id,
            description=f"Project created: {name}",
            details={"name": name},
            is_user_action=True,
        )

    @staticmethod
    def project_updated(
        project_id: str,
        owner_id: str,
        fields: list[str],
        by_admin: bool = False,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.ADMIN_PROJECT_EDITED
                if by_admin
                else AuditEventType.PROJECT_UPDATED
            ),
            entity_type="project",
            entity_id=project_id,
            owner_id=owner_id,
            description=f"Project fields updated: {', '.join(sorted(fields))}",
            details={"fields": sorted(fields)},
            is_user_action=not by_admin,
            is_admin_action=by_admin,
        )

    @staticmethod
    def access_granted(project_id: str, owner_id: Optional[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCESS_GRANTED,
            entity_type="project",
            entity_id=project_id,
            owner_id=owner_id,
            description="Project password accepted",
            is_user_action=True,
        )

    @staticmethod
    def access_denied(project_id: str, owner_id: Optional[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACCESS_DENIED,
            severity=AuditSeverity.WARNING,
            entity_type="project",
            entity_id=project_id,
            owner_id=owner_id,
            description="Incorrect project password",
            is_user_action=True,
        )

    @staticmethod
    def entry_changed(
        event_type: AuditEventType,
        entity_type: str,
        entity_id: str,
        owner_id: str,
        project_id: str,
    ) -> AuditEvent:
        verb = event_type.value.rsplit("_", 1)[-1]
        return AuditEvent(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            owner_id=owner_id,
            description=f"{entity_type.capitalize()} {verb}",
            details={"project_id": project_id},
            is_user_action=True,
        )

    @staticmethod
    def cascade_completed(
        project_id: str,
        owner_id: str,
        transactions_deleted: int,
        reports_deleted: int,
        by_admin: bool = False,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CASCADE_COMPLETED,
            entity_type="project",
            entity_id=project_id,
            owner_id=owner_id,
            description=(
                f"Project deleted with {transactions_deleted} transactions "
                f"and {reports_deleted} reports"
            ),
            details={
                "transactions_deleted": transactions_deleted,
                "reports_deleted": reports_deleted,
            },
            is_user_action=not by_admin,
            is_admin_action=by_admin,
        )

    @staticmethod
    def cascade_partial(
        project_id: str,
        owner_id: str,
        deleted: list[str],
        remaining: list[str],
        error_message: str,
        by_admin: bool = False,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CASCADE_PARTIAL,
            severity=AuditSeverity.ERROR,
            entity_type="project",
            entity_id=project_id,
            owner_id=owner_id,
            description=(
                f"Cascade delete stopped after {len(deleted)} deletions, "
                f"{len(remaining)} records remain"
            ),
            details={"deleted": deleted, "remaining": remaining},
            error_message=error_message,
            is_user_action=not by_admin,
            is_admin_action=by_admin,
        )

    @staticmethod
    def admin_login(succeeded: bool) -> AuditEvent:
        if succeeded:
            return AuditEvent(
                event_type=AuditEventType.ADMIN_LOGIN_SUCCEEDED,
                entity_type="admin",
                description="Admin login succeeded",
                is_admin_action=True,
            )
        return AuditEvent(
            event_type=AuditEventType.ADMIN_LOGIN_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="admin",
            description="Admin login failed",
            is_admin_action=True,
        )

    @staticmethod
    def receipts_exported(row_count: int, filename: Optional[str] = None) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPTS_EXPORTED,
            entity_type="export",
            description=f"Receipts exported: {row_count} rows",
            details={"row_count": row_count, "filename": filename},
            is_admin_action=True,
        )

    @staticmethod
    def receipt_scanned(succeeded: bool, error_message: Optional[str] = None) -> AuditEvent:
        if succeeded:
            return AuditEvent(
                event_type=AuditEventType.RECEIPT_SCAN_COMPLETED,
                entity_type="receipt",
                description="Receipt scan filled the transaction draft",
                is_user_action=True,
            )
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_SCAN_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="receipt",
            description="Receipt scan failed, draft left untouched",
            error_message=error_message,
            is_user_action=True,
        )

    @staticmethod
    def store_error(
        operation: str,
        error_message: str,
        owner_id: Optional[str] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORE_ERROR,
            severity=AuditSeverity.ERROR,
            entity_type=entity_type,
            entity_id=entity_id,
            owner_id=owner_id,
            description=f"Store operation failed: {operation}",
            error_message=error_message,
            details={"operation": operation},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
        )
