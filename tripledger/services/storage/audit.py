"""
Audit storage on top of the document store.

Events are appended to <namespace>/audit_log. Nothing in the system
updates or deletes them.
"""

import json
from datetime import datetime
from typing import Optional
from uuid import UUID

import structlog

from tripledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from tripledger.services.storage.interface import (
    AUDIT_LOG,
    AuditStorageInterface,
    DocumentStore,
    StorageError,
    StoredDocument,
)


logger = structlog.get_logger(__name__)


class DocumentStoreAuditStorage(AuditStorageInterface):
    """Append-only audit log kept in a document store collection."""

    def __init__(self, store: DocumentStore, namespace: str):
        self._store = store
        self._path = f"{namespace}/{AUDIT_LOG}"

    def _document_to_event(self, document: StoredDocument) -> AuditEvent:
        fields = document.fields
        details = fields.get("details") or ""
        return AuditEvent(
            event_id=UUID(fields["event_id"]),
            timestamp=datetime.fromisoformat(fields["timestamp"]),
            event_type=AuditEventType(fields["event_type"]),
            severity=AuditSeverity(fields.get("severity", "info")),
            entity_type=fields.get("entity_type"),
            entity_id=fields.get("entity_id"),
            owner_id=fields.get("owner_id"),
            description=fields.get("description", ""),
            details=json.loads(details) if details else {},
            error_message=fields.get("error_message"),
            is_user_action=bool(fields.get("is_user_action", False)),
            is_admin_action=bool(fields.get("is_admin_action", False)),
        )

    async def _read_events(self, where: Optional[dict] = None) -> list[AuditEvent]:
        events = []
        for document in await self._store.query(self._path, where):
            try:
                events.append(self._document_to_event(document))
            except Exception:
                continue  # Skip malformed events
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            await self._store.insert(self._path, event.to_document_fields())
            return True
        except StorageError as e:
            # Audit logging must not break the main flow
            logger.warning("audit_event_not_persisted", error=str(e))
            return False

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = await self._read_events(
            {"entity_type": entity_type, "entity_id": entity_id}
        )
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = await self._read_events()
        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
