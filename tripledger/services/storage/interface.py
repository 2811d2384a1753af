"""
Abstract Document Store Interface

DESIGN DECISION: The repositories depend on this contract only. This
allows us to:
1. Swap Google Sheets for a hosted document database later
2. Use in-memory storage for testing
3. Keep ownership scoping and serialization out of the backend

The contract mirrors a path-scoped document database: collections are
addressed by slash-separated paths, documents are flat field maps, and
queries can be watched for changes.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

import structlog
from pydantic import BaseModel, Field

from tripledger.models.audit import AuditEvent


logger = structlog.get_logger(__name__)

PROJECTS = "projects"
TRANSACTIONS = "transactions"
DAILY_REPORTS = "daily_reports"
AUDIT_LOG = "audit_log"


def users_path(namespace: str) -> str:
    """Parent path under which every owner scope lives."""
    return f"{namespace}/users"


def collection_path(namespace: str, owner_id: str, collection: str) -> str:
    """Path of one owner's collection: <namespace>/users/<owner>/<collection>."""
    return f"{users_path(namespace)}/{owner_id}/{collection}"


class StoredDocument(BaseModel):
    """A document as the store returns it: its ID plus a flat field map."""

    id: str
    fields: dict[str, Any] = Field(default_factory=dict)


SnapshotCallback = Callable[[list[StoredDocument]], None]


def matches(fields: dict[str, Any], where: Optional[dict[str, Any]]) -> bool:
    """Equality filter shared by the store implementations."""
    if not where:
        return True
    return all(fields.get(key) == value for key, value in where.items())


class Subscription:
    """
    Handle for a live query.

    cancel() stops delivery and releases the backend's resources. It is
    safe to call more than once. A cancelled handle never delivers again,
    even if a snapshot was already in flight.
    """

    def __init__(
        self,
        path: str,
        where: Optional[dict[str, Any]],
        on_snapshot: SnapshotCallback,
        on_cancel: Optional[Callable[["Subscription"], None]] = None,
    ):
        self.path = path
        self.where = dict(where or {})
        self._on_snapshot = on_snapshot
        self._on_cancel = on_cancel
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def deliver(self, documents: list[StoredDocument]) -> None:
        """Hand a snapshot to the callback. Callback errors are logged, not raised."""
        if not self._active:
            return
        try:
            self._on_snapshot(documents)
        except Exception as e:
            logger.error(
                "subscription_callback_failed",
                path=self.path,
                error=str(e),
            )

    def cancel(self) -> None:
        if not self._active:
            return
        self._active = False
        if self._on_cancel is not None:
            self._on_cancel(self)


class DocumentStore(ABC):
    """
    Abstract interface for a path-scoped document store.

    Any storage implementation (Google Sheets, a hosted document DB, etc.)
    must implement these methods. Every operation raises
    StoreUnavailableError until connect() has succeeded.
    """

    @property
    @abstractmethod
    def is_ready(self) -> bool:
        """True once connect() has succeeded."""
        pass

    @abstractmethod
    async def connect(self) -> None:
        """
        Initialise and authenticate against the backend.

        Raises:
            StoreUnavailableError: If the backend can't be reached
        """
        pass

    @abstractmethod
    async def insert(self, path: str, fields: dict[str, Any]) -> str:
        """
        Insert a new document into a collection.

        Args:
            path: Collection path
            fields: Flat field map

        Returns:
            The generated document ID
        """
        pass

    @abstractmethod
    async def get(self, path: str, doc_id: str) -> StoredDocument:
        """
        Read one document.

        Raises:
            NotFoundError: If no such document exists under path
        """
        pass

    @abstractmethod
    async def query(
        self,
        path: str,
        where: Optional[dict[str, Any]] = None,
    ) -> list[StoredDocument]:
        """
        Query documents in a collection.

        Args:
            path: Collection path
            where: Optional equality filter ({field: value})

        Returns:
            Matching documents. Order is not significant.
        """
        pass

    @abstractmethod
    async def update(self, path: str, doc_id: str, fields: dict[str, Any]) -> None:
        """
        Merge fields into an existing document.

        Fields not supplied are left untouched.

        Raises:
            NotFoundError: If no such document exists under path
        """
        pass

    @abstractmethod
    async def delete(self, path: str, doc_id: str) -> None:
        """
        Delete a document.

        Raises:
            NotFoundError: If no such document exists under path
        """
        pass

    @abstractmethod
    async def list_children(self, path: str) -> list[str]:
        """
        List the keys directly below a path that hold collections.

        Used to enumerate owner identities under <namespace>/users.
        """
        pass

    @abstractmethod
    def subscribe(
        self,
        path: str,
        where: Optional[dict[str, Any]],
        on_snapshot: SnapshotCallback,
    ) -> Subscription:
        """
        Watch a query.

        on_snapshot receives the full current result set once on subscribe
        and again whenever a matching document changes. Delivery may lag
        behind the caller's own writes.
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity, in chronological order.
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events (newest first).
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class StoreUnavailableError(StorageError):
    """The store is not initialised, or there is no owner identity yet."""
    pass


class NotFoundError(StorageError):
    """Entity not found in the addressed scope."""

    def __init__(self, path: str, doc_id: str):
        self.path = path
        self.doc_id = doc_id
        super().__init__(f"Document not found: {path}/{doc_id}")


class RecordValidationError(StorageError):
    """A record is missing required fields or has malformed ones."""
    pass
