"""
Storage Services Package

Provides the abstract document store contract and its implementations.
Google Sheets is the hosted backend; the in-memory store backs tests and
local runs. Both are swappable behind DocumentStore.
"""

from tripledger.services.storage.interface import (
    AUDIT_LOG,
    DAILY_REPORTS,
    PROJECTS,
    TRANSACTIONS,
    AuditStorageInterface,
    DocumentStore,
    NotFoundError,
    RecordValidationError,
    SnapshotCallback,
    StorageError,
    StoredDocument,
    StoreUnavailableError,
    Subscription,
    collection_path,
    users_path,
)
from tripledger.services.storage.memory import InMemoryDocumentStore
from tripledger.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsDocumentStore,
)
from tripledger.services.storage.audit import DocumentStoreAuditStorage

__all__ = [
    # Collections
    "AUDIT_LOG",
    "DAILY_REPORTS",
    "PROJECTS",
    "TRANSACTIONS",
    "collection_path",
    "users_path",
    # Interfaces
    "AuditStorageInterface",
    "DocumentStore",
    "SnapshotCallback",
    "StoredDocument",
    "Subscription",
    # Exceptions
    "NotFoundError",
    "RecordValidationError",
    "StorageError",
    "StoreUnavailableError",
    # Implementations
    "DocumentStoreAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsDocumentStore",
    "InMemoryDocumentStore",
]
