"""Services package."""

from tripledger.services.identity import AnonymousIdentityProvider, IdentityProvider
from tripledger.services.storage import (
    AuditStorageInterface,
    DocumentStore,
    DocumentStoreAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsDocumentStore,
    InMemoryDocumentStore,
    NotFoundError,
    RecordValidationError,
    StorageError,
    StoreUnavailableError,
)

__all__ = [
    # Identity
    "AnonymousIdentityProvider",
    "IdentityProvider",
    # Storage services
    "AuditStorageInterface",
    "DocumentStore",
    "DocumentStoreAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsDocumentStore",
    "InMemoryDocumentStore",
    "NotFoundError",
    "RecordValidationError",
    "StorageError",
    "StoreUnavailableError",
]
