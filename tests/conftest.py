"""
Shared test fixtures.

Every test runs against the in-memory document store. No network access:
Gemini and Google Sheets are replaced with mocks where they appear.
"""

import pytest

from tripledger.access import AccessGate
from tripledger.audit import AuditLogger
from tripledger.repositories import (
    DailyReportRepository,
    ProjectRepository,
    TransactionRepository,
)
from tripledger.services.identity import AnonymousIdentityProvider
from tripledger.services.storage import DocumentStoreAuditStorage, InMemoryDocumentStore
from tripledger.session import ProjectSession

from tests.helpers import NAMESPACE, OWNER


@pytest.fixture
async def store() -> InMemoryDocumentStore:
    """A connected in-memory store."""
    store = InMemoryDocumentStore()
    await store.connect()
    return store


@pytest.fixture
def audit_storage(store) -> DocumentStoreAuditStorage:
    return DocumentStoreAuditStorage(store, NAMESPACE)


@pytest.fixture
def audit_logger(audit_storage) -> AuditLogger:
    return AuditLogger(audit_storage)


@pytest.fixture
def projects(store) -> ProjectRepository:
    return ProjectRepository(store, NAMESPACE)


@pytest.fixture
def transactions(store) -> TransactionRepository:
    return TransactionRepository(store, NAMESPACE)


@pytest.fixture
def reports(store) -> DailyReportRepository:
    return DailyReportRepository(store, NAMESPACE)


@pytest.fixture
def gate(audit_logger) -> AccessGate:
    return AccessGate(audit_logger)


@pytest.fixture
async def session(projects, transactions, reports, gate, audit_logger):
    """A started session for OWNER."""
    session = ProjectSession(
        AnonymousIdentityProvider(OWNER),
        projects,
        transactions,
        reports,
        gate,
        audit_logger,
    )
    await session.start()
    yield session
    session.close()
