"""
Application wiring for Trip Ledger

This module builds every component from one Settings object and hands
them out together. Nothing else in the package reads configuration at
import time.

DESIGN DECISION: Optional collaborators degrade instead of failing:
- No Gemini key: the app runs without receipt scanning
- No admin hash: admin login is always refused
- The store is the one hard requirement, and connect() reports it
"""

from typing import NamedTuple, Optional

import structlog

from tripledger.access import AccessGate, AdminAuthenticator
from tripledger.admin import AdminView
from tripledger.audit import AuditLogger
from tripledger.config import Settings, get_settings, validate_all_settings
from tripledger.repositories import (
    DailyReportRepository,
    ProjectRepository,
    TransactionRepository,
)
from tripledger.services.identity import AnonymousIdentityProvider, IdentityProvider
from tripledger.services.ocr import GeminiReceiptScanner
from tripledger.services.storage import (
    DocumentStore,
    DocumentStoreAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsDocumentStore,
    InMemoryDocumentStore,
)
from tripledger.session import ProjectSession


logger = structlog.get_logger(__name__)


class AppComponents(NamedTuple):
    store: DocumentStore
    projects: ProjectRepository
    transactions: TransactionRepository
    reports: DailyReportRepository
    audit_logger: AuditLogger
    gate: AccessGate
    session: ProjectSession
    admin_view: AdminView
    admin_authenticator: AdminAuthenticator
    receipt_scanner: Optional[GeminiReceiptScanner]


def create_store(settings: Settings) -> DocumentStore:
    """Build the configured document store backend (not yet connected)."""
    store_settings = settings.store
    if store_settings.backend == "google_sheets":
        return GoogleSheetsDocumentStore(
            GoogleSheetsClient(settings.google_sheets),
            poll_interval_seconds=store_settings.poll_interval_seconds,
        )
    return InMemoryDocumentStore()


def create_app_components(
    settings: Optional[Settings] = None,
    store: Optional[DocumentStore] = None,
    identity: Optional[IdentityProvider] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        settings: Configuration to build from. Defaults to get_settings().
        store: Pre-built store (tests pass an InMemoryDocumentStore).
        identity: Owner identity source. Defaults to an anonymous one.

    Returns:
        AppComponents with an unconnected store
    """
    settings = settings or get_settings()
    logger.info("settings_checked", **validate_all_settings(settings))
    namespace = settings.store.app_namespace
    store = store or create_store(settings)

    audit_logger = AuditLogger(DocumentStoreAuditStorage(store, namespace))

    projects = ProjectRepository(store, namespace)
    transactions = TransactionRepository(store, namespace)
    reports = DailyReportRepository(store, namespace)

    gate = AccessGate(audit_logger)
    session = ProjectSession(
        identity or AnonymousIdentityProvider(),
        projects,
        transactions,
        reports,
        gate,
        audit_logger,
    )
    admin_view = AdminView(
        store, projects, transactions, reports, namespace, audit_logger
    )
    admin_authenticator = AdminAuthenticator(settings.admin, audit_logger)

    receipt_scanner = None
    try:
        receipt_scanner = GeminiReceiptScanner(
            settings.gemini, audit_logger, settings.app
        )
    except Exception as e:
        # Scanning not configured - continue without it
        logger.warning("receipt_scanner_unavailable", error=str(e))

    return AppComponents(
        store=store,
        projects=projects,
        transactions=transactions,
        reports=reports,
        audit_logger=audit_logger,
        gate=gate,
        session=session,
        admin_view=admin_view,
        admin_authenticator=admin_authenticator,
        receipt_scanner=receipt_scanner,
    )


async def start_app(
    settings: Optional[Settings] = None,
    store: Optional[DocumentStore] = None,
    identity: Optional[IdentityProvider] = None,
) -> AppComponents:
    """Build the components, connect the store and start the session."""
    components = create_app_components(settings, store, identity)
    try:
        await components.store.connect()
    except Exception as e:
        await components.audit_logger.log_error(
            "store_connect_failed", str(e), {"backend": type(components.store).__name__}
        )
        raise
    await components.session.start()
    return components
