"""
Project Session

One user interaction: an owner identity, the owner's projects, and at
most one unlocked project whose transactions and reports are live.

DESIGN DECISION: Store failures stop at this boundary. Mutations log and
audit the error, then return None/False so the caller can show that
nothing changed. The one exception is a partial cascade, which is always
raised because it leaves data behind that someone has to clean up.

Switching projects bumps a generation counter. Snapshot callbacks carry
the generation they were created for, so a late delivery from the
previous project can never overwrite the new project's state.
"""

from typing import Any, Callable, Optional, Union

import structlog

from tripledger.access import AccessGate, hash_password
from tripledger.aggregation import compute_totals
from tripledger.audit import AuditLogger
from tripledger.models import (
    AuditEventType,
    Currency,
    DailyReport,
    Project,
    Totals,
    Transaction,
    TransactionDraft,
    pick_project_color,
)
from tripledger.repositories import (
    DailyReportRepository,
    PartialCascadeError,
    ProjectRepository,
    TransactionRepository,
    delete_project_cascade,
)
from tripledger.services.identity import IdentityProvider
from tripledger.services.storage import (
    NotFoundError,
    RecordValidationError,
    StorageError,
    StoreUnavailableError,
    Subscription,
)


logger = structlog.get_logger(__name__)

ChangeListener = Callable[[str], None]


def _newest_first(records: list) -> list:
    return sorted(records, key=lambda r: (r.date, r.timestamp), reverse=True)


class ProjectSession:
    """
    Session state and the operations a project owner can perform.

    Usage:
        session = ProjectSession(identity, projects, transactions, reports, gate)
        await session.start()
        if await session.open_project(project, password):
            await session.add_transaction({...})
    """

    def __init__(
        self,
        identity: IdentityProvider,
        projects: ProjectRepository,
        transactions: TransactionRepository,
        reports: DailyReportRepository,
        gate: AccessGate,
        audit_logger: Optional[AuditLogger] = None,
        on_change: Optional[ChangeListener] = None,
    ):
        self._identity = identity
        self._projects = projects
        self._transactions = transactions
        self._reports = reports
        self._gate = gate
        self._audit = audit_logger or AuditLogger()
        self._on_change = on_change

        self._owner_id: Optional[str] = None
        self._projects_subscription: Optional[Subscription] = None
        self._project_subscriptions: list[Subscription] = []
        self._generation = 0

        self.projects: list[Project] = []
        self.active_project: Optional[Project] = None
        self.transactions: list[Transaction] = []
        self.reports: list[DailyReport] = []
        self.totals = Totals()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def owner_id(self) -> Optional[str]:
        return self._owner_id

    @property
    def is_project_active(self) -> bool:
        return self.active_project is not None

    async def start(self) -> str:
        """Sign in and start watching the owner's projects."""
        self._owner_id = await self._identity.sign_in()
        if self._projects_subscription is None:
            self._projects_subscription = self._projects.subscribe(
                self._owner_id, self._on_projects
            )
        logger.info("session_started", owner_id=self._owner_id)
        return self._owner_id

    def close(self) -> None:
        """Cancel every subscription this session holds."""
        self._cancel_project_subscriptions()
        if self._projects_subscription is not None:
            self._projects_subscription.cancel()
            self._projects_subscription = None
        self.active_project = None
        logger.info("session_closed", owner_id=self._owner_id)

    def _notify(self, kind: str) -> None:
        if self._on_change is not None:
            self._on_change(kind)

    def _require_owner(self) -> str:
        if not self._owner_id:
            raise StoreUnavailableError("Session has not been started")
        return self._owner_id

    # -------------------------------------------------------------------------
    # Snapshot handlers
    # -------------------------------------------------------------------------

    def _on_projects(self, projects: list[Project]) -> None:
        self.projects = sorted(projects, key=lambda p: p.name.lower())
        if self.active_project is not None:
            current = next(
                (p for p in projects if p.id == self.active_project.id), None
            )
            if current is None:
                logger.info(
                    "active_project_removed",
                    project_id=self.active_project.id,
                    owner_id=self._owner_id,
                )
                self.close_project()
            else:
                self.active_project = current
        self._notify("projects")

    def _on_transactions(self, generation: int, transactions: list[Transaction]) -> None:
        if generation != self._generation:
            return
        self.transactions = _newest_first(transactions)
        self.totals = compute_totals(self.transactions)
        self._notify("transactions")

    def _on_reports(self, generation: int, reports: list[DailyReport]) -> None:
        if generation != self._generation:
            return
        self.reports = _newest_first(reports)
        self._notify("reports")

    # -------------------------------------------------------------------------
    # Error boundary
    # -------------------------------------------------------------------------

    async def _store_failed(
        self,
        operation: str,
        error: StorageError,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
    ) -> None:
        logger.error(
            "session_operation_failed",
            operation=operation,
            owner_id=self._owner_id,
            entity_type=entity_type,
            entity_id=entity_id,
            error=str(error),
        )
        await self._audit.log_store_error(
            operation, str(error), self._owner_id, entity_type, entity_id
        )

    # -------------------------------------------------------------------------
    # Projects
    # -------------------------------------------------------------------------

    async def create_project(
        self,
        name: str,
        in_charge: str,
        currency: Union[Currency, str],
        password: str,
        confirm_password: Optional[str] = None,
    ) -> Optional[str]:
        """
        Create a password-protected project.

        Raises:
            RecordValidationError: If confirm_password is given and differs

        Returns:
            The new project's ID, or None if the store rejected it
        """
        if confirm_password is not None and confirm_password != password:
            raise RecordValidationError("Passwords do not match")
        if not password:
            raise RecordValidationError("A project password is required")

        try:
            owner_id = self._require_owner()
            project_id = await self._projects.create(
                owner_id,
                {
                    "name": name,
                    "in_charge": in_charge,
                    "currency": currency,
                    "password_hash": hash_password(password),
                    "color": pick_project_color(),
                },
            )
        except StorageError as e:
            await self._store_failed("create_project", e, "project")
            return None

        await self._audit.log_project_created(project_id, owner_id, name)
        return project_id

    async def update_project(self, project_id: str, fields: dict[str, Any]) -> bool:
        """Edit name, person in charge or currency."""
        try:
            owner_id = self._require_owner()
            await self._projects.update(owner_id, project_id, fields)
        except StorageError as e:
            await self._store_failed("update_project", e, "project", project_id)
            return False

        await self._audit.log_project_updated(project_id, owner_id, sorted(fields))
        return True

    async def delete_project(self, project_id: str) -> bool:
        """
        Delete a project with all its transactions and reports.

        Returns False, with nothing deleted, if the project doesn't exist
        or the store failed before the first delete.

        Raises:
            PartialCascadeError: If the cascade stopped part way
        """
        try:
            owner_id = self._require_owner()
            result = await delete_project_cascade(
                self._projects,
                self._transactions,
                self._reports,
                owner_id,
                project_id,
            )
        except PartialCascadeError as e:
            self._close_if_active(project_id)
            await self._audit.log_cascade_partial(
                project_id, owner_id, e.deleted, e.remaining, str(e.cause)
            )
            raise
        except StorageError as e:
            await self._store_failed("delete_project", e, "project", project_id)
            return False

        self._close_if_active(project_id)
        await self._audit.log_cascade_completed(
            project_id,
            owner_id,
            len(result.transaction_ids),
            len(result.report_ids),
        )
        return True

    async def open_project(self, project: Project, password: str) -> bool:
        """
        Unlock a project and make its records live.

        A wrong password leaves the session exactly as it was.
        """
        try:
            owner_id = self._require_owner()
            current = await self._projects.get(owner_id, project.id)
        except StorageError as e:
            await self._store_failed("open_project", e, "project", project.id)
            return False

        if not await self._gate.grant_access(current, password):
            return False

        self._cancel_project_subscriptions()
        self._generation += 1
        generation = self._generation

        self.active_project = current
        self.transactions = []
        self.reports = []
        self.totals = Totals()

        try:
            self._project_subscriptions = [
                self._transactions.subscribe_for_project(
                    owner_id,
                    current.id,
                    lambda records: self._on_transactions(generation, records),
                ),
                self._reports.subscribe_for_project(
                    owner_id,
                    current.id,
                    lambda records: self._on_reports(generation, records),
                ),
            ]
        except StorageError as e:
            self.close_project()
            await self._store_failed("open_project", e, "project", current.id)
            return False

        logger.info("project_opened", project_id=current.id, owner_id=owner_id)
        self._notify("project")
        return True

    def close_project(self) -> None:
        """Lock the active project and drop its live state."""
        self._cancel_project_subscriptions()
        self._generation += 1
        self.active_project = None
        self.transactions = []
        self.reports = []
        self.totals = Totals()
        self._notify("project")

    def _close_if_active(self, project_id: str) -> None:
        if self.active_project is not None and self.active_project.id == project_id:
            self.close_project()

    def _cancel_project_subscriptions(self) -> None:
        for subscription in self._project_subscriptions:
            subscription.cancel()
        self._project_subscriptions = []

    # -------------------------------------------------------------------------
    # Transactions and daily reports
    # -------------------------------------------------------------------------

    def _require_active_project(self) -> Project:
        if self.active_project is None:
            raise StoreUnavailableError("No project is open")
        return self.active_project

    async def _require_entry_in_project(
        self,
        repository: Union[TransactionRepository, DailyReportRepository],
        owner_id: str,
        project: Project,
        entry_id: str,
    ) -> None:
        """Entries of other projects are treated as missing."""
        entry = await repository.get(owner_id, entry_id)
        if entry.project_id != project.id:
            raise NotFoundError(repository.collection, entry_id)

    async def _add_entry(
        self,
        repository: Union[TransactionRepository, DailyReportRepository],
        event_type: AuditEventType,
        fields: dict[str, Any],
    ) -> Optional[str]:
        operation = f"add_{repository.entity_type}"
        try:
            owner_id = self._require_owner()
            project = self._require_active_project()
            entry_id = await repository.create(
                owner_id, {**fields, "project_id": project.id}
            )
        except StorageError as e:
            await self._store_failed(operation, e, repository.entity_type)
            return None

        await self._audit.log_entry_changed(
            event_type, repository.entity_type, entry_id, owner_id, project.id
        )
        return entry_id

    async def _update_entry(
        self,
        repository: Union[TransactionRepository, DailyReportRepository],
        event_type: AuditEventType,
        entry_id: str,
        fields: dict[str, Any],
    ) -> bool:
        operation = f"update_{repository.entity_type}"
        # Entries never move between projects
        updates = {k: v for k, v in fields.items() if k != "project_id"}
        try:
            owner_id = self._require_owner()
            project = self._require_active_project()
            await self._require_entry_in_project(repository, owner_id, project, entry_id)
            await repository.update(owner_id, entry_id, updates)
        except StorageError as e:
            await self._store_failed(operation, e, repository.entity_type, entry_id)
            return False

        await self._audit.log_entry_changed(
            event_type, repository.entity_type, entry_id, owner_id, project.id
        )
        return True

    async def _delete_entry(
        self,
        repository: Union[TransactionRepository, DailyReportRepository],
        event_type: AuditEventType,
        entry_id: str,
    ) -> bool:
        operation = f"delete_{repository.entity_type}"
        try:
            owner_id = self._require_owner()
            project = self._require_active_project()
            await self._require_entry_in_project(repository, owner_id, project, entry_id)
            await repository.delete(owner_id, entry_id)
        except StorageError as e:
            await self._store_failed(operation, e, repository.entity_type, entry_id)
            return False

        await self._audit.log_entry_changed(
            event_type, repository.entity_type, entry_id, owner_id, project.id
        )
        return True

    async def add_transaction(
        self,
        entry: Union[TransactionDraft, dict[str, Any]],
    ) -> Optional[str]:
        """Record an income or expense in the open project."""
        fields = entry.to_fields() if isinstance(entry, TransactionDraft) else dict(entry)
        return await self._add_entry(
            self._transactions, AuditEventType.TRANSACTION_CREATED, fields
        )

    async def update_transaction(self, transaction_id: str, fields: dict[str, Any]) -> bool:
        return await self._update_entry(
            self._transactions,
            AuditEventType.TRANSACTION_UPDATED,
            transaction_id,
            fields,
        )

    async def delete_transaction(self, transaction_id: str) -> bool:
        return await self._delete_entry(
            self._transactions, AuditEventType.TRANSACTION_DELETED, transaction_id
        )

    async def add_daily_report(self, fields: dict[str, Any]) -> Optional[str]:
        """Record a day's activity in the open project."""
        return await self._add_entry(
            self._reports, AuditEventType.REPORT_CREATED, dict(fields)
        )

    async def update_daily_report(self, report_id: str, fields: dict[str, Any]) -> bool:
        return await self._update_entry(
            self._reports, AuditEventType.REPORT_UPDATED, report_id, fields
        )

    async def delete_daily_report(self, report_id: str) -> bool:
        return await self._delete_entry(
            self._reports, AuditEventType.REPORT_DELETED, report_id
        )
