"""
Cross-Tenant Admin View

CRITICAL: This is a superuser path. It reads and writes across every
owner scope and holds no session state of its own. Callers must have
passed AdminAuthenticator before using it.

Every operation scans the store afresh. Nothing is cached between calls,
so an admin edit always targets the project as it is now.
"""

import datetime as dt
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional, Union

import structlog

from tripledger.admin.export import write_receipts_csv
from tripledger.audit import AuditLogger
from tripledger.models import (
    UNKNOWN_PROJECT_NAME,
    AdminSnapshot,
    Project,
    ReceiptExportRow,
)
from tripledger.repositories import (
    CascadeResult,
    DailyReportRepository,
    PartialCascadeError,
    ProjectRepository,
    TransactionRepository,
    delete_project_cascade,
)
from tripledger.services.storage import (
    PROJECTS,
    DocumentStore,
    NotFoundError,
    users_path,
)


logger = structlog.get_logger(__name__)


def format_amount(amount: Decimal) -> str:
    """Render an amount without trailing zeros (42.50 -> "42.5")."""
    if amount == amount.to_integral_value():
        return str(int(amount))
    return format(amount.normalize(), "f")


class AdminView:
    """Read, edit, delete and export across all owners."""

    def __init__(
        self,
        store: DocumentStore,
        projects: ProjectRepository,
        transactions: TransactionRepository,
        reports: DailyReportRepository,
        namespace: str,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._projects = projects
        self._transactions = transactions
        self._reports = reports
        self._namespace = namespace
        self._audit = audit_logger or AuditLogger()

    async def _owner_ids(self) -> list[str]:
        return await self._store.list_children(users_path(self._namespace))

    async def list_all(self) -> AdminSnapshot:
        """Every project, transaction and report of every owner."""
        snapshot = AdminSnapshot()
        for owner_id in await self._owner_ids():
            snapshot.projects.extend(await self._projects.list(owner_id))
            snapshot.transactions.extend(await self._transactions.list(owner_id))
            snapshot.reports.extend(await self._reports.list(owner_id))

        logger.info(
            "admin_snapshot_loaded",
            projects=len(snapshot.projects),
            transactions=len(snapshot.transactions),
            reports=len(snapshot.reports),
            orphaned_transactions=len(snapshot.orphaned_transactions),
            orphaned_reports=len(snapshot.orphaned_reports),
        )
        return snapshot

    async def find_project(self, project_id: str) -> Project:
        """
        Locate a project in any owner scope.

        Raises:
            NotFoundError: If no owner has a project with this ID
        """
        for owner_id in await self._owner_ids():
            for project in await self._projects.list(owner_id):
                if project.id == project_id:
                    return project
        raise NotFoundError(f"{users_path(self._namespace)}/*/{PROJECTS}", project_id)

    async def delete_project_cascade(self, project: Project) -> CascadeResult:
        """
        Delete a project and its records under the project's own owner.

        Raises:
            NotFoundError: If neither the project nor any of its records exist
            PartialCascadeError: If the cascade stopped part way
        """
        try:
            result = await delete_project_cascade(
                self._projects,
                self._transactions,
                self._reports,
                project.owner_id,
                project.id,
            )
        except PartialCascadeError as e:
            await self._audit.log_cascade_partial(
                project.id,
                project.owner_id,
                e.deleted,
                e.remaining,
                str(e.cause),
                by_admin=True,
            )
            raise

        await self._audit.log_cascade_completed(
            project.id,
            project.owner_id,
            len(result.transaction_ids),
            len(result.report_ids),
            by_admin=True,
        )
        return result

    async def edit_project_fields(self, project_id: str, fields: dict[str, Any]) -> Project:
        """
        Edit name, person in charge or currency of any owner's project.

        Raises:
            NotFoundError: If the project doesn't exist in any scope
            RecordValidationError: If a field is not editable or invalid
        """
        project = await self.find_project(project_id)
        updated = await self._projects.update(project.owner_id, project_id, fields)
        await self._audit.log_project_updated(
            project_id, project.owner_id, sorted(fields), by_admin=True
        )
        return updated

    async def export_receipts_rows(
        self,
        snapshot: Optional[AdminSnapshot] = None,
    ) -> list[ReceiptExportRow]:
        """
        One row per transaction that has at least one receipt.

        Rows whose parent project is gone are kept, with the project name
        shown as unknown.
        """
        if snapshot is None:
            snapshot = await self.list_all()

        names = {p.id: p.name for p in snapshot.projects}
        rows = []
        for transaction in snapshot.transactions:
            if not transaction.receipts:
                continue
            rows.append(
                ReceiptExportRow(
                    project_name=names.get(transaction.project_id, UNKNOWN_PROJECT_NAME),
                    user_id=transaction.owner_id or "",
                    date=transaction.date.isoformat(),
                    type=transaction.type.value,
                    amount=format_amount(transaction.amount),
                    description=transaction.description,
                    category=transaction.category,
                    receipt_count=len(transaction.receipts),
                    timestamp=transaction.timestamp.isoformat(),
                )
            )
        return rows

    async def export_receipts_csv(
        self,
        directory: Union[str, Path],
        day: Optional[dt.date] = None,
    ) -> Path:
        """Write the receipts export into directory and return its path."""
        rows = await self.export_receipts_rows()
        path = write_receipts_csv(rows, directory, day)
        await self._audit.log_receipts_exported(len(rows), path.name)
        return path
