"""Concrete repositories for projects, transactions and daily reports."""

from typing import Any

from tripledger.models import (
    EDITABLE_PROJECT_FIELDS,
    DailyReport,
    Project,
    Transaction,
)
from tripledger.repositories.base import EntityRepository, ProjectScopedRepository
from tripledger.services.storage import (
    DAILY_REPORTS,
    PROJECTS,
    TRANSACTIONS,
    RecordValidationError,
)


class ProjectRepository(EntityRepository[Project]):
    collection = PROJECTS
    record_type = Project

    async def update(
        self,
        owner_id: str,
        record_id: str,
        fields: dict[str, Any],
    ) -> Project:
        """
        Edit a project's descriptive fields.

        CRITICAL: Only EDITABLE_PROJECT_FIELDS can change. The password
        hash and color are fixed at creation.
        """
        rejected = sorted(set(fields) - EDITABLE_PROJECT_FIELDS)
        if rejected:
            raise RecordValidationError(
                f"Project fields cannot be edited: {', '.join(rejected)}"
            )
        return await super().update(owner_id, record_id, fields)


class TransactionRepository(ProjectScopedRepository[Transaction]):
    collection = TRANSACTIONS
    record_type = Transaction
    array_fields = ("receipts",)


class DailyReportRepository(ProjectScopedRepository[DailyReport]):
    collection = DAILY_REPORTS
    record_type = DailyReport
    array_fields = ("photos",)

    @property
    def entity_type(self) -> str:
        return "daily_report"
