"""
Project cascade delete.

The store has no multi-document transactions, so a cascade is a sequence
of independent deletes: the project first, then its transactions, then
its daily reports. If any step fails the caller gets a PartialCascadeError
listing what went and what is left. Running the cascade again finishes
the job, since documents that are already gone are skipped.
"""

from typing import Optional

import structlog
from pydantic import BaseModel, Field

from tripledger.repositories.entities import (
    DailyReportRepository,
    ProjectRepository,
    TransactionRepository,
)
from tripledger.services.storage import StorageError


logger = structlog.get_logger(__name__)


class CascadeResult(BaseModel):
    """What a completed cascade removed."""

    project_id: str
    owner_id: str
    project_deleted: bool = False
    transaction_ids: list[str] = Field(default_factory=list)
    report_ids: list[str] = Field(default_factory=list)


class PartialCascadeError(StorageError):
    """
    A cascade stopped part way.

    deleted and remaining hold "<collection>/<id>" references.
    """

    def __init__(
        self,
        project_id: str,
        deleted: list[str],
        remaining: list[str],
        cause: Optional[Exception] = None,
    ):
        self.project_id = project_id
        self.deleted = deleted
        self.remaining = remaining
        self.cause = cause
        super().__init__(
            f"Cascade delete of project {project_id} incomplete: "
            f"{len(deleted)} deleted, {len(remaining)} remaining ({cause})"
        )


async def delete_project_cascade(
    projects: ProjectRepository,
    transactions: TransactionRepository,
    reports: DailyReportRepository,
    owner_id: str,
    project_id: str,
) -> CascadeResult:
    """
    Delete a project and every transaction and report that references it.

    Children are listed from the store right before deleting, not taken
    from any cached session state. Malformed children are listed too.

    A project that is already gone is only skipped when children are
    left behind, which is the state a stopped cascade leaves.

    Raises:
        NotFoundError: If neither the project nor any child exists
        StorageError: If a step failed before anything was deleted
        PartialCascadeError: If a step failed after something was deleted
    """
    transaction_ids = await transactions.list_ids_for_project(owner_id, project_id)
    report_ids = await reports.list_ids_for_project(owner_id, project_id)

    pending = [(projects, project_id)]
    pending += [(transactions, i) for i in transaction_ids]
    pending += [(reports, i) for i in report_ids]
    resuming = len(pending) > 1

    deleted: list[str] = []
    result = CascadeResult(project_id=project_id, owner_id=owner_id)

    for position, (repository, record_id) in enumerate(pending):
        ref = f"{repository.collection}/{record_id}"
        try:
            removed = await repository.delete(
                owner_id,
                record_id,
                missing_ok=resuming or repository is not projects,
            )
        except StorageError as e:
            if not deleted:
                logger.warning(
                    "cascade_aborted",
                    project_id=project_id,
                    owner_id=owner_id,
                    error=str(e),
                )
                raise
            remaining = [f"{r.collection}/{i}" for r, i in pending[position:]]
            logger.error(
                "cascade_partial",
                project_id=project_id,
                owner_id=owner_id,
                deleted=len(deleted),
                remaining=len(remaining),
                error=str(e),
            )
            raise PartialCascadeError(project_id, deleted, remaining, e)

        if not removed:
            continue
        deleted.append(ref)
        if repository is projects:
            result.project_deleted = True
        elif repository is transactions:
            result.transaction_ids.append(record_id)
        else:
            result.report_ids.append(record_id)

    logger.info(
        "cascade_completed",
        project_id=project_id,
        owner_id=owner_id,
        project_deleted=result.project_deleted,
        transactions=len(result.transaction_ids),
        reports=len(result.report_ids),
    )
    return result
