"""
Admin View Models

Read models used by the cross-tenant admin surface: a full snapshot of
every owner's records and the flat rows of the receipts export.
"""

from typing import Optional

from pydantic import BaseModel, Field

from tripledger.models.ledger import DailyReport, Project, Transaction


UNKNOWN_PROJECT_NAME = "Unknown project"

# Literal header of the receipts CSV export, in column order
RECEIPT_EXPORT_COLUMNS: tuple[str, ...] = (
    "Project Name",
    "User ID",
    "Date",
    "Type",
    "Amount",
    "Description",
    "Category",
    "Receipt Count",
    "Timestamp",
)


class AdminSnapshot(BaseModel):
    """
    Every project, transaction and report across all owners.

    Transactions and reports may reference projects that no longer exist
    (a cascade that stopped partway). Readers must tolerate that.
    """

    projects: list[Project] = Field(default_factory=list)
    transactions: list[Transaction] = Field(default_factory=list)
    reports: list[DailyReport] = Field(default_factory=list)

    def find_project(self, project_id: str) -> Optional[Project]:
        for project in self.projects:
            if project.id == project_id:
                return project
        return None

    def transactions_for(self, project_id: str) -> list[Transaction]:
        return [t for t in self.transactions if t.project_id == project_id]

    @property
    def orphaned_transactions(self) -> list[Transaction]:
        """Transactions whose parent project cannot be resolved."""
        known = {p.id for p in self.projects}
        return [t for t in self.transactions if t.project_id not in known]

    @property
    def orphaned_reports(self) -> list[DailyReport]:
        known = {p.id for p in self.projects}
        return [r for r in self.reports if r.project_id not in known]


class ReceiptExportRow(BaseModel):
    """One transaction with at least one receipt, flattened for export."""

    project_name: str
    user_id: str
    date: str
    type: str
    amount: str
    description: str
    category: str
    receipt_count: int = Field(ge=1)
    timestamp: str

    def as_values(self) -> list[str]:
        """Values in RECEIPT_EXPORT_COLUMNS order."""
        return [
            self.project_name,
            self.user_id,
            self.date,
            self.type,
            self.amount,
            self.description,
            self.category,
            str(self.receipt_count),
            self.timestamp,
        ]
