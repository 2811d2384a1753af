"""
Data Models Package

This package contains all Pydantic models used in Trip Ledger.
Every record read from or written to the document store must conform
to these schemas.
"""

from tripledger.models.ledger import (
    EDITABLE_PROJECT_FIELDS,
    EXPENSE_CATEGORIES,
    INCOME_CATEGORIES,
    MAX_REPORT_PHOTOS,
    PROJECT_COLORS,
    BalanceState,
    Currency,
    DailyReport,
    Project,
    ReceiptGuess,
    Totals,
    Transaction,
    TransactionDraft,
    TransactionType,
    categories_for,
    pick_project_color,
)
from tripledger.models.admin import (
    RECEIPT_EXPORT_COLUMNS,
    UNKNOWN_PROJECT_NAME,
    AdminSnapshot,
    ReceiptExportRow,
)
from tripledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "EDITABLE_PROJECT_FIELDS",
    "EXPENSE_CATEGORIES",
    "INCOME_CATEGORIES",
    "MAX_REPORT_PHOTOS",
    "PROJECT_COLORS",
    "BalanceState",
    "Currency",
    "DailyReport",
    "Project",
    "ReceiptGuess",
    "Totals",
    "Transaction",
    "TransactionDraft",
    "TransactionType",
    "categories_for",
    "pick_project_color",
    # Admin models
    "RECEIPT_EXPORT_COLUMNS",
    "UNKNOWN_PROJECT_NAME",
    "AdminSnapshot",
    "ReceiptExportRow",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
