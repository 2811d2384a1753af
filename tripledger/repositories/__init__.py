"""Typed repositories over the document store."""

from tripledger.repositories.base import (
    EntityRepository,
    ProjectScopedRepository,
    decode_sequence,
    encode_sequence,
)
from tripledger.repositories.entities import (
    DailyReportRepository,
    ProjectRepository,
    TransactionRepository,
)
from tripledger.repositories.cascade import (
    CascadeResult,
    PartialCascadeError,
    delete_project_cascade,
)

__all__ = [
    "EntityRepository",
    "ProjectScopedRepository",
    "decode_sequence",
    "encode_sequence",
    "DailyReportRepository",
    "ProjectRepository",
    "TransactionRepository",
    "CascadeResult",
    "PartialCascadeError",
    "delete_project_cascade",
]
