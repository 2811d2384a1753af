"""Audit logging package."""

from tripledger.audit.logger import AuditLogger

__all__ = ["AuditLogger"]
