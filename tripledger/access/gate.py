"""
Access Gate

CRITICAL: Opening a project requires its password every time. Nothing
about a successful unlock is remembered beyond the active session.

A wrong password is an ordinary outcome, not an error: both checks here
return False and never raise.
"""

from typing import Optional

import structlog

from tripledger.access.passwords import verify_password
from tripledger.audit import AuditLogger
from tripledger.config import AdminSettings, get_settings
from tripledger.models import Project


logger = structlog.get_logger(__name__)


class AccessGate:
    """Checks a supplied password against a project's stored hash."""

    def __init__(self, audit_logger: Optional[AuditLogger] = None):
        self._audit = audit_logger or AuditLogger()

    async def grant_access(self, project: Project, supplied_password: str) -> bool:
        granted = bool(project.password_hash) and verify_password(
            supplied_password or "", project.password_hash
        )
        logger.info(
            "access_checked",
            project_id=project.id,
            owner_id=project.owner_id,
            granted=granted,
        )
        await self._audit.log_access(project.id or "", project.owner_id, granted)
        return granted


class AdminAuthenticator:
    """
    Verifies the admin password against the configured digest.

    When no digest is configured, every attempt fails.
    """

    def __init__(
        self,
        settings: Optional[AdminSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._settings = settings or get_settings().admin
        self._audit = audit_logger or AuditLogger()

    @property
    def is_configured(self) -> bool:
        return self._settings.is_configured

    async def authenticate(self, password: str) -> bool:
        if not self._settings.is_configured:
            logger.warning("admin_login_unconfigured")
            succeeded = False
        else:
            digest = self._settings.password_hash.get_secret_value().strip()
            succeeded = verify_password(password or "", digest)
        await self._audit.log_admin_login(succeeded)
        return succeeded
