"""Tests for password hashing, the access gate and admin login."""

import pytest
from pydantic import SecretStr

from tripledger.access import (
    AccessGate,
    AdminAuthenticator,
    hash_password,
    verify_password,
)
from tripledger.config import AdminSettings
from tripledger.models import AuditEventType

from tests.helpers import make_project


class TestPasswordHashing:
    """Tests for the SHA-256 password digests."""

    def test_known_digest(self):
        """Test the digest of a known input."""
        assert hash_password("abc") == (
            "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
        )

    def test_digest_is_lowercase_hex(self):
        """Test that digests are 64 lowercase hex characters."""
        digest = hash_password("Pässwörd")
        assert len(digest) == 64
        assert digest == digest.lower()
        int(digest, 16)

    def test_deterministic(self):
        """Test that the same password always hashes the same way."""
        assert hash_password("secret") == hash_password("secret")

    def test_verify(self):
        """Test verification of right and wrong passwords."""
        digest = hash_password("secret")
        assert verify_password("secret", digest)
        assert not verify_password("Secret", digest)
        assert not verify_password("", digest)

    def test_non_ascii_stored_digest(self):
        """Test that a corrupt stored digest fails verification instead of raising."""
        assert not verify_password("anything", "h\u00e9llo")


class TestAccessGate:
    """Tests for project access checks."""

    async def test_correct_password_granted(self, gate):
        """Test that the right password opens the project."""
        project = make_project(id="p1", owner_id="o1", password="letmein")
        assert await gate.grant_access(project, "letmein") is True

    async def test_wrong_password_denied_without_raising(self, gate, audit_storage):
        """Test that a wrong password returns False and is audited."""
        project = make_project(id="p1", owner_id="o1", password="letmein")
        assert await gate.grant_access(project, "nope") is False

        events = await audit_storage.get_events_by_entity("project", "p1")
        assert [e.event_type for e in events] == [AuditEventType.ACCESS_DENIED]

    async def test_gate_without_audit_storage(self):
        """Test the gate works with local-only audit logging."""
        project = make_project(id="p1", password="x")
        assert await AccessGate().grant_access(project, "x")

    async def test_corrupt_hash_denied(self, gate):
        """Test that a non-ASCII stored hash is a plain denial."""
        project = make_project(id="p1", owner_id="o1", password_hash="h\u00e9llo")
        assert await gate.grant_access(project, "anything") is False


class TestAdminAuthenticator:
    """Tests for the admin login check."""

    async def test_configured_hash(self, audit_logger):
        """Test login against a configured admin hash."""
        settings = AdminSettings(password_hash=SecretStr(hash_password("root-pass")))
        authenticator = AdminAuthenticator(settings, audit_logger)

        assert authenticator.is_configured
        assert await authenticator.authenticate("root-pass") is True
        assert await authenticator.authenticate("admin123") is False

    async def test_unconfigured_always_refuses(self, audit_logger, monkeypatch):
        """Test that no configured hash means no admin login."""
        monkeypatch.delenv("ADMIN_PASSWORD_HASH", raising=False)
        authenticator = AdminAuthenticator(AdminSettings(_env_file=None), audit_logger)

        assert not authenticator.is_configured
        assert await authenticator.authenticate("") is False
        assert await authenticator.authenticate("admin123") is False

    async def test_login_attempts_audited(self, audit_logger, audit_storage):
        """Test that admin logins are recorded."""
        settings = AdminSettings(password_hash=SecretStr(hash_password("root-pass")))
        authenticator = AdminAuthenticator(settings, audit_logger)
        await authenticator.authenticate("wrong")
        await authenticator.authenticate("root-pass")

        events = await audit_storage.get_recent_events()
        types = {e.event_type for e in events}
        assert AuditEventType.ADMIN_LOGIN_FAILED in types
        assert AuditEventType.ADMIN_LOGIN_SUCCEEDED in types
