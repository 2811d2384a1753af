"""Tests for application wiring."""

from unittest.mock import patch

import pytest

from tripledger.config import get_settings, validate_all_settings
from tripledger.orchestrator import create_app_components, create_store, start_app
from tripledger.services.identity import AnonymousIdentityProvider
from tripledger.services.storage import InMemoryDocumentStore, StoreUnavailableError


@pytest.fixture
def clean_env(monkeypatch):
    for name in ("GEMINI_API_KEY", "ADMIN_PASSWORD_HASH", "STORE_BACKEND", "STORE_APP_NAMESPACE"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield monkeypatch
    get_settings.cache_clear()


class TestWiring:
    """Tests for create_app_components and start_app."""

    def test_memory_backend_by_default(self, clean_env):
        """Test the default store backend."""
        assert isinstance(create_store(get_settings()), InMemoryDocumentStore)

    def test_runs_without_gemini(self, clean_env):
        """Test that a missing Gemini key only disables scanning."""
        components = create_app_components()
        assert components.receipt_scanner is None
        assert not components.admin_authenticator.is_configured

    def test_scanner_built_with_key(self, clean_env):
        """Test that a Gemini key enables scanning."""
        clean_env.setenv("GEMINI_API_KEY", "test-key")
        with patch("tripledger.services.ocr.gemini_receipts.genai"):
            components = create_app_components()
        assert components.receipt_scanner is not None

    async def test_start_app(self, clean_env):
        """Test connect, sign-in and a first project end to end."""
        clean_env.setenv("STORE_APP_NAMESPACE", "wired")
        components = await start_app(identity=AnonymousIdentityProvider("o1"))
        session = components.session

        project_id = await session.create_project("Trip A", "Alice", "USD", "pw")
        snapshot = await components.admin_view.list_all()

        assert session.owner_id == "o1"
        assert [p.id for p in snapshot.projects] == [project_id]
        assert await components.store.list_children("wired/users") == ["o1"]
        session.close()

    async def test_start_app_store_failure(self, clean_env):
        """Test that a store that can't connect stops startup."""
        class DeadStore(InMemoryDocumentStore):
            async def connect(self):
                raise StoreUnavailableError("no backend")

        with pytest.raises(StoreUnavailableError):
            await start_app(store=DeadStore())


class TestIdentity:
    """Tests for the anonymous identity provider."""

    async def test_stable_identity(self):
        """Test that one session keeps one owner ID."""
        provider = AnonymousIdentityProvider()
        assert provider.owner_id is None
        first = await provider.sign_in()
        assert await provider.sign_in() == first
        assert provider.owner_id == first

    async def test_distinct_sessions(self):
        """Test that separate sessions get separate owners."""
        assert await AnonymousIdentityProvider().sign_in() != await AnonymousIdentityProvider().sign_in()


class TestSettings:
    """Tests for configuration loading."""

    def test_validate_all_settings(self, clean_env):
        """Test the startup report for a bare environment."""
        results = validate_all_settings()
        assert results["store"] is True
        assert results["gemini"] is False
        assert "gemini_error" in results
        assert results["admin"] is True
        assert results["admin_configured"] is False

    def test_admin_hash_from_environment(self, clean_env):
        """Test that the admin hash is read as a secret."""
        clean_env.setenv("ADMIN_PASSWORD_HASH", "ab" * 32)
        admin = get_settings().admin
        assert admin.is_configured
        assert "ab" * 32 not in repr(admin)

    def test_invalid_backend_rejected(self, clean_env):
        """Test that only known store backends are accepted."""
        clean_env.setenv("STORE_BACKEND", "postgres")
        with pytest.raises(ValueError):
            get_settings().store
