"""Tests for the document store contract and audit storage."""

import json
from unittest.mock import MagicMock

import pytest

from tripledger.models import AuditEventBuilder, AuditEventType
from tripledger.services.storage import (
    GoogleSheetsDocumentStore,
    InMemoryDocumentStore,
    NotFoundError,
    StoreUnavailableError,
    collection_path,
    users_path,
)


class TestPaths:
    """Tests for collection path helpers."""

    def test_collection_path(self):
        """Test the owner-scoped collection layout."""
        assert collection_path("app", "u1", "projects") == "app/users/u1/projects"
        assert users_path("app") == "app/users"


class TestInMemoryStore:
    """Tests for the in-memory document store."""

    async def test_unavailable_before_connect(self):
        """Test that every operation fails before connect()."""
        store = InMemoryDocumentStore()
        assert not store.is_ready
        with pytest.raises(StoreUnavailableError):
            await store.insert("a/b", {})
        with pytest.raises(StoreUnavailableError):
            await store.query("a/b")
        with pytest.raises(StoreUnavailableError):
            store.subscribe("a/b", None, lambda docs: None)

    async def test_insert_get_update(self, store):
        """Test that update merges only the supplied fields."""
        doc_id = await store.insert("c", {"name": "x", "n": 1})
        await store.update("c", doc_id, {"n": 2})
        document = await store.get("c", doc_id)
        assert document.fields == {"name": "x", "n": 2}

    async def test_missing_document(self, store):
        """Test NotFoundError on update/delete/get of unknown IDs."""
        with pytest.raises(NotFoundError):
            await store.get("c", "nope")
        with pytest.raises(NotFoundError):
            await store.update("c", "nope", {"a": 1})
        with pytest.raises(NotFoundError):
            await store.delete("c", "nope")

    async def test_query_filter(self, store):
        """Test equality filtering."""
        await store.insert("c", {"project_id": "p1"})
        await store.insert("c", {"project_id": "p2"})
        documents = await store.query("c", {"project_id": "p1"})
        assert [d.fields["project_id"] for d in documents] == ["p1"]

    async def test_returned_fields_are_copies(self, store):
        """Test that callers can't mutate stored state."""
        doc_id = await store.insert("c", {"tags": ["a"]})
        document = await store.get("c", doc_id)
        document.fields["tags"].append("b")
        assert (await store.get("c", doc_id)).fields["tags"] == ["a"]

    async def test_list_children(self, store):
        """Test enumeration of owner scopes."""
        await store.insert(collection_path("app", "u1", "projects"), {})
        await store.insert(collection_path("app", "u2", "transactions"), {})
        await store.insert("app/audit_log", {})
        assert sorted(await store.list_children(users_path("app"))) == ["u1", "u2"]

    async def test_subscription_snapshots(self, store):
        """Test initial snapshot, change delivery and cancel."""
        seen = []
        subscription = store.subscribe("c", None, lambda docs: seen.append(len(docs)))
        await store.insert("c", {})
        await store.insert("other", {})
        subscription.cancel()
        subscription.cancel()
        await store.insert("c", {})

        assert seen == [0, 1]
        assert not subscription.active
        assert store.subscription_count == 0

    async def test_callback_errors_are_contained(self, store):
        """Test that a failing callback doesn't break the write."""
        def explode(docs):
            raise RuntimeError("listener bug")

        store.subscribe("c", None, explode)
        doc_id = await store.insert("c", {"a": 1})
        assert (await store.get("c", doc_id)).fields == {"a": 1}


class TestGoogleSheetsStore:
    """Tests for the Sheets store with a mocked worksheet."""

    def _store(self, rows):
        sheet = MagicMock()
        sheet.get_all_values.return_value = [
            ["collection_path", "doc_id", "fields_json", "updated_at"],
            *rows,
        ]
        client = MagicMock()
        client.get_documents_sheet.return_value = sheet
        return GoogleSheetsDocumentStore(client, poll_interval_seconds=0.01), sheet

    async def test_requires_connect(self):
        """Test that the store is unavailable until connected."""
        store, _ = self._store([])
        with pytest.raises(StoreUnavailableError):
            await store.query("c")

    async def test_query_skips_malformed_rows(self):
        """Test that rows with bad JSON are skipped."""
        store, _ = self._store([
            ["c", "1", json.dumps({"a": 1}), ""],
            ["c", "2", "{not json", ""],
            ["d", "3", json.dumps({"a": 1}), ""],
        ])
        await store.connect()
        documents = await store.query("c")
        assert [d.id for d in documents] == ["1"]

    async def test_update_merges_fields(self):
        """Test that update writes the merged field map to the row."""
        store, sheet = self._store([["c", "1", json.dumps({"a": 1, "b": 2}), ""]])
        await store.connect()
        await store.update("c", "1", {"b": 3})
        row, col, value = sheet.update_cell.call_args_list[0].args
        assert (row, col) == (2, 3)
        assert json.loads(value) == {"a": 1, "b": 3}

    async def test_delete_missing(self):
        """Test NotFoundError when the row doesn't exist."""
        store, sheet = self._store([])
        await store.connect()
        with pytest.raises(NotFoundError):
            await store.delete("c", "1")
        sheet.delete_rows.assert_not_called()

    async def test_list_children(self):
        """Test owner enumeration from row paths."""
        store, _ = self._store([
            ["app/users/u1/projects", "1", "{}", ""],
            ["app/users/u1/transactions", "2", "{}", ""],
            ["app/users/u2/projects", "3", "{}", ""],
        ])
        await store.connect()
        assert await store.list_children("app/users") == ["u1", "u2"]


class TestDocumentStoreAuditStorage:
    """Tests for the audit log collection."""

    async def test_append_and_read(self, audit_storage):
        """Test that events round through the store."""
        await audit_storage.append_event(AuditEventBuilder.project_created("p1", "o1", "Trip A"))
        await audit_storage.append_event(AuditEventBuilder.access_granted("p1", "o1"))

        events = await audit_storage.get_events_by_entity("project", "p1")
        assert [e.event_type for e in events] == [
            AuditEventType.PROJECT_CREATED,
            AuditEventType.ACCESS_GRANTED,
        ]
        assert events[0].details == {"name": "Trip A"}

    async def test_recent_events_limit(self, audit_storage):
        """Test the newest-first limit."""
        for _ in range(5):
            await audit_storage.append_event(AuditEventBuilder.admin_login(False))
        assert len(await audit_storage.get_recent_events(limit=3)) == 3

    async def test_append_failure_returns_false(self):
        """Test that audit persistence failures don't raise."""
        from tripledger.services.storage import DocumentStoreAuditStorage

        storage = DocumentStoreAuditStorage(InMemoryDocumentStore(), "app")
        assert await storage.append_event(AuditEventBuilder.admin_login(True)) is False
