"""Tests for the project session flow."""

from datetime import date
from decimal import Decimal

import pytest

from tripledger.access import verify_password
from tripledger.models import (
    PROJECT_COLORS,
    AuditEventType,
    BalanceState,
    TransactionDraft,
)
from tripledger.aggregation import balance_state
from tripledger.repositories import PartialCascadeError
from tripledger.services.storage import RecordValidationError, StorageError

from tests.helpers import OWNER, report_fields, transaction_fields


async def _open_new_project(session, name="Trip A", password="pw"):
    project_id = await session.create_project(name, "Alice", "USD", password, password)
    project = next(p for p in session.projects if p.id == project_id)
    assert await session.open_project(project, password)
    return project


class TestProjects:
    """Tests for project creation and editing through the session."""

    async def test_create_project(self, session, projects):
        """Test that the stored project has a hash and a palette color."""
        project_id = await session.create_project("Trip A", "Alice", "EUR", "pw", "pw")

        stored = await projects.get(OWNER, project_id)
        assert verify_password("pw", stored.password_hash)
        assert stored.color in PROJECT_COLORS
        assert [p.id for p in session.projects] == [project_id]

    async def test_password_confirmation_mismatch(self, session):
        """Test that mismatched passwords are rejected before any write."""
        with pytest.raises(RecordValidationError):
            await session.create_project("Trip A", "Alice", "USD", "pw", "other")
        assert session.projects == []

    async def test_invalid_project_returns_none(self, session):
        """Test that validation failures are contained at the boundary."""
        assert await session.create_project("", "Alice", "USD", "pw") is None
        assert session.projects == []

    async def test_update_project(self, session, projects):
        """Test editing project fields."""
        project_id = await session.create_project("Trip A", "Alice", "USD", "pw")
        assert await session.update_project(project_id, {"in_charge": "Bob"})
        assert (await projects.get(OWNER, project_id)).in_charge == "Bob"

    async def test_update_project_password_refused(self, session):
        """Test that the password can't be changed by an edit."""
        project_id = await session.create_project("Trip A", "Alice", "USD", "pw")
        assert await session.update_project(project_id, {"password_hash": "x"}) is False


class TestAccess:
    """Tests for opening projects."""

    async def test_wrong_password_keeps_state(self, session):
        """Test that a failed unlock leaves the session as it was."""
        first = await _open_new_project(session, "Trip A", "pw-a")
        await session.add_transaction(transaction_fields(first.id))
        project_id = await session.create_project("Trip B", "Bob", "USD", "pw-b")
        second = next(p for p in session.projects if p.id == project_id)

        assert await session.open_project(second, "wrong") is False
        assert session.active_project.id == first.id
        assert len(session.transactions) == 1

    async def test_wrong_password_not_active(self, session):
        """Test that a project stays locked after a wrong password."""
        project_id = await session.create_project("Trip A", "Alice", "USD", "pw")
        project = session.projects[0]
        assert project.id == project_id
        assert await session.open_project(project, "nope") is False
        assert not session.is_project_active
        assert await session.add_transaction(transaction_fields(project_id)) is None

    async def test_switching_projects_isolates_live_state(self, session, transactions):
        """Test that only the active project's records are live."""
        first = await _open_new_project(session, "Trip A", "a")
        await session.add_transaction(transaction_fields(first.id))
        second = await _open_new_project(session, "Trip B", "b")

        assert session.active_project.id == second.id
        assert session.transactions == []

        # A write to the old project must not leak into the new state
        await transactions.create(OWNER, transaction_fields(first.id))
        assert session.transactions == []

    async def test_stale_snapshot_after_switch_ignored(self, session, transactions, monkeypatch):
        """Test that a late delivery for the previous project changes nothing."""
        callbacks = []
        real_subscribe = transactions.subscribe_for_project

        def recording_subscribe(owner_id, project_id, on_change):
            callbacks.append(on_change)
            return real_subscribe(owner_id, project_id, on_change)

        monkeypatch.setattr(transactions, "subscribe_for_project", recording_subscribe)

        first = await _open_new_project(session, "Trip A", "a")
        await session.add_transaction(transaction_fields(first.id))
        stale = await transactions.list_for_project(OWNER, first.id)
        second = await _open_new_project(session, "Trip B", "b")
        await session.add_transaction(transaction_fields(second.id, amount=Decimal("7")))

        callbacks[0](stale)

        assert session.active_project.id == second.id
        assert [t.project_id for t in session.transactions] == [second.id]
        assert session.totals.expense == Decimal("7")

    async def test_entries_of_locked_project_untouchable(self, session, transactions, reports):
        """Test that an open project can't reach another project's entries."""
        locked = await _open_new_project(session, "Trip B", "b")
        locked_transaction = await session.add_transaction(transaction_fields(locked.id))
        locked_report = await session.add_daily_report(report_fields(locked.id))
        await _open_new_project(session, "Trip A", "a")

        assert await session.update_transaction(locked_transaction, {"amount": Decimal("999")}) is False
        assert await session.delete_transaction(locked_transaction) is False
        assert await session.update_daily_report(locked_report, {"activity": "Hike"}) is False
        assert await session.delete_daily_report(locked_report) is False

        stored = await transactions.get(OWNER, locked_transaction)
        assert stored.amount == Decimal("10")
        assert (await reports.get(OWNER, locked_report)).activity == "Beach cleanup"

    async def test_close_project(self, session, store):
        """Test that closing drops subscriptions and state."""
        await _open_new_project(session)
        subscriptions = store.subscription_count
        session.close_project()

        assert not session.is_project_active
        assert store.subscription_count == subscriptions - 2


class TestEntries:
    """Tests for transactions and daily reports in an open project."""

    async def test_totals_follow_transactions(self, session):
        """Test the running example totals."""
        project = await _open_new_project(session)
        await session.add_transaction(
            transaction_fields(project.id, type="income", amount=Decimal("500"), category="Advance")
        )
        await session.add_transaction(
            transaction_fields(project.id, amount=Decimal("120.50"), category="Food")
        )
        await session.add_transaction(
            transaction_fields(project.id, amount=Decimal("30"), category="Transportation")
        )

        assert session.totals.income == Decimal("500")
        assert session.totals.expense == Decimal("150.50")
        assert session.totals.balance == Decimal("349.50")
        assert balance_state(session.totals.balance) == BalanceState.POSITIVE

    async def test_transactions_newest_first(self, session):
        """Test that live transactions are sorted by date descending."""
        project = await _open_new_project(session)
        await session.add_transaction(transaction_fields(project.id, date=date(2024, 3, 1)))
        await session.add_transaction(transaction_fields(project.id, date=date(2024, 3, 5)))
        await session.add_transaction(transaction_fields(project.id, date=date(2024, 3, 3)))

        assert [t.date.day for t in session.transactions] == [5, 3, 1]

    async def test_add_from_draft(self, session):
        """Test that a reviewed draft can be saved."""
        project = await _open_new_project(session)
        draft = TransactionDraft(
            date=date(2024, 3, 2),
            amount=Decimal("12"),
            description="Taxi",
            category="Transportation",
            receipts=["r.jpg"],
        )
        transaction_id = await session.add_transaction(draft)

        assert transaction_id is not None
        assert session.transactions[0].project_id == project.id
        assert session.transactions[0].receipts == ["r.jpg"]

    async def test_update_and_delete_transaction(self, session):
        """Test editing and removing a transaction."""
        project = await _open_new_project(session)
        transaction_id = await session.add_transaction(transaction_fields(project.id))

        assert await session.update_transaction(transaction_id, {"amount": Decimal("25")})
        assert session.totals.expense == Decimal("25")

        assert await session.delete_transaction(transaction_id)
        assert session.transactions == []
        assert session.totals.expense == 0

    async def test_invalid_transaction_returns_none(self, session, audit_storage):
        """Test that a rejected write is audited and leaves state alone."""
        project = await _open_new_project(session)
        result = await session.add_transaction(
            transaction_fields(project.id, category="Donation")
        )

        assert result is None
        assert session.transactions == []
        events = await audit_storage.get_recent_events()
        assert AuditEventType.STORE_ERROR in {e.event_type for e in events}

    async def test_delete_missing_transaction(self, session):
        """Test that deleting an unknown entry returns False."""
        await _open_new_project(session)
        assert await session.delete_transaction("nope") is False

    async def test_store_failure_contained(self, session, store, monkeypatch):
        """Test that a store outage during a write doesn't raise."""
        project = await _open_new_project(session)

        async def broken_insert(path, fields):
            raise StorageError("backend down")

        monkeypatch.setattr(store, "insert", broken_insert)
        assert await session.add_transaction(transaction_fields(project.id)) is None

    async def test_daily_reports(self, session):
        """Test adding, editing and deleting daily reports."""
        project = await _open_new_project(session)
        first = await session.add_daily_report(report_fields(project.id, date=date(2024, 3, 1)))
        await session.add_daily_report(report_fields(project.id, date=date(2024, 3, 4)))

        assert [r.date.day for r in session.reports] == [4, 1]
        assert await session.update_daily_report(first, {"activity": "Hike"})
        assert session.reports[1].activity == "Hike"
        assert await session.delete_daily_report(first)
        assert len(session.reports) == 1

    async def test_change_listener(self, projects, transactions, reports, gate):
        """Test that on_change hears about each kind of update."""
        from tripledger.services.identity import AnonymousIdentityProvider
        from tripledger.session import ProjectSession

        kinds = []
        session = ProjectSession(
            AnonymousIdentityProvider("listener"),
            projects, transactions, reports, gate,
            on_change=kinds.append,
        )
        await session.start()
        await _open_new_project(session)
        await session.add_transaction(transaction_fields(session.active_project.id))
        session.close()

        assert {"projects", "project", "transactions", "reports"} <= set(kinds)


class TestDeleteProject:
    """Tests for owner-initiated project deletion."""

    async def test_delete_cascades_and_closes(self, session, transactions, reports):
        """Test that deleting the active project removes its records."""
        project = await _open_new_project(session)
        await session.add_transaction(transaction_fields(project.id))
        await session.add_daily_report(report_fields(project.id))

        assert await session.delete_project(project.id)
        assert not session.is_project_active
        assert session.projects == []
        assert await transactions.list_for_project(OWNER, project.id) == []
        assert await reports.list_for_project(OWNER, project.id) == []

    async def test_partial_cascade_surfaces(self, session, store, monkeypatch, audit_storage):
        """Test that a partial cascade is raised, not swallowed."""
        project = await _open_new_project(session)
        await session.add_transaction(transaction_fields(project.id))
        real_delete = store.delete

        async def failing_child_delete(path, doc_id):
            if path.endswith("/transactions"):
                raise StorageError("timeout")
            await real_delete(path, doc_id)

        monkeypatch.setattr(store, "delete", failing_child_delete)

        with pytest.raises(PartialCascadeError):
            await session.delete_project(project.id)

        events = await audit_storage.get_events_by_entity("project", project.id)
        assert events[-1].event_type == AuditEventType.CASCADE_PARTIAL

    async def test_delete_unknown_project(self, session, audit_storage):
        """Test that deleting a missing project fails without a completed event."""
        assert await session.delete_project("nope") is False

        events = await audit_storage.get_recent_events()
        types = {e.event_type for e in events}
        assert AuditEventType.CASCADE_COMPLETED not in types
        assert AuditEventType.STORE_ERROR in types

    async def test_failure_before_any_delete_returns_false(self, session, store, monkeypatch):
        """Test that a listing failure leaves everything in place and isn't raised."""
        project = await _open_new_project(session)
        await session.add_transaction(transaction_fields(project.id))

        async def broken_query(path, where=None):
            raise StorageError("backend down")

        monkeypatch.setattr(store, "query", broken_query)
        assert await session.delete_project(project.id) is False
        assert session.active_project.id == project.id
        assert [p.id for p in session.projects] == [project.id]
