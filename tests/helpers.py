"""Record builders shared by the test modules."""

import datetime as dt
from decimal import Decimal

from tripledger.access import hash_password
from tripledger.models import Project


NAMESPACE = "test-ledger"
OWNER = "owner-a"
OTHER_OWNER = "owner-b"


def make_project(name: str = "Trip A", password: str = "secret", **overrides) -> Project:
    fields = {
        "name": name,
        "in_charge": "Alice",
        "currency": "USD",
        "password_hash": hash_password(password),
    }
    fields.update(overrides)
    return Project(**fields)


def transaction_fields(project_id: str, **overrides) -> dict:
    fields = {
        "project_id": project_id,
        "type": "expense",
        "date": dt.date(2024, 3, 1),
        "amount": Decimal("10"),
        "description": "Lunch",
        "category": "Food",
        "receipts": [],
    }
    fields.update(overrides)
    return fields


def report_fields(project_id: str, **overrides) -> dict:
    fields = {
        "project_id": project_id,
        "date": dt.date(2024, 3, 1),
        "participants": "Alice, Bob",
        "activity": "Beach cleanup",
        "photos": [],
    }
    fields.update(overrides)
    return fields
