"""
Core Data Models for Trip Ledger

These models define the strict schemas for every record that flows
through the repositories. They are designed to:
1. Reject documents that don't parse into the expected shape
2. Provide clear validation error messages
3. Serialize into flat field maps the document store accepts

DESIGN DECISION: The store is schemaless, so these models ARE the schema.
A document that fails to validate is quarantined at the repository
boundary instead of leaking partial fields into the session.
"""

import datetime as dt
import random
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    model_validator,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class Currency(str, Enum):
    """Currencies a project can keep its books in."""
    USD = "USD"
    EUR = "EUR"
    KRW = "KRW"
    JPY = "JPY"
    CNY = "CNY"
    INR = "INR"
    THB = "THB"
    LKR = "LKR"
    VND = "VND"


class TransactionType(str, Enum):
    """Direction of money flow."""
    INCOME = "income"
    EXPENSE = "expense"


class BalanceState(str, Enum):
    """Sign of a project balance, for presentation."""
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


INCOME_CATEGORIES: tuple[str, ...] = ("Advance", "Donation", "Others")
EXPENSE_CATEGORIES: tuple[str, ...] = (
    "Supplies",
    "Delivery",
    "Food",
    "Transportation",
    "Others",
)


def categories_for(transaction_type: TransactionType) -> tuple[str, ...]:
    """Return the categories allowed for a transaction type."""
    if TransactionType(transaction_type) == TransactionType.INCOME:
        return INCOME_CATEGORIES
    return EXPENSE_CATEGORIES


# Card colors assigned to projects at creation
PROJECT_COLORS: tuple[str, ...] = (
    "#A2D2FF", "#BDE0FE", "#CDB4DB", "#FFC8DD", "#FFADAD",
    "#FFD6A5", "#FFF4A3", "#FCE4EC", "#FCE2DA", "#E0FBE2",
)


def pick_project_color() -> str:
    """Pick a random color from the project palette."""
    return random.choice(PROJECT_COLORS)


MAX_REPORT_PHOTOS = 10


# =============================================================================
# STORED RECORDS
# =============================================================================

class Project(BaseModel):
    """
    A password-protected container for one trip's records.

    CRITICAL: password_hash is set once at creation. Edits go through
    EDITABLE_PROJECT_FIELDS and can never touch it.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    # Identity (assigned by the store / path, never written as fields)
    id: Optional[str] = None
    owner_id: Optional[str] = None

    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Project name"
    )
    in_charge: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Name of the person in charge"
    )
    currency: Currency = Field(
        default=Currency.USD,
        description="Currency every amount in this project is recorded in"
    )
    password_hash: str = Field(
        ...,
        min_length=1,
        description="Hex digest of the project password"
    )
    color: str = Field(
        default_factory=pick_project_color,
        description="Display color chosen at creation"
    )


EDITABLE_PROJECT_FIELDS: frozenset[str] = frozenset({"name", "in_charge", "currency"})


class Transaction(BaseModel):
    """
    An income or expense entry recorded against a project.

    Amounts are stored as numbers. The currency is the parent project's.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[str] = None
    owner_id: Optional[str] = None
    project_id: str = Field(
        ...,
        min_length=1,
        description="ID of the parent project"
    )

    type: TransactionType
    date: dt.date
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Amount in the project's currency"
    )
    description: str = Field(
        default="",
        max_length=500,
    )
    category: str = Field(
        ...,
        description="Category, constrained by the transaction type"
    )
    receipts: list[str] = Field(
        default_factory=list,
        description="Ordered receipt image references"
    )
    timestamp: dt.datetime = Field(
        default_factory=dt.datetime.utcnow,
        description="When the entry was recorded"
    )

    @field_serializer("amount", when_used="json")
    def serialize_amount(self, amount: Decimal) -> float:
        return float(amount)

    @model_validator(mode='after')
    def validate_category(self) -> 'Transaction':
        """Category must belong to the set for this type."""
        allowed = categories_for(self.type)
        if self.category not in allowed:
            raise ValueError(
                f"Category '{self.category}' is not valid for {self.type.value}; "
                f"expected one of {', '.join(allowed)}"
            )
        return self


class DailyReport(BaseModel):
    """A day's activity log for a project."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[str] = None
    owner_id: Optional[str] = None
    project_id: str = Field(
        ...,
        min_length=1,
        description="ID of the parent project"
    )

    date: dt.date
    participants: str = Field(default="", max_length=1000)
    activity: str = Field(default="", max_length=5000)
    special_note: Optional[str] = Field(default=None, max_length=2000)
    photos: list[str] = Field(
        default_factory=list,
        max_length=MAX_REPORT_PHOTOS,
        description="Ordered photo references"
    )
    timestamp: dt.datetime = Field(
        default_factory=dt.datetime.utcnow,
    )


# =============================================================================
# TRANSIENT MODELS
# =============================================================================

class ReceiptGuess(BaseModel):
    """
    What the receipt scanner thinks it saw.

    CRITICAL: This is a SUGGESTION. It only fills a draft the user
    still has to submit.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    date: Optional[dt.date] = None
    amount: Optional[Decimal] = Field(default=None, ge=0)
    description: Optional[str] = Field(default=None, max_length=500)
    category: Optional[str] = None


class TransactionDraft(BaseModel):
    """Unsaved transaction form state, optionally with a staged receipt image."""
    model_config = ConfigDict(str_strip_whitespace=True)

    type: TransactionType = TransactionType.EXPENSE
    date: dt.date = Field(default_factory=dt.date.today)
    amount: Optional[Decimal] = Field(default=None, ge=0)
    description: str = ""
    category: str = ""
    receipts: list[str] = Field(default_factory=list)

    staged_image: Optional[bytes] = Field(default=None, repr=False)
    staged_image_type: str = "image/jpeg"

    @property
    def has_staged_image(self) -> bool:
        return bool(self.staged_image)

    def to_fields(self) -> dict:
        """Fields for TransactionRepository.create (project_id added by caller)."""
        return {
            "type": self.type,
            "date": self.date,
            "amount": self.amount,
            "description": self.description,
            "category": self.category,
            "receipts": list(self.receipts),
        }


class Totals(BaseModel):
    """Income, expense and balance of one transaction set."""

    income: Decimal = Decimal("0")
    expense: Decimal = Decimal("0")
    balance: Decimal = Decimal("0")
