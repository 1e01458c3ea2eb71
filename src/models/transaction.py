"""
Transaction Models for the Microfinance Ledger

A transaction is a single money movement recorded by the user:
income received, an expense paid, or capital invested.

DESIGN DECISION: The transaction type is an OPEN set of tags.
The document store may hold tags this code does not know about
(older app versions, manual edits). We keep them as plain strings
and let the aggregator decide what to do with them instead of
rejecting the whole record at load time.

Amounts are Decimal. A missing or unreadable amount becomes 0
rather than a fault, because one bad document must not take the
whole balance sheet down with it.
"""

import math
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utc_now() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


# Amounts whose leading digit sits outside 1e-18 .. 1e18 are treated
# as unreadable. Sums and ratios of in-range amounts stay inside the
# Decimal context, so folding can never overflow.
MAX_AMOUNT_EXPONENT = 18


def is_readable_amount(value: Decimal) -> bool:
    """True for finite amounts inside the supported magnitude."""
    if not value.is_finite():
        return False
    return abs(value.adjusted()) <= MAX_AMOUNT_EXPONENT


def coerce_amount(value: Any) -> Decimal:
    """
    Convert a stored amount to Decimal.

    None, empty strings, non-numeric text, booleans, non-finite
    numbers and out-of-range magnitudes all become Decimal("0").
    Floats go through str() so that 1000.1 stays 1000.1 instead of
    its binary expansion.
    """
    if value is None or isinstance(value, bool):
        return Decimal("0")
    if isinstance(value, Decimal):
        return value if is_readable_amount(value) else Decimal("0")
    if isinstance(value, float):
        if not math.isfinite(value):
            return Decimal("0")
        return coerce_amount(Decimal(str(value)))
    if isinstance(value, int):
        return coerce_amount(Decimal(value))
    if isinstance(value, str):
        text = value.strip().replace(",", "")
        if not text:
            return Decimal("0")
        try:
            parsed = Decimal(text)
        except InvalidOperation:
            return Decimal("0")
        return parsed if is_readable_amount(parsed) else Decimal("0")
    return Decimal("0")


# =============================================================================
# ENUMS
# =============================================================================

class TransactionType(str, Enum):
    """
    Transaction types the balance sheet understands.

    Any other tag is still a valid Transaction, it just has
    no effect on the balance sheet.
    """
    INCOME = "Income"
    EXPENSE = "Expense"
    INVESTMENT = "Investment"

    @classmethod
    def recognise(cls, tag: Optional[str]) -> Optional["TransactionType"]:
        """Return the matching member, or None for unknown tags."""
        if tag is None:
            return None
        try:
            return cls(tag)
        except ValueError:
            return None


class TransactionStatus(str, Enum):
    """Status stored alongside a transaction."""
    COMPLETED = "completed"
    PENDING = "pending"


# =============================================================================
# TRANSACTION
# =============================================================================

class Transaction(BaseModel):
    """
    A transaction as held by the document store.

    Field aliases match the store's document keys
    (transactionType, createdAt) so raw documents can be
    validated directly with Transaction.model_validate(doc).

    Instances are frozen: the aggregator reads them and never
    writes back.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
        frozen=True,
    )

    id: Optional[str] = Field(
        default=None,
        description="Identifier assigned by the store"
    )
    transaction_type: str = Field(
        default="",
        alias="transactionType",
        description="Categorical tag, e.g. Income / Expense / Investment"
    )
    amount: Decimal = Field(
        default=Decimal("0"),
        description="Signed amount in whole currency units (UGX)"
    )
    date: Optional[datetime] = Field(
        default=None,
        description="When the transaction happened"
    )
    created_at: Optional[datetime] = Field(
        default=None,
        alias="createdAt",
        description="When the record was created"
    )
    description: str = Field(default="")
    status: str = Field(
        default=TransactionStatus.COMPLETED.value,
    )

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_missing_amount(cls, v: Any) -> Decimal:
        return coerce_amount(v)

    @field_validator("transaction_type", "description", "status", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @property
    def known_type(self) -> Optional[TransactionType]:
        """The recognised type, or None when the tag is unknown."""
        return TransactionType.recognise(self.transaction_type)

    @property
    def effective_date(self) -> Optional[datetime]:
        """Event date, falling back to the creation timestamp."""
        return self.date or self.created_at

    def to_document(self) -> dict:
        """Convert to the store's document layout (camelCase keys)."""
        return {
            "transactionType": self.transaction_type,
            "amount": str(self.amount),
            "date": self.date.isoformat() if self.date else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "description": self.description,
            "status": self.status,
        }
