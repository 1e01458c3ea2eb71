"""
Loan Models

Loans are money lent out to borrowers and tracked until repayment.
They are recorded from the loans screen and listed / searched by
borrower name. They do not feed the balance sheet directly.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.models.transaction import utc_now


class LoanType(str, Enum):
    """Loan products offered."""
    PERSONAL = "Personal"
    BUSINESS = "Business"
    EDUCATION = "Education"


class LoanStatus(str, Enum):
    """Lifecycle status of a loan."""
    ACTIVE = "active"
    REPAID = "repaid"
    DEFAULTED = "defaulted"


class Loan(BaseModel):
    """
    A loan issued to a borrower.

    Unlike transactions, loans are only ever created through the
    validated form path, so the schema is strict.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
    )

    id: Optional[str] = Field(
        default=None,
        description="Identifier assigned by the store"
    )
    loan_type: LoanType = Field(
        ...,
        alias="loanType",
    )
    loan_amount: Decimal = Field(
        ...,
        gt=0,
        alias="loanAmount",
        description="Principal in whole currency units"
    )
    interest_rate: Decimal = Field(
        ...,
        ge=0,
        le=100,
        alias="interestRate",
        description="Interest rate in percent"
    )
    repayment_date: datetime = Field(
        ...,
        alias="repaymentDate",
    )
    borrower_name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        alias="borrowerName",
    )
    aging: Optional[str] = Field(
        default=None,
        max_length=50,
        description="Aging bucket, e.g. '30 days'"
    )
    status: LoanStatus = Field(
        default=LoanStatus.ACTIVE,
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        alias="createdAt",
    )

    @field_validator("aging", mode="before")
    @classmethod
    def blank_aging_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    def to_document(self) -> dict:
        """Convert to the store's document layout (camelCase keys)."""
        return {
            "loanType": self.loan_type.value,
            "loanAmount": str(self.loan_amount),
            "interestRate": str(self.interest_rate),
            "repaymentDate": self.repayment_date.isoformat(),
            "borrowerName": self.borrower_name,
            "aging": self.aging or "",
            "status": self.status.value,
            "createdAt": self.created_at.isoformat(),
        }
