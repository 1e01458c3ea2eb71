"""
Form Input and Validation Models

Forms arrive as raw text exactly as typed. They are parsed and checked
by src.validation before anything reaches the store, so the rest of the
system only ever sees typed, valid Transaction and Loan records.
"""

from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from src.models.loan import Loan
from src.models.transaction import Transaction, utc_now


class TransactionForm(BaseModel):
    """Raw input from the record-transaction form."""
    model_config = ConfigDict(str_strip_whitespace=True)

    transaction_type: str = ""
    amount: str = ""
    description: str = ""
    date: Optional[datetime] = None


class LoanForm(BaseModel):
    """Raw input from the add-loan form."""
    model_config = ConfigDict(str_strip_whitespace=True)

    loan_type: str = ""
    loan_amount: str = ""
    interest_rate: str = ""
    borrower_name: str = ""
    repayment_date: Optional[datetime] = None
    aging: str = ""


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'not_a_number', 'out_of_range')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
    )
    suggested_fix: Optional[str] = None


class ValidationResult(BaseModel):
    """
    Result of the two-stage form validation.

    Stage 1: Schema validation (presence, numeric parsing, known values)
    Stage 2: Semantic validation (ranges, dates)

    When valid, `record` holds the parsed Transaction or Loan.
    """

    form: str = Field(
        ...,
        pattern="^(transaction|loan)$",
    )
    validated_at: datetime = Field(default_factory=utc_now)

    schema_valid: bool
    semantic_valid: bool
    is_valid: bool

    issues: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    record: Optional[Union[Transaction, Loan]] = None

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    def issues_as_dicts(self) -> list[dict]:
        return [
            {"field": i.field, "type": i.issue_type, "message": i.message}
            for i in self.issues
        ]
