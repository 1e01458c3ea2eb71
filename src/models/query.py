"""
Query Models

Structured queries over the stored transactions and loans, and the
result shape every query returns. The presentation layer builds a
query from the search box and filters; the executor answers it from
storage only.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, model_validator

from src.models.loan import LoanStatus
from src.models.transaction import TransactionType, utc_now


class TransactionQuery(BaseModel):
    """A structured query over transactions."""

    query_id: UUID = Field(default_factory=uuid4)
    created_at: datetime = Field(default_factory=utc_now)

    query_type: str = Field(
        default="list",
        pattern="^(list|recent|aggregate|exists)$",
        description="Type of query to execute"
    )

    # Filters
    transaction_type: Optional[TransactionType] = None
    search: Optional[str] = Field(
        default=None,
        description="Case-insensitive substring of the description"
    )
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None

    limit: int = Field(
        default=10,
        ge=1,
        le=100
    )

    @model_validator(mode='after')
    def validate_dates(self) -> 'TransactionQuery':
        if self.date_from and self.date_to and self.date_to < self.date_from:
            raise ValueError("date_to cannot be before date_from")
        return self


class LoanQuery(BaseModel):
    """A structured query over loans."""

    query_id: UUID = Field(default_factory=uuid4)
    borrower: Optional[str] = None
    status: Optional[LoanStatus] = None
    limit: int = Field(
        default=10,
        ge=1,
        le=100
    )


class QueryResult(BaseModel):
    """Result of executing a structured query."""

    query_id: UUID
    executed_at: datetime = Field(default_factory=utc_now)

    # Success/failure
    success: bool
    error_message: Optional[str] = None

    # Results
    data_found: bool = Field(
        ...,
        description="Was any data found?"
    )
    result_count: int = Field(
        ge=0,
        description="Number of results"
    )
    results: list[dict] = Field(
        default_factory=list,
        description="Query results as list of dicts"
    )

    aggregation_result: Optional[dict] = None

    query_description: str = Field(
        ...,
        description="Human-readable description of what was queried"
    )
