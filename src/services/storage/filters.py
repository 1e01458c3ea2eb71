"""
Filtering shared by the storage backends.

Neither Google Sheets nor the in-memory store can query, so both
load rows and filter in Python with these helpers.
"""

from datetime import datetime, timezone
from typing import Iterable, Optional

from src.models.loan import Loan, LoanStatus
from src.models.transaction import Transaction


_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC so they compare with aware ones."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def newest_first_key(transaction: Transaction) -> datetime:
    return as_utc(transaction.effective_date) or _EPOCH


def filter_transactions(
    transactions: Iterable[Transaction],
    transaction_type: Optional[str] = None,
    search: Optional[str] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    limit: int = 100,
    offset: int = 0,
) -> list[Transaction]:
    """Filter, sort newest first, then paginate."""
    needle = search.strip().lower() if search else None
    start = as_utc(date_from)
    end = as_utc(date_to)

    matched = []
    for transaction in transactions:
        if transaction_type and transaction.transaction_type != transaction_type:
            continue
        if needle and needle not in transaction.description.lower():
            continue
        when = as_utc(transaction.effective_date)
        if start and (when is None or when < start):
            continue
        if end and (when is None or when > end):
            continue
        matched.append(transaction)

    matched.sort(key=newest_first_key, reverse=True)
    return matched[offset:offset + limit]


def filter_loans(
    loans: Iterable[Loan],
    borrower: Optional[str] = None,
    status: Optional[LoanStatus] = None,
    limit: int = 100,
    offset: int = 0,
) -> list[Loan]:
    """Filter loans by borrower substring and status, newest first."""
    needle = borrower.strip().lower() if borrower else None

    matched = [
        loan for loan in loans
        if (not needle or needle in loan.borrower_name.lower())
        and (status is None or loan.status == status)
    ]
    matched.sort(key=lambda loan: as_utc(loan.created_at), reverse=True)
    return matched[offset:offset + limit]
