"""
Query Execution Engine

DESIGN DECISION: Query execution is DETERMINISTIC.
The screens turn the search box and filters into a TransactionQuery or
LoanQuery; this engine answers it from what is actually stored.

Amounts in results are rendered as exact decimal strings, never floats,
so a listed total always matches the balance sheet.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

import structlog

from src.config import get_settings
from src.models.loan import Loan
from src.models.query import LoanQuery, QueryResult, TransactionQuery
from src.models.transaction import Transaction, TransactionType
from src.services.storage import LoanStorageInterface, TransactionStorageInterface


logger = structlog.get_logger(__name__)


class QueryExecutionError(Exception):
    """Error during query execution."""
    pass


class QueryExecutor:
    """
    Executes structured queries against transaction and loan storage.

    GUARANTEES:
    - Only returns real data from storage
    - Never invents or estimates
    - Clear "no data found" if nothing matches
    """

    def __init__(
        self,
        transaction_storage: TransactionStorageInterface,
        loan_storage: Optional[LoanStorageInterface] = None,
    ):
        self._transactions = transaction_storage
        self._loans = loan_storage

    async def execute(self, query: TransactionQuery) -> QueryResult:
        """
        Execute a transaction query.

        Storage failures come back as an unsuccessful result rather
        than an exception.
        """
        try:
            if query.query_type == "recent":
                return await self._execute_recent(query)
            elif query.query_type == "aggregate":
                return await self._execute_aggregate(query)
            elif query.query_type == "exists":
                return await self._execute_exists(query)
            else:
                return await self._execute_list(query)

        except Exception as e:
            logger.warning("query_failed", query_id=str(query.query_id), error=str(e))
            return QueryResult(
                query_id=query.query_id,
                success=False,
                error_message=str(e),
                data_found=False,
                result_count=0,
                query_description=f"Query failed: {str(e)}",
            )

    async def recent_transactions(self, limit: Optional[int] = None) -> list[Transaction]:
        """The newest transactions, by date. Defaults to the configured count."""
        limit = limit or get_settings().app.recent_transactions_limit
        return await self._transactions.list_transactions(limit=limit)

    async def search_loans(self, query: LoanQuery) -> QueryResult:
        """Loans whose borrower name contains the search text."""
        if self._loans is None:
            raise QueryExecutionError("Loan storage is not configured")

        loans = await self._loans.list_loans(
            borrower=query.borrower,
            status=query.status,
            limit=query.limit,
        )
        results = [self._loan_to_dict(loan) for loan in loans]

        desc_parts = ["Listing loans"]
        if query.borrower:
            desc_parts.append(f"borrower: {query.borrower}")
        if query.status:
            desc_parts.append(f"status: {query.status.value}")

        return QueryResult(
            query_id=query.query_id,
            success=True,
            data_found=len(results) > 0,
            result_count=len(results),
            results=results,
            query_description=" | ".join(desc_parts),
        )

    async def _fetch(self, query: TransactionQuery, limit: int) -> list[Transaction]:
        return await self._transactions.list_transactions(
            transaction_type=query.transaction_type.value if query.transaction_type else None,
            search=query.search,
            date_from=query.date_from,
            date_to=query.date_to,
            limit=limit,
        )

    async def _execute_list(self, query: TransactionQuery) -> QueryResult:
        transactions = await self._fetch(query, query.limit)
        results = [self._transaction_to_dict(t) for t in transactions]

        desc_parts = ["Listing transactions"]
        desc_parts.extend(self._filter_parts(query))

        return QueryResult(
            query_id=query.query_id,
            success=True,
            data_found=len(results) > 0,
            result_count=len(results),
            results=results,
            query_description=" | ".join(desc_parts),
        )

    async def _execute_recent(self, query: TransactionQuery) -> QueryResult:
        transactions = await self.recent_transactions(query.limit)
        results = [self._transaction_to_dict(t) for t in transactions]

        return QueryResult(
            query_id=query.query_id,
            success=True,
            data_found=len(results) > 0,
            result_count=len(results),
            results=results,
            query_description=f"Most recent {query.limit} transactions",
        )

    async def _execute_aggregate(self, query: TransactionQuery) -> QueryResult:
        """Totals and counts per transaction type over the matching set."""
        transactions = await self._transactions.list_all_transactions()
        matched = await self._fetch(query, max(len(transactions), 1))

        if not matched:
            return QueryResult(
                query_id=query.query_id,
                success=True,
                data_found=False,
                result_count=0,
                query_description="No transactions found for aggregation",
            )

        breakdown: dict[str, dict] = {}
        grand_total = Decimal("0")
        for transaction in matched:
            key = transaction.transaction_type or "unknown"
            group = breakdown.setdefault(key, {"count": 0, "total": Decimal("0")})
            group["count"] += 1
            group["total"] += transaction.amount
            grand_total += transaction.amount

        aggregation_result = {
            "total_amount": str(grand_total),
            "transaction_count": len(matched),
            "breakdown": {
                key: {"count": group["count"], "total": str(group["total"])}
                for key, group in sorted(breakdown.items())
            },
        }

        desc_parts = ["Calculating totals"]
        desc_parts.extend(self._filter_parts(query))

        return QueryResult(
            query_id=query.query_id,
            success=True,
            data_found=True,
            result_count=len(matched),
            aggregation_result=aggregation_result,
            query_description=" ".join(desc_parts),
        )

    async def _execute_exists(self, query: TransactionQuery) -> QueryResult:
        transactions = await self._fetch(query, 1)
        exists = len(transactions) > 0

        result_data = [{"exists": exists, "answer": "yes" if exists else "no"}]
        if exists:
            result_data.append(self._transaction_to_dict(transactions[0]))

        desc_parts = ["Checking for transactions"]
        desc_parts.extend(self._filter_parts(query))

        return QueryResult(
            query_id=query.query_id,
            success=True,
            data_found=exists,
            result_count=1 if exists else 0,
            results=result_data,
            query_description=" ".join(desc_parts),
        )

    def _filter_parts(self, query: TransactionQuery) -> list[str]:
        parts = []
        if query.transaction_type:
            parts.append(f"type: {query.transaction_type.value}")
        if query.search:
            parts.append(f"matching '{query.search}'")
        if query.date_from or query.date_to:
            parts.append(self._date_range_str(query.date_from, query.date_to))
        return parts

    def _transaction_to_dict(self, transaction: Transaction) -> dict:
        known = TransactionType.recognise(transaction.transaction_type)
        when = transaction.effective_date
        return {
            "id": transaction.id,
            "transaction_type": known.value if known else transaction.transaction_type,
            "amount": str(transaction.amount),
            "date": when.isoformat() if when else None,
            "description": transaction.description,
            "status": transaction.status,
        }

    def _loan_to_dict(self, loan: Loan) -> dict:
        return {
            "id": loan.id,
            "loan_type": loan.loan_type.value,
            "loan_amount": str(loan.loan_amount),
            "interest_rate": str(loan.interest_rate),
            "repayment_date": loan.repayment_date.isoformat(),
            "borrower_name": loan.borrower_name,
            "aging": loan.aging,
            "status": loan.status.value,
        }

    def _date_range_str(
        self,
        date_from: Optional[datetime],
        date_to: Optional[datetime],
    ) -> str:
        """Format date range for description."""
        if date_from and date_to:
            if date_from.date() == date_to.date():
                return f"on {date_from.strftime('%d %b %Y')}"
            elif date_from.month == date_to.month and date_from.year == date_to.year:
                return f"in {date_from.strftime('%B %Y')}"
            elif date_from.year == date_to.year:
                return f"from {date_from.strftime('%b')} to {date_to.strftime('%b %Y')}"
            else:
                return f"from {date_from.strftime('%b %Y')} to {date_to.strftime('%b %Y')}"
        elif date_from:
            return f"from {date_from.strftime('%d %b %Y')}"
        elif date_to:
            return f"until {date_to.strftime('%d %b %Y')}"
        return ""
