"""
Main Orchestrator for the Microfinance Ledger

This module ties together all the components and defines the
end-to-end flows for:
1. Record Transaction (form → validate → save → feed emits → balance sheet rebuilds)
2. Record Loan (form → validate → save)
3. Balance Sheet (feed → service → export)
4. Query (filters → execute → results)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing reaches the store without passing validation
- The balance sheet is only ever rebuilt from the complete set the feed emits
- Every step is audited

This is the "glue" that ensures the system works correctly
even when individual components might behave unexpectedly.
"""

import asyncio
from datetime import date
from pathlib import Path
from typing import Optional
from uuid import UUID

import structlog

from src.audit import AuditLogger, create_correlation_id
from src.config import get_settings
from src.export import (
    ExportError,
    GoogleSheetsSnapshotExporter,
    export_csv,
    snapshot_to_rows,
)
from src.ledger import BalanceSheetService, LedgerAggregator
from src.models.balance import LedgerState
from src.models.forms import LoanForm, TransactionForm, ValidationResult
from src.models.loan import Loan
from src.models.query import LoanQuery, QueryResult, TransactionQuery
from src.models.transaction import Transaction
from src.queries import QueryExecutor
from src.services.feed import (
    InMemoryTransactionFeed,
    PollingTransactionFeed,
    TransactionFeed,
)
from src.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLoanStorage,
    GoogleSheetsTransactionStorage,
    InMemoryLoanStorage,
    InMemoryTransactionStorage,
    LoanStorageInterface,
    TransactionStorageInterface,
)
from src.validation import (
    LoanFormValidator,
    TransactionFormValidator,
    get_user_friendly_summary,
)


logger = structlog.get_logger(__name__)


class RecordTransactionFlow:
    """
    Orchestrates recording and deleting transactions.

    Flow:
    1. Validate → Two-stage form validation
    2. Save → Persist to storage (the store assigns the id)
    3. Audit → Recorded, or rejected with the issues found

    The balance sheet is NOT touched here. It rebuilds when the
    feed emits the new complete set.
    """

    def __init__(
        self,
        storage: TransactionStorageInterface,
        validator: Optional[TransactionFormValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._validator = validator or TransactionFormValidator()
        self._audit_logger = audit_logger

    async def submit(
        self,
        form: TransactionForm,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[ValidationResult, Optional[Transaction], str]:
        """
        Validate and save a transaction form.

        Returns:
            (validation_result, saved_transaction, user_message)

        saved_transaction is None when the form was rejected.
        """
        correlation_id = correlation_id or create_correlation_id()

        result = self._validator.validate(form)
        message = get_user_friendly_summary(result)

        if not result.is_valid:
            if self._audit_logger:
                await self._audit_logger.log_form_rejected(
                    form=result.form,
                    issues=result.issues_as_dicts(),
                    correlation_id=correlation_id,
                )
            return result, None, message

        try:
            saved = await self._storage.save_transaction(result.record)
        except Exception as e:
            if self._audit_logger:
                await self._audit_logger.log_external_service_error(
                    service="transaction_storage",
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise

        if self._audit_logger:
            await self._audit_logger.log_transaction_recorded(
                transaction_id=saved.id,
                transaction_type=saved.transaction_type,
                amount=str(saved.amount),
                correlation_id=correlation_id,
            )

        return result, saved, message

    async def delete(
        self,
        transaction_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """Delete a transaction. Returns False if it didn't exist."""
        correlation_id = correlation_id or create_correlation_id()

        try:
            deleted = await self._storage.delete_transaction(transaction_id)
        except Exception as e:
            if self._audit_logger:
                await self._audit_logger.log_external_service_error(
                    service="transaction_storage",
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise

        if deleted and self._audit_logger:
            await self._audit_logger.log_transaction_deleted(
                transaction_id=transaction_id,
                correlation_id=correlation_id,
            )
        return deleted


class RecordLoanFlow:
    """Orchestrates recording loans. Same shape as RecordTransactionFlow."""

    def __init__(
        self,
        storage: LoanStorageInterface,
        validator: Optional[LoanFormValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._validator = validator or LoanFormValidator()
        self._audit_logger = audit_logger

    async def submit(
        self,
        form: LoanForm,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[ValidationResult, Optional[Loan], str]:
        correlation_id = correlation_id or create_correlation_id()

        result = self._validator.validate(form)
        message = get_user_friendly_summary(result)

        if not result.is_valid:
            if self._audit_logger:
                await self._audit_logger.log_form_rejected(
                    form=result.form,
                    issues=result.issues_as_dicts(),
                    correlation_id=correlation_id,
                )
            return result, None, message

        try:
            saved = await self._storage.save_loan(result.record)
        except Exception as e:
            if self._audit_logger:
                await self._audit_logger.log_external_service_error(
                    service="loan_storage",
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise

        if self._audit_logger:
            await self._audit_logger.log_loan_recorded(
                loan_id=saved.id,
                borrower=saved.borrower_name,
                amount=str(saved.loan_amount),
                correlation_id=correlation_id,
            )

        return result, saved, message


class BalanceSheetFlow:
    """
    Orchestrates the live balance sheet.

    The feed pushes complete transaction sets into the service; the
    presentation layer reads `state` and may export the current
    snapshot as CSV or to a Google Sheets worksheet.
    """

    def __init__(
        self,
        feed: TransactionFeed,
        service: Optional[BalanceSheetService] = None,
        audit_logger: Optional[AuditLogger] = None,
        sheets_exporter: Optional[GoogleSheetsSnapshotExporter] = None,
    ):
        self._feed = feed
        self._audit_logger = audit_logger
        self._service = service or BalanceSheetService(
            aggregator=LedgerAggregator(),
            audit_logger=audit_logger,
        )
        self._sheets_exporter = sheets_exporter

    @property
    def service(self) -> BalanceSheetService:
        return self._service

    @property
    def state(self) -> LedgerState:
        return self._service.state

    def start(self) -> None:
        """Subscribe the service to the feed."""
        self._service.attach(self._feed)

    def stop(self) -> None:
        self._service.detach()

    def _require_snapshot(self) -> LedgerState:
        state = self._service.state
        if not state.has_snapshot:
            raise ExportError("No balance sheet has been built yet")
        if state.is_stale:
            logger.warning(
                "exporting_stale_balance_sheet",
                generation=state.generation,
                last_error=state.last_error,
            )
        return state

    async def export_csv(
        self,
        as_of: Optional[date] = None,
        directory: Optional[Path] = None,
        include_metrics: bool = False,
        correlation_id: Optional[UUID] = None,
    ) -> Path:
        """
        Write the current snapshot as a CSV summary.

        Raises:
            ExportError: If there is no snapshot or the file can't be written
        """
        state = self._require_snapshot()
        as_of = as_of or date.today()
        directory = directory or get_settings().app.export_path

        path = export_csv(
            state.snapshot,
            directory,
            as_of,
            metrics=state.metrics if include_metrics else None,
        )

        if self._audit_logger:
            await self._audit_logger.log_snapshot_exported(
                destination=str(path),
                row_count=len(snapshot_to_rows(state.snapshot)),
                correlation_id=correlation_id,
            )
        return path

    async def export_to_sheets(
        self,
        as_of: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> int:
        """
        Replace the balance sheet worksheet with the current snapshot.

        Returns the number of rows written.
        """
        if self._sheets_exporter is None:
            raise ExportError("Google Sheets export is not configured")

        state = self._require_snapshot()
        as_of = as_of or date.today()

        try:
            # The exporter is blocking and retries with sleeps; keep it off the loop
            row_count = await asyncio.to_thread(
                self._sheets_exporter.export, state.snapshot, as_of
            )
        except ExportError as e:
            if self._audit_logger:
                await self._audit_logger.log_external_service_error(
                    service="google_sheets",
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise

        if self._audit_logger:
            await self._audit_logger.log_snapshot_exported(
                destination="google_sheets",
                row_count=row_count,
                correlation_id=correlation_id,
            )
        return row_count


class QueryFlow:
    """Runs transaction and loan queries and audits each one."""

    def __init__(
        self,
        executor: QueryExecutor,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._executor = executor
        self._audit_logger = audit_logger

    async def run(
        self,
        query: TransactionQuery,
        correlation_id: Optional[UUID] = None,
    ) -> QueryResult:
        result = await self._executor.execute(query)

        if self._audit_logger:
            await self._audit_logger.log_query_executed(
                query_id=query.query_id,
                query_type=query.query_type,
                result_count=result.result_count,
                correlation_id=correlation_id,
            )
        return result

    async def search_loans(
        self,
        query: LoanQuery,
        correlation_id: Optional[UUID] = None,
    ) -> QueryResult:
        result = await self._executor.search_loans(query)

        if self._audit_logger:
            await self._audit_logger.log_query_executed(
                query_id=query.query_id,
                query_type="loans",
                result_count=result.result_count,
                correlation_id=correlation_id,
            )
        return result

    async def recent_transactions(self, limit: Optional[int] = None) -> list[Transaction]:
        return await self._executor.recent_transactions(limit)


class AppComponents:
    """Everything the presentation layer needs, wired together."""

    def __init__(
        self,
        transactions: RecordTransactionFlow,
        loans: RecordLoanFlow,
        balance_sheet: BalanceSheetFlow,
        queries: QueryFlow,
        feed: TransactionFeed,
        sheets_client: Optional[GoogleSheetsClient] = None,
    ):
        self.transactions = transactions
        self.loans = loans
        self.balance_sheet = balance_sheet
        self.queries = queries
        self.feed = feed
        self.sheets_client = sheets_client


def create_app_components(use_storage: bool = True) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False (or leave Sheets unconfigured) to run
                    on in-memory storage.

    Returns:
        AppComponents; the balance sheet flow is not started yet
    """
    sheets_client = None
    sheets_exporter = None

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            sheets_client.connect()
            transaction_storage = GoogleSheetsTransactionStorage(sheets_client)
            loan_storage = GoogleSheetsLoanStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
            feed = PollingTransactionFeed(transaction_storage)
            sheets_exporter = GoogleSheetsSnapshotExporter(sheets_client)
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None
            use_storage = False

    if not use_storage:
        memory_storage = InMemoryTransactionStorage()
        transaction_storage = memory_storage
        loan_storage = InMemoryLoanStorage()
        audit_logger = AuditLogger()  # Local-only logging
        feed = InMemoryTransactionFeed.from_storage(memory_storage)

    executor = QueryExecutor(transaction_storage, loan_storage)

    return AppComponents(
        transactions=RecordTransactionFlow(transaction_storage, audit_logger=audit_logger),
        loans=RecordLoanFlow(loan_storage, audit_logger=audit_logger),
        balance_sheet=BalanceSheetFlow(
            feed,
            audit_logger=audit_logger,
            sheets_exporter=sheets_exporter,
        ),
        queries=QueryFlow(executor, audit_logger=audit_logger),
        feed=feed,
        sheets_client=sheets_client,
    )
