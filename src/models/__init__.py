"""
Data Models Package

This package contains all Pydantic models used by the microfinance ledger.
All data flowing through the system must conform to these schemas.
"""

from src.models.transaction import (
    Transaction,
    TransactionStatus,
    TransactionType,
    coerce_amount,
    utc_now,
)
from src.models.loan import (
    Loan,
    LoanStatus,
    LoanType,
)
from src.models.balance import (
    NOT_APPLICABLE,
    Assets,
    BalanceCategory,
    BalanceSnapshot,
    Equity,
    FinancialMetrics,
    LedgerState,
    LedgerStatus,
    Liabilities,
    MetricValue,
)
from src.models.forms import (
    LoanForm,
    TransactionForm,
    ValidationIssue,
    ValidationResult,
)
from src.models.query import (
    LoanQuery,
    QueryResult,
    TransactionQuery,
)
from src.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Transaction models
    "Transaction",
    "TransactionStatus",
    "TransactionType",
    "coerce_amount",
    "utc_now",
    # Loan models
    "Loan",
    "LoanStatus",
    "LoanType",
    # Balance sheet models
    "NOT_APPLICABLE",
    "Assets",
    "BalanceCategory",
    "BalanceSnapshot",
    "Equity",
    "FinancialMetrics",
    "LedgerState",
    "LedgerStatus",
    "Liabilities",
    "MetricValue",
    # Form models
    "LoanForm",
    "TransactionForm",
    "ValidationIssue",
    "ValidationResult",
    # Query models
    "LoanQuery",
    "QueryResult",
    "TransactionQuery",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
