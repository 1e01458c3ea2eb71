"""
Balance Sheet Aggregation

Turns the complete set of transactions into one BalanceSnapshot and
derives the headline ratios from it.

DESIGN DECISION: The aggregation is a pure replay.
Every call starts from zero (or from the supplied opening balances)
and folds the whole transaction set again. No state survives between
calls, so two calls on the same input always agree, whatever order
the store happened to return the documents in.

Amounts are Decimal, which keeps addition exact and therefore
order-independent.
"""

from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional, Union

import structlog

from src.models.balance import (
    NOT_APPLICABLE,
    ZERO,
    BalanceSnapshot,
    FinancialMetrics,
    MetricValue,
)
from src.models.transaction import Transaction, TransactionType


logger = structlog.get_logger(__name__)

OpeningBalances = Union[BalanceSnapshot, Mapping[str, Any]]


def fold_transaction(snapshot: BalanceSnapshot, transaction: Transaction) -> None:
    """
    Apply one transaction to a snapshot in place.

    Income and Expense move cash at hand and retained earnings;
    Investment moves investments and capital. Any other tag is
    skipped. Negative amounts are not rejected, they just subtract.
    """
    kind = transaction.known_type
    amount = transaction.amount

    if kind is TransactionType.INCOME:
        snapshot.assets.cash_at_hand += amount
        snapshot.equity.retained_earnings += amount
    elif kind is TransactionType.EXPENSE:
        snapshot.assets.cash_at_hand -= amount
        snapshot.equity.retained_earnings -= amount
    elif kind is TransactionType.INVESTMENT:
        snapshot.assets.investments += amount
        snapshot.equity.capital += amount


def compute_totals(snapshot: BalanceSnapshot) -> BalanceSnapshot:
    """
    Recompute every category total from its leaf fields.

    The total field itself is excluded from the sum, so calling this
    repeatedly gives the same result.
    """
    for category in snapshot.categories():
        total = sum(category.leaves().values(), ZERO)
        setattr(category, category.TOTAL_FIELD, total)
    return snapshot


def _ratio(numerator: Decimal, denominator: Decimal) -> MetricValue:
    if denominator == 0:
        return NOT_APPLICABLE
    if numerator == 0:
        # 0 / 1149.50 would carry the divisor's exponent (0E+2)
        return ZERO
    return numerator / denominator


def derive_metrics(snapshot: BalanceSnapshot) -> FinancialMetrics:
    """
    Derive current ratio, quick ratio, debt-to-equity and working capital.

    Ratios with a zero denominator are NOT_APPLICABLE. When there are
    neither liabilities nor equity there is nothing to measure, and
    working capital is NOT_APPLICABLE as well.
    """
    total_assets = snapshot.assets.total_assets
    total_liabilities = snapshot.liabilities.total_liabilities
    total_equity = snapshot.equity.total_equity
    quick_assets = snapshot.assets.cash_at_hand + snapshot.assets.cash_at_bank

    if total_liabilities == 0 and total_equity == 0:
        working_capital: MetricValue = NOT_APPLICABLE
    else:
        working_capital = total_assets - total_liabilities

    return FinancialMetrics(
        current_ratio=_ratio(total_assets, total_liabilities),
        quick_ratio=_ratio(quick_assets, total_liabilities),
        debt_to_equity=_ratio(total_liabilities, total_equity),
        working_capital=working_capital,
    )


def empty_snapshot(opening: Optional[OpeningBalances] = None) -> BalanceSnapshot:
    """
    A snapshot with every leaf at zero, or seeded from opening balances.

    Opening balances may be a BalanceSnapshot or a nested mapping such
    as {"liabilities": {"loans": 200}}. They are copied, never shared.
    """
    if opening is None:
        return BalanceSnapshot()
    if isinstance(opening, BalanceSnapshot):
        return opening.model_copy(deep=True)
    return BalanceSnapshot.model_validate(opening)


def build_snapshot(
    transactions: Iterable[Transaction],
    opening: Optional[OpeningBalances] = None,
) -> tuple[BalanceSnapshot, FinancialMetrics]:
    """
    Build a balance sheet from the complete transaction set.

    Returns (snapshot, metrics).
    """
    snapshot = empty_snapshot(opening)

    folded = 0
    skipped = 0
    for transaction in transactions:
        if transaction.known_type is None:
            skipped += 1
            continue
        fold_transaction(snapshot, transaction)
        folded += 1

    compute_totals(snapshot)
    metrics = derive_metrics(snapshot)

    logger.debug(
        "snapshot_built",
        folded=folded,
        skipped=skipped,
        total_assets=str(snapshot.assets.total_assets),
        total_liabilities=str(snapshot.liabilities.total_liabilities),
        total_equity=str(snapshot.equity.total_equity),
    )
    return snapshot, metrics


class LedgerAggregator:
    """
    Stateless balance sheet builder.

    Holds only configuration (opening balances). Each build() is an
    independent replay of the transaction set it is given.
    """

    def __init__(self, opening: Optional[OpeningBalances] = None):
        self._opening = empty_snapshot(opening) if opening is not None else None

    def build(
        self,
        transactions: Iterable[Transaction],
    ) -> tuple[BalanceSnapshot, FinancialMetrics]:
        return build_snapshot(transactions, opening=self._opening)
