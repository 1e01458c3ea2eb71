"""
Balance Sheet Models

A BalanceSnapshot is a point-in-time balance sheet rebuilt from the
complete transaction set. It has no identity and is never patched
incrementally: every feed emission produces a brand new one.

Each category (assets, liabilities, equity) holds named leaf amounts
plus one derived total. The total is written only by
compute_totals() in src.ledger.aggregator.

Field aliases reproduce the store / export keys
(cashAtHand, accounts_payable, totalAssets, ...).
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import ClassVar, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# Marker for a ratio whose denominator is zero.
NOT_APPLICABLE = "n/a"

MetricValue = Union[Decimal, Literal["n/a"]]

ZERO = Decimal("0")


# =============================================================================
# CATEGORIES
# =============================================================================

class BalanceCategory(BaseModel):
    """
    Base class for one balance sheet category.

    Subclasses declare their leaf fields and name the field that
    holds the derived total in TOTAL_FIELD.
    """
    model_config = ConfigDict(populate_by_name=True)

    TOTAL_FIELD: ClassVar[str] = ""
    LABEL: ClassVar[str] = ""

    @classmethod
    def leaf_names(cls) -> list[str]:
        """Attribute names of the leaf fields, in declaration order."""
        return [name for name in cls.model_fields if name != cls.TOTAL_FIELD]

    def leaves(self) -> dict[str, Decimal]:
        """Leaf values keyed by attribute name (total excluded)."""
        return {name: getattr(self, name) for name in self.leaf_names()}

    @property
    def total(self) -> Decimal:
        return getattr(self, self.TOTAL_FIELD)

    def entries(self, include_total: bool = True) -> list[tuple[str, Decimal]]:
        """
        (key, value) pairs using the store keys, leaves first.

        This is the order the export and the summary cards use.
        """
        pairs = []
        for name, field in type(self).model_fields.items():
            if name == self.TOTAL_FIELD and not include_total:
                continue
            pairs.append((field.alias or name, getattr(self, name)))
        return pairs


class Assets(BalanceCategory):
    TOTAL_FIELD: ClassVar[str] = "total_assets"
    LABEL: ClassVar[str] = "assets"

    cash_at_hand: Decimal = Field(default=ZERO, alias="cashAtHand")
    cash_at_bank: Decimal = Field(default=ZERO, alias="cashAtBank")
    debtors: Decimal = Field(default=ZERO, alias="debtors")
    investments: Decimal = Field(default=ZERO, alias="investments")
    total_assets: Decimal = Field(default=ZERO, alias="totalAssets")


class Liabilities(BalanceCategory):
    TOTAL_FIELD: ClassVar[str] = "total_liabilities"
    LABEL: ClassVar[str] = "liabilities"

    loans: Decimal = Field(default=ZERO, alias="loans")
    accounts_payable: Decimal = Field(default=ZERO, alias="accounts_payable")
    short_term_debt: Decimal = Field(default=ZERO, alias="short_term_debt")
    total_liabilities: Decimal = Field(default=ZERO, alias="totalLiabilities")


class Equity(BalanceCategory):
    TOTAL_FIELD: ClassVar[str] = "total_equity"
    LABEL: ClassVar[str] = "equity"

    capital: Decimal = Field(default=ZERO, alias="capital")
    retained_earnings: Decimal = Field(default=ZERO, alias="retainedEarnings")
    reserves: Decimal = Field(default=ZERO, alias="reserves")
    total_equity: Decimal = Field(default=ZERO, alias="totalEquity")


class BalanceSnapshot(BaseModel):
    """The three categories of one balance sheet."""
    model_config = ConfigDict(populate_by_name=True)

    assets: Assets = Field(default_factory=Assets)
    liabilities: Liabilities = Field(default_factory=Liabilities)
    equity: Equity = Field(default_factory=Equity)

    def categories(self) -> list[BalanceCategory]:
        """Categories in balance sheet order."""
        return [self.assets, self.liabilities, self.equity]


# =============================================================================
# METRICS
# =============================================================================

class FinancialMetrics(BaseModel):
    """
    Ratios derived from a snapshot.

    A value is either a Decimal or NOT_APPLICABLE when its
    denominator is zero. Never inf, never NaN.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    current_ratio: MetricValue = Field(alias="currentRatio")
    quick_ratio: MetricValue = Field(alias="quickRatio")
    debt_to_equity: MetricValue = Field(alias="debtToEquity")
    working_capital: MetricValue = Field(alias="workingCapital")

    def is_applicable(self, name: str) -> bool:
        return getattr(self, name) != NOT_APPLICABLE

    def display(self, name: str, places: int = 2) -> str:
        """Format one metric for a summary card."""
        value = getattr(self, name)
        if value == NOT_APPLICABLE:
            return NOT_APPLICABLE
        return f"{value:,.{places}f}"


# =============================================================================
# PRESENTATION STATE
# =============================================================================

class LedgerStatus(str, Enum):
    """Freshness of the data shown to the user."""
    EMPTY = "empty"    # No emission received yet
    FRESH = "fresh"    # Built from the latest emission
    STALE = "stale"    # Feed failed after the last good build


class LedgerState(BaseModel):
    """
    What the presentation layer reads.

    On feed errors the snapshot and metrics are kept and the status
    turns STALE; they are never cleared.
    """
    model_config = ConfigDict(frozen=True)

    status: LedgerStatus = LedgerStatus.EMPTY
    snapshot: Optional[BalanceSnapshot] = None
    metrics: Optional[FinancialMetrics] = None
    transaction_count: int = Field(default=0, ge=0)
    generation: int = Field(default=0, ge=0)
    updated_at: Optional[datetime] = None
    last_error: Optional[str] = None

    @property
    def is_stale(self) -> bool:
        return self.status == LedgerStatus.STALE

    @property
    def has_snapshot(self) -> bool:
        return self.snapshot is not None
