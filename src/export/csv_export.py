"""
Balance Sheet Export

Flattens a snapshot into (category, field, value) rows and renders
the CSV summary users share from the balance sheet screen:

    Balance Sheet Summary - 2024-05-01
    <blank>
    ASSETS
    cashAtHand,1000
    ...
    totalAssets,1000
    <blank>
    LIABILITIES
    ...

Writing the file and handing it to a share sheet is the caller's job;
export_csv() only covers the "write it to a directory" case.
"""

import csv
import io
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Optional

import structlog

from src.models.balance import BalanceSnapshot, FinancialMetrics


logger = structlog.get_logger(__name__)

ExportRow = tuple[str, str, Decimal]

METRIC_KEYS = ["currentRatio", "quickRatio", "debtToEquity", "workingCapital"]


class ExportError(Exception):
    """Export could not be written."""
    pass


def format_amount(value: Decimal) -> str:
    """Plain decimal notation, never scientific."""
    return f"{value:f}"


def snapshot_to_rows(snapshot: BalanceSnapshot) -> list[ExportRow]:
    """
    One row per field, totals included, in balance sheet order.

    Category labels are lower case: assets, liabilities, equity.
    """
    rows = []
    for category in snapshot.categories():
        for key, value in category.entries():
            rows.append((category.LABEL, key, value))
    return rows


def render_csv(
    snapshot: BalanceSnapshot,
    as_of: date,
    metrics: Optional[FinancialMetrics] = None,
) -> str:
    """
    Render the sectioned CSV summary.

    When metrics are given a METRICS section is appended; ratios that
    are not applicable are written as n/a.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")

    writer.writerow([f"Balance Sheet Summary - {as_of.isoformat()}"])

    current = None
    for label, key, value in snapshot_to_rows(snapshot):
        if label != current:
            writer.writerow([])
            writer.writerow([label.upper()])
            current = label
        writer.writerow([key, format_amount(value)])

    if metrics is not None:
        writer.writerow([])
        writer.writerow(["METRICS"])
        dumped = metrics.model_dump(by_alias=True)
        for key in METRIC_KEYS:
            value = dumped[key]
            writer.writerow([key, value if isinstance(value, str) else format_amount(value)])

    return buffer.getvalue()


def export_filename(as_of: date) -> str:
    return f"balance_sheet_{as_of.isoformat()}.csv"


def export_csv(
    snapshot: BalanceSnapshot,
    directory: Path,
    as_of: date,
    metrics: Optional[FinancialMetrics] = None,
) -> Path:
    """
    Write the CSV summary to directory/balance_sheet_<date>.csv.

    Raises:
        ExportError: If the file cannot be written
    """
    path = Path(directory) / export_filename(as_of)
    content = render_csv(snapshot, as_of, metrics)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    except OSError as e:
        raise ExportError(f"Failed to write balance sheet export: {e}")

    logger.info("balance_sheet_exported", path=str(path), bytes=len(content))
    return path
