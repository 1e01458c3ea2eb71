"""
Balance sheet export to a Google Sheets worksheet.

The worksheet is rewritten on every export: a header row, then the
flat (category, field, value) rows. The rows are written in place with
one update call, so a failed export leaves the previous export intact.
"""

from datetime import date
from typing import Optional

from tenacity import retry, stop_after_attempt, wait_exponential

from src.export.csv_export import ExportError, format_amount, snapshot_to_rows
from src.models.balance import BalanceSnapshot
from src.services.storage.google_sheets import GoogleSheetsClient


EXPORT_COLUMNS = ["category", "field", "value", "as_of"]


class GoogleSheetsSnapshotExporter:

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def build_rows(self, snapshot: BalanceSnapshot, as_of: date) -> list[list[str]]:
        stamp = as_of.isoformat()
        return [EXPORT_COLUMNS] + [
            [label, key, format_amount(value), stamp]
            for label, key, value in snapshot_to_rows(snapshot)
        ]

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def export(self, snapshot: BalanceSnapshot, as_of: date) -> int:
        """
        Replace the worksheet contents with this snapshot.

        Returns the number of data rows written.
        """
        rows = self.build_rows(snapshot, as_of)
        try:
            sheet = self._client.get_worksheet(
                self._client.settings.balance_sheet_name, EXPORT_COLUMNS
            )
            sheet.update(values=rows, range_name="A1", value_input_option="RAW")
            # Drop anything left below the new rows
            sheet.batch_clear([f"A{len(rows) + 1}:D"])
        except Exception as e:
            raise ExportError(f"Failed to export balance sheet to Google Sheets: {e}")
        return len(rows) - 1
