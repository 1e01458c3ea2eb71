"""Balance sheet export package."""

from src.export.csv_export import (
    ExportError,
    export_csv,
    export_filename,
    format_amount,
    render_csv,
    snapshot_to_rows,
)
from src.export.sheets_export import GoogleSheetsSnapshotExporter

__all__ = [
    "ExportError",
    "GoogleSheetsSnapshotExporter",
    "export_csv",
    "export_filename",
    "format_amount",
    "render_csv",
    "snapshot_to_rows",
]
