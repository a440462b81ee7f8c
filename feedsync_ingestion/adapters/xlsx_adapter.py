"""
XLSX source adapter.

Opens the workbook with openpyxl in read-only, data-only mode.  The sheet
is selected by ``sheet_name`` (a 0-based index when numeric, else a title)
and defaults to the active sheet.  The first row is the header.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any
from zipfile import BadZipFile

from feedsync_config.schema import SourceConfig
from feedsync_ingestion.adapters.base import source_label
from feedsync_ingestion.adapters.headers import build_rows
from feedsync_ingestion.domain.types import SourceRows
from feedsync_kernel.exceptions import SourceFetchError
from feedsync_kernel.logging_config import get_logger

logger = get_logger("ingestion.xlsx")


class XlsxSourceAdapter:
    """Read one worksheet of an .xlsx workbook into SourceRows."""

    def fetch(self, source: SourceConfig) -> SourceRows:
        try:
            import openpyxl
        except ImportError as e:
            raise ImportError("XLSX support requires openpyxl. Install with: pip install openpyxl") from e
        from openpyxl.utils.exceptions import InvalidFileException

        label = source_label(source)
        if not source.path:
            raise SourceFetchError(label, "path is required for xlsx sources")

        try:
            wb = openpyxl.load_workbook(Path(source.path), read_only=True, data_only=True)
        except (OSError, BadZipFile, InvalidFileException, KeyError) as exc:
            raise SourceFetchError(label, str(exc)) from exc

        try:
            sheet = self._get_sheet(wb, source, label)
            raw = sheet.iter_rows(values_only=True)
            header = next(raw, None)
            if header is None:
                raise SourceFetchError(label, "worksheet is empty")
            rows = build_rows(header, raw, source_label=label)
        finally:
            wb.close()

        logger.info(
            "source_fetched",
            extra={"source": label, "row_count": len(rows), "column_count": len(rows.headers)},
        )
        return rows

    def _get_sheet(self, wb: Any, source: SourceConfig, label: str) -> Any:
        sheet_ref = source.sheet_name
        if not sheet_ref:
            return wb.active
        if sheet_ref.isdigit():
            index = int(sheet_ref)
            if index >= len(wb.worksheets):
                raise SourceFetchError(label, f"sheet index {index} out of range")
            return wb.worksheets[index]
        if sheet_ref not in wb.sheetnames:
            raise SourceFetchError(label, f"sheet {sheet_ref!r} not found")
        return wb[sheet_ref]
