"""Source adapters (source I/O only, no DB)."""

from feedsync_ingestion.adapters.base import SourceAdapter, source_label
from feedsync_ingestion.adapters.csv_adapter import CsvSourceAdapter
from feedsync_ingestion.adapters.gsheets_adapter import GoogleSheetsSourceAdapter
from feedsync_ingestion.adapters.headers import build_rows, normalize_header
from feedsync_ingestion.adapters.xlsx_adapter import XlsxSourceAdapter

ADAPTERS: dict[str, type] = {
    "google_sheets": GoogleSheetsSourceAdapter,
    "csv": CsvSourceAdapter,
    "xlsx": XlsxSourceAdapter,
}


def adapter_for(kind: str) -> SourceAdapter:
    """Instantiate the default adapter for a source kind."""
    try:
        return ADAPTERS[kind]()
    except KeyError:
        raise ValueError(f"No source adapter for kind {kind!r}") from None


__all__ = [
    "ADAPTERS",
    "CsvSourceAdapter",
    "GoogleSheetsSourceAdapter",
    "SourceAdapter",
    "XlsxSourceAdapter",
    "adapter_for",
    "build_rows",
    "normalize_header",
    "source_label",
]
