"""
CSV source adapter.

Reads a local file with ``csv.reader``; the first row is the header.
Configurable delimiter and encoding; BOM handled via utf-8-sig when the
encoding is utf-8.
"""

from __future__ import annotations

import csv
from pathlib import Path

from feedsync_config.schema import SourceConfig
from feedsync_ingestion.adapters.base import source_label
from feedsync_ingestion.adapters.headers import build_rows
from feedsync_ingestion.domain.types import SourceRows
from feedsync_kernel.exceptions import SourceFetchError
from feedsync_kernel.logging_config import get_logger

logger = get_logger("ingestion.csv")


def _get_encoding(source: SourceConfig) -> str:
    if source.encoding.lower() in ("utf-8", "utf8"):
        return "utf-8-sig"  # Strip BOM if present
    return source.encoding


class CsvSourceAdapter:
    """Read a CSV file into SourceRows."""

    def fetch(self, source: SourceConfig) -> SourceRows:
        label = source_label(source)
        if not source.path:
            raise SourceFetchError(label, "path is required for csv sources")

        path = Path(source.path)
        try:
            with path.open("r", encoding=_get_encoding(source), newline="") as f:
                reader = csv.reader(f, delimiter=source.delimiter)
                header = next(reader, None)
                if header is None:
                    raise SourceFetchError(label, "file is empty")
                rows = build_rows(header, reader, source_label=label)
        except (OSError, UnicodeDecodeError, csv.Error) as exc:
            raise SourceFetchError(label, str(exc)) from exc

        logger.info(
            "source_fetched",
            extra={"source": label, "row_count": len(rows), "column_count": len(rows.headers)},
        )
        return rows
