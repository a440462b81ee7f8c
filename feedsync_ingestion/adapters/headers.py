"""
Header normalization and row assembly shared by every adapter.

A header cell such as ``"Nome do Sócio "`` becomes ``nome_do_socio``.  Repeated
headers get ``_2``, ``_3`` ... suffixes in header order, and the
unsuffixed key is back-filled from the first non-empty duplicate so a
mapper can address either form.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any, Iterable, Sequence

from feedsync_ingestion.domain.identity import strip_accents
from feedsync_ingestion.domain.types import SourceRows

EMPTY_HEADER = "_empty"

_WHITESPACE = re.compile(r"\s+")
_INVALID = re.compile(r"[^a-z0-9_]")
_UNDERSCORES = re.compile(r"_+")


def normalize_header(value: Any) -> str:
    text = strip_accents(cell_to_str(value)).lower()
    text = _WHITESPACE.sub("_", text)
    text = _INVALID.sub("_", text)
    text = _UNDERSCORES.sub("_", text).strip("_")
    return text or EMPTY_HEADER


def cell_to_str(value: Any) -> str:
    """Stringify one cell: None -> '', 3.0 -> '3', dates -> ISO."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value).strip()


def dedupe_headers(headers: Sequence[str]) -> tuple[list[str], dict[str, str]]:
    """
    Suffix repeated headers.

    Returns the unique header list and a map of suffixed key -> base key
    for every duplicate.
    """
    unique: list[str] = []
    duplicates: dict[str, str] = {}
    counts: dict[str, int] = {}
    taken: set[str] = set()
    for header in headers:
        if header not in taken:
            unique.append(header)
            taken.add(header)
            counts.setdefault(header, 1)
            continue
        n = counts.get(header, 1)
        candidate = header
        while candidate in taken:
            n += 1
            candidate = f"{header}_{n}"
        counts[header] = n
        unique.append(candidate)
        taken.add(candidate)
        duplicates[candidate] = header
    return unique, duplicates


def build_rows(
    header_cells: Sequence[Any],
    value_rows: Iterable[Sequence[Any]],
    source_label: str = "",
    first_row_number: int = 2,
) -> SourceRows:
    """
    Assemble SourceRows from a raw header row and raw value rows.

    Missing trailing cells become ``""``; fully blank rows are dropped but
    keep their place in the sheet's row numbering.
    """
    headers, duplicates = dedupe_headers([normalize_header(c) for c in header_cells])

    rows: list[dict[str, str]] = []
    numbers: list[int] = []
    for offset, values in enumerate(value_rows):
        cells = [cell_to_str(v) for v in values]
        if not any(cells):
            continue
        row = {
            header: cells[i] if i < len(cells) else ""
            for i, header in enumerate(headers)
        }
        for key, base in duplicates.items():
            if not row[base] and row[key]:
                row[base] = row[key]
        rows.append(row)
        numbers.append(first_row_number + offset)

    return SourceRows(
        headers=tuple(headers),
        rows=tuple(rows),
        row_numbers=tuple(numbers),
        source_label=source_label,
    )
