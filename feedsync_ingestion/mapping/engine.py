"""
Row mapper: pure transformation from one normalized raw row to a
``MappedRow`` (or None).  ZERO I/O.

A row whose display-name aliases are all blank has no identity; it maps to
None and is excluded from the run without being counted as an error.
Individual fields that fail to parse are omitted, never raised.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from feedsync_ingestion.domain.identity import normalize_company_name
from feedsync_ingestion.domain.types import ClientPatch, LineItem, MappedRow
from feedsync_ingestion.mapping.coercers import pick
from feedsync_ingestion.mapping.fields import FeedFieldTable
from feedsync_ingestion.mapping.posvenda import POSVENDA_TABLE
from feedsync_ingestion.mapping.tax_form import TAX_FORM_TABLE
from feedsync_kernel.domain.values import FeedVariant

FEED_TABLES: dict[FeedVariant, FeedFieldTable] = {
    FeedVariant.POSVENDA: POSVENDA_TABLE,
    FeedVariant.TAX_FORM: TAX_FORM_TABLE,
}


def table_for(variant: FeedVariant | str) -> FeedFieldTable:
    return FEED_TABLES[FeedVariant(variant)]


def map_with_table(row: Mapping[str, str], table: FeedFieldTable) -> MappedRow | None:
    """Apply one feed table to one row."""
    display_name = pick(row, *table.name.aliases)
    if not display_name:
        return None

    values: dict[str, Any] = {spec.name: spec.extract(row) for spec in table.client_fields}
    if table.profile is not None:
        values["tax_profile"] = table.profile(row, display_name) or None

    client = ClientPatch(
        display_name=display_name,
        normalized_name=normalize_company_name(display_name),
        customer_code=pick(row, *table.code.aliases) or None,
        **values,
    )

    line_items: list[LineItem] = []
    for spec in table.money_fields:
        item = spec.extract(row)
        if item is not None:
            line_items.append(item)

    meta: dict[str, Any] = {}
    for spec in table.meta_fields:
        value = spec.extract(row)
        if value:
            meta[spec.name] = value

    return MappedRow(
        client=client,
        line_items=tuple(line_items),
        partners=table.partners.extract(row) if table.partners else (),
        meta=meta,
    )


def map_row(row: Mapping[str, str], variant: FeedVariant | str) -> MappedRow | None:
    """Map one row of ``variant``; None when the row has no company name."""
    return map_with_table(row, table_for(variant))
