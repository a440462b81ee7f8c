"""Row mapping: declarative feed tables and the pure mapper."""

from feedsync_ingestion.mapping.engine import FEED_TABLES, map_row, map_with_table, table_for
from feedsync_ingestion.mapping.fields import (
    FeedFieldTable,
    FieldKind,
    FieldSpec,
    MoneyFieldSpec,
    PartnerFamilySpec,
)

__all__ = [
    "FEED_TABLES",
    "FeedFieldTable",
    "FieldKind",
    "FieldSpec",
    "MoneyFieldSpec",
    "PartnerFamilySpec",
    "map_row",
    "map_with_table",
    "table_for",
]
