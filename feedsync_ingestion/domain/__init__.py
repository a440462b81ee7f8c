"""Pure ingestion DTOs and identity helpers. ZERO I/O."""

from feedsync_ingestion.domain.identity import (
    deterministic_customer_code,
    normalize_company_name,
    strip_accents,
)
from feedsync_ingestion.domain.types import (
    ClientPatch,
    LineItem,
    MappedRow,
    Partner,
    SourceRows,
)

__all__ = [
    "ClientPatch",
    "LineItem",
    "MappedRow",
    "Partner",
    "SourceRows",
    "deterministic_customer_code",
    "normalize_company_name",
    "strip_accents",
]
