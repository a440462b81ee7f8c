"""
feedsync_ingestion.domain.types -- frozen DTOs produced by adapters and
the row mapper.  ZERO I/O.

``to_snapshot()`` on each DTO returns the same JSON-safe shape the
matching ORM model returns, so the planner can compare a mapped row with
persisted state field by field.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterator

from feedsync_kernel.domain.values import LineItemKind, PartnerRole, percent_to_basis_points


# =============================================================================
# Source rows
# =============================================================================


@dataclass(frozen=True)
class SourceRows:
    """
    Header-normalized rows fetched from one source.

    ``row_numbers[i]`` is the 1-based sheet row of ``rows[i]`` (the header
    is row 1, so the first data row is 2).  Blank rows are dropped by the
    adapter but numbering follows the sheet.
    """

    headers: tuple[str, ...]
    rows: tuple[dict[str, str], ...]
    row_numbers: tuple[int, ...] = ()
    source_label: str = ""

    def __post_init__(self) -> None:
        if not self.row_numbers:
            object.__setattr__(
                self, "row_numbers", tuple(range(2, len(self.rows) + 2)),
            )

    def __len__(self) -> int:
        return len(self.rows)

    def numbered(self) -> Iterator[tuple[int, dict[str, str]]]:
        """Yield ``(row_number, row)`` in source order."""
        return zip(self.row_numbers, self.rows)


# =============================================================================
# Mapped rows
# =============================================================================


@dataclass(frozen=True)
class ClientPatch:
    """Client fields extracted from one row."""

    display_name: str
    normalized_name: str
    customer_code: str | None = None
    payment_date: date | None = None
    commercial: str | None = None
    sdr: str | None = None
    business_type: str | None = None
    payment_method: str | None = None
    anonymous: bool = False
    holding: bool = False
    affiliate: bool = False
    express: bool = False
    notes: str | None = None
    tax_profile: dict[str, Any] | None = None

    def to_snapshot(self) -> dict[str, Any]:
        return {
            "display_name": self.display_name,
            "normalized_name": self.normalized_name,
            "customer_code": self.customer_code,
            "payment_date": self.payment_date.isoformat() if self.payment_date else None,
            "commercial": self.commercial,
            "sdr": self.sdr,
            "business_type": self.business_type,
            "payment_method": self.payment_method,
            "anonymous": self.anonymous,
            "holding": self.holding,
            "affiliate": self.affiliate,
            "express": self.express,
            "notes": self.notes,
            "tax_profile": self.tax_profile,
        }


@dataclass(frozen=True)
class LineItem:
    """A billable unit derived from one monetary column family."""

    kind: LineItemKind
    description: str
    value_cents: int
    meta: dict[str, Any] | None = None
    billing_period: str | None = None
    address_provider: str | None = None
    address_line1: str | None = None
    address_line2: str | None = None
    ste_number: str | None = None
    llc_state: str | None = None
    llc_category: str | None = None

    @property
    def sort_key(self) -> str:
        return f"{self.kind.value}-{self.description}"

    def to_snapshot(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "description": self.description,
            "value_cents": self.value_cents,
            "meta": self.meta,
            "billing_period": self.billing_period,
            "address_provider": self.address_provider,
            "address_line1": self.address_line1,
            "address_line2": self.address_line2,
            "ste_number": self.ste_number,
            "llc_state": self.llc_state,
            "llc_category": self.llc_category,
        }


@dataclass(frozen=True)
class Partner:
    """An ownership record; ``percentage`` is in [0, 100]."""

    full_name: str
    role: PartnerRole
    percentage: float
    phone: str | None = None

    @property
    def basis_points(self) -> int:
        return percent_to_basis_points(self.percentage)

    def to_snapshot(self) -> dict[str, Any]:
        return {
            "full_name": self.full_name,
            "role": self.role.value,
            "percentage_basis_points": self.basis_points,
            "phone": self.phone,
        }


@dataclass(frozen=True)
class MappedRow:
    """Output of the row mapper for a row with a usable identity."""

    client: ClientPatch
    line_items: tuple[LineItem, ...] = ()
    partners: tuple[Partner, ...] = ()
    meta: dict[str, Any] = field(default_factory=dict)

    def client_snapshot(self) -> dict[str, Any]:
        """Client snapshot as it would be persisted (row meta included)."""
        snapshot = self.client.to_snapshot()
        snapshot["meta"] = dict(self.meta) if self.meta else None
        return snapshot
