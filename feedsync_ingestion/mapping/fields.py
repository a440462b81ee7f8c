"""
Declarative field tables.

A feed variant is described as data: for each logical field an ordered
alias list of normalized header names, plus a coercion kind.  The row
mapper walks the table; adding a feed variant means adding a table, not
new mapping code.  ZERO I/O.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from feedsync_ingestion.domain.types import LineItem, Partner
from feedsync_ingestion.mapping.coercers import (
    join_present,
    match_choice,
    parse_bool,
    parse_cents,
    parse_date,
    parse_int,
    parse_percentage,
    pick,
)
from feedsync_kernel.domain.values import BillingPeriod, FeedVariant, LineItemKind, PartnerRole

Row = Mapping[str, str]


class FieldKind(str, Enum):
    TEXT = "text"
    BOOL = "bool"
    DATE = "date"
    CHOICE = "choice"


# -----------------------------------------------------------------------------
# Client fields
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class FieldSpec:
    """One logical client field and the headers it may come from."""

    name: str
    aliases: tuple[str, ...]
    kind: FieldKind = FieldKind.TEXT
    choices: tuple[str, ...] = ()
    # When the row leaves the field empty, the stored value is kept.
    keep_existing_if_empty: bool = False

    def extract(self, row: Row) -> Any:
        raw = pick(row, *self.aliases)
        if self.kind == FieldKind.BOOL:
            return parse_bool(raw)
        if self.kind == FieldKind.DATE:
            return parse_date(raw)
        if self.kind == FieldKind.CHOICE:
            return match_choice(raw, self.choices)
        return raw or None


# -----------------------------------------------------------------------------
# Line items
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class MoneyFieldSpec:
    """
    A monetary column family that yields at most one line item.

    ``description_parts`` is a list of alias groups; the first non-blank
    value of each group is joined with `` · ``.  ``derive`` may rewrite the
    item from the rest of the row (e.g. structured address fields).
    """

    kind: LineItemKind
    value_aliases: tuple[str, ...]
    description_parts: tuple[tuple[str, ...], ...]
    default_description: str
    meta_fields: tuple[tuple[str, tuple[str, ...]], ...] = ()
    billing_period: BillingPeriod | None = None
    derive: Callable[[Row, LineItem], LineItem] | None = None

    def extract(self, row: Row) -> LineItem | None:
        """Build the item, or None when the value is missing, unreadable or negative."""
        value_cents = parse_cents(pick(row, *self.value_aliases))
        if value_cents is None or value_cents < 0:
            return None

        description = join_present([pick(row, *group) for group in self.description_parts])
        meta = {}
        for key, aliases in self.meta_fields:
            value = pick(row, *aliases)
            if value:
                meta[key] = value

        item = LineItem(
            kind=self.kind,
            description=description or self.default_description,
            value_cents=value_cents,
            meta=meta or None,
            billing_period=self.billing_period.value if self.billing_period else None,
        )
        if self.derive is not None:
            item = self.derive(row, item)
        return item


# -----------------------------------------------------------------------------
# Partners
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class PartnerFamilySpec:
    """
    Indexed partner columns (index 1 is the principal).

    Templates contain ``{i}`` and are expanded per index.  A name is built
    from alias groups whose first non-blank values are joined by a space.
    """

    principal_name_parts: tuple[tuple[str, ...], ...]
    principal_name_fallback: tuple[str, ...]
    name_templates: tuple[tuple[str, ...], ...]
    percentage_templates: tuple[str, ...] = ()
    phone_templates: tuple[tuple[str, ...], ...] = ()
    count_aliases: tuple[str, ...] = ()
    max_partners: int = 5
    principal_default_percentage: float = 100.0
    secondary_default_percentage: float = 0.0

    def limit(self, row: Row) -> int:
        """Number of partner slots to read, clamped to 1..max_partners."""
        count = parse_int(pick(row, *self.count_aliases)) if self.count_aliases else None
        if not count:
            count = self.max_partners
        return min(self.max_partners, max(1, count))

    def extract(self, row: Row) -> tuple[Partner, ...]:
        partners: list[Partner] = []
        limit = self.limit(row)

        principal = " ".join(
            part for part in (pick(row, *group) for group in self.principal_name_parts) if part
        ).strip() or pick(row, *self.principal_name_fallback)
        if principal:
            partners.append(self._partner(row, 1, principal, PartnerRole.PRINCIPAL))

        for i in range(2, limit + 1):
            name = " ".join(
                part
                for part in (
                    pick(row, *(t.format(i=i) for t in group)) for group in self.name_templates
                )
                if part
            ).strip()
            if name:
                partners.append(self._partner(row, i, name, PartnerRole.SECONDARY))
        return tuple(partners)

    def _partner(self, row: Row, index: int, name: str, role: PartnerRole) -> Partner:
        percentage = parse_percentage(
            pick(row, *(t.format(i=index) for t in self.percentage_templates))
        )
        if percentage is None:
            percentage = (
                self.principal_default_percentage
                if role == PartnerRole.PRINCIPAL
                else self.secondary_default_percentage
            )
        phone = ""
        for group in self.phone_templates:
            phone = pick(row, *(t.format(i=index) for t in group))
            if phone:
                break
        return Partner(full_name=name, role=role, percentage=percentage, phone=phone or None)


# -----------------------------------------------------------------------------
# Feed table
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class FeedFieldTable:
    """Everything the mapper needs to read one feed variant."""

    variant: FeedVariant
    name: FieldSpec
    code: FieldSpec
    client_fields: tuple[FieldSpec, ...] = ()
    money_fields: tuple[MoneyFieldSpec, ...] = ()
    partners: PartnerFamilySpec | None = None
    meta_fields: tuple[FieldSpec, ...] = ()
    # Builds ``tax_profile`` from the row and the display name.
    profile: Callable[[Row, str], dict[str, Any]] | None = None

    @property
    def owned_fields(self) -> tuple[str, ...]:
        """Client fields this feed writes (and compares on update)."""
        names = ["display_name", "normalized_name"]
        names.extend(spec.name for spec in self.client_fields)
        if self.profile is not None:
            names.append("tax_profile")
        if self.meta_fields:
            names.append("meta")
        return tuple(names)

    @property
    def keep_existing_if_empty(self) -> frozenset[str]:
        return frozenset(s.name for s in self.client_fields if s.keep_existing_if_empty)
