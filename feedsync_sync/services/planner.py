"""
Reconciliation planner -- pure decision per mapped row.

``plan()`` never touches storage: the same function backs the preview
engine and the live executor.  Field-level parse failures never reach
here (the mapper omits them); ``InvalidPlan`` is reserved for structural
defects such as an empty identity key or a negative amount.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from typing import Any

from feedsync_ingestion.domain.identity import deterministic_customer_code
from feedsync_ingestion.domain.types import MappedRow
from feedsync_ingestion.mapping.engine import table_for
from feedsync_kernel.domain.values import FeedVariant
from feedsync_sync.domain.types import (
    CreatePlan,
    ExistingMatch,
    FieldChange,
    InvalidPlan,
    RowDiff,
    RowError,
    RowPlan,
    UnchangedPlan,
    UpdatePlan,
)


def _canonical(snapshots: Iterable[dict[str, Any]]) -> list[str]:
    """Order-insensitive, JSON-normalized form of a child collection."""
    return sorted(json.dumps(s, sort_keys=True, default=str) for s in snapshots)


def validate(row: int, mapped: MappedRow) -> tuple[RowError, ...]:
    errors: list[RowError] = []
    if not mapped.client.normalized_name:
        errors.append(RowError(row, "Company name normalizes to an empty key", "display_name"))
    for item in mapped.line_items:
        if not isinstance(item.value_cents, int) or item.value_cents < 0:
            errors.append(
                RowError(row, f"Invalid amount {item.value_cents!r} for {item.kind.value}", "value_cents"),
            )
    for partner in mapped.partners:
        if not 0 <= partner.percentage <= 100:
            errors.append(
                RowError(row, f"Partner percentage out of range for {partner.full_name}", "percentage"),
            )
    return tuple(errors)


def diff_against(
    mapped: MappedRow,
    match: ExistingMatch,
    variant: FeedVariant | str,
) -> RowDiff:
    """Compare a mapped row with the persisted state the feed owns."""
    table = table_for(variant)
    desired = mapped.client_snapshot()
    keep = table.keep_existing_if_empty

    changes: list[FieldChange] = []
    for name in table.owned_fields:
        new = desired.get(name)
        if name in keep and new is None:
            continue
        old = match.snapshot.get(name)
        if old != new:
            changes.append(FieldChange(name, old, new))

    items_changed = _canonical(i.to_snapshot() for i in mapped.line_items) != _canonical(
        match.line_items
    )
    partners_changed = _canonical(p.to_snapshot() for p in mapped.partners) != _canonical(
        match.partners
    )
    return RowDiff(
        fields=tuple(changes),
        items_changed=items_changed,
        partners_changed=partners_changed,
    )


def plan(
    row: int,
    mapped: MappedRow,
    match: ExistingMatch | None,
    variant: FeedVariant | str,
    code_prefix: str,
) -> RowPlan:
    """Decide create / update / unchanged / invalid for one mapped row."""
    errors = validate(row, mapped)
    if errors:
        return InvalidPlan(row=row, errors=errors, mapped=mapped)

    if match is None:
        code = mapped.client.customer_code or deterministic_customer_code(
            code_prefix, mapped.client.normalized_name,
        )
        return CreatePlan(row=row, mapped=mapped, customer_code=code)

    diff = diff_against(mapped, match, variant)
    if diff.has_changes:
        return UpdatePlan(
            row=row,
            mapped=mapped,
            client_id=match.client_id,
            customer_code=match.customer_code,
            diff=diff,
        )
    return UnchangedPlan(
        row=row, mapped=mapped, client_id=match.client_id, customer_code=match.customer_code,
    )
