"""
feedsync_sync.domain.types -- frozen DTOs for planning and run results.

ZERO I/O.  Plans are a closed set of variants (Create, Update, Unchanged,
Invalid); each carries its ``action`` as a class attribute.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar
from uuid import UUID

from feedsync_ingestion.domain.types import MappedRow


# =============================================================================
# Enums
# =============================================================================


class PlanAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    UNCHANGED = "skip"
    INVALID = "invalid"


class RunTrigger(str, Enum):
    """Who started a run."""

    CRON = "cron"
    MANUAL = "manual"
    CLI = "cli"


# =============================================================================
# Errors
# =============================================================================


@dataclass(frozen=True)
class RowError:
    """A row that could not be applied. ``row`` is the 1-based sheet row."""

    row: int
    message: str
    field: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"row": self.row, "message": self.message}
        if self.field:
            data["field"] = self.field
        return data


# =============================================================================
# Resolution
# =============================================================================


@dataclass(frozen=True)
class ExistingMatch:
    """
    The persisted customer a row resolved to.

    ``line_items``/``partners`` hold only the children owned by the
    resolving feed, as snapshots.
    """

    client_id: UUID
    customer_code: str
    snapshot: dict[str, Any]
    line_items: tuple[dict[str, Any], ...] = ()
    partners: tuple[dict[str, Any], ...] = ()
    matched_by: str = "name"  # "code" | "name"


# =============================================================================
# Plans
# =============================================================================


@dataclass(frozen=True)
class FieldChange:
    field: str
    old: Any
    new: Any


@dataclass(frozen=True)
class RowDiff:
    fields: tuple[FieldChange, ...] = ()
    items_changed: bool = False
    partners_changed: bool = False

    @property
    def has_changes(self) -> bool:
        return bool(self.fields) or self.items_changed or self.partners_changed

    @property
    def changed_fields(self) -> dict[str, Any]:
        return {change.field: change.new for change in self.fields}


@dataclass(frozen=True)
class CreatePlan:
    action: ClassVar[PlanAction] = PlanAction.CREATE

    row: int
    mapped: MappedRow
    customer_code: str


@dataclass(frozen=True)
class UpdatePlan:
    action: ClassVar[PlanAction] = PlanAction.UPDATE

    row: int
    mapped: MappedRow
    client_id: UUID
    customer_code: str
    diff: RowDiff


@dataclass(frozen=True)
class UnchangedPlan:
    action: ClassVar[PlanAction] = PlanAction.UNCHANGED

    row: int
    mapped: MappedRow
    client_id: UUID
    customer_code: str


@dataclass(frozen=True)
class InvalidPlan:
    action: ClassVar[PlanAction] = PlanAction.INVALID

    row: int
    errors: tuple[RowError, ...]
    mapped: MappedRow | None = None
    customer_code: str | None = None


RowPlan = CreatePlan | UpdatePlan | UnchangedPlan | InvalidPlan


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class RunResult:
    """
    Outcome of one executor run.

    ``rows_total`` counts mapped rows (rows without a company name are
    excluded); ``rows_imported`` counts committed creates and updates (in a
    dry run, planned ones).
    """

    feed_key: str
    status: str  # "ok" | "error"
    rows_fetched: int = 0
    rows_total: int = 0
    rows_imported: int = 0
    rows_unchanged: int = 0
    rows_errors: int = 0
    errors: tuple[RowError, ...] = ()
    dry_run: bool = False
    run_id: UUID | None = None
    error: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"


@dataclass(frozen=True)
class PreviewSample:
    row: int
    display_name: str
    customer_code: str
    action: str


@dataclass(frozen=True)
class PreviewResult:
    feed_key: str
    fetched_rows: int = 0
    valid_rows: int = 0
    invalid_rows: int = 0
    excluded_rows: int = 0
    would_create: int = 0
    would_update: int = 0
    would_skip: int = 0
    errors: tuple[RowError, ...] = ()
    sample: tuple[PreviewSample, ...] = field(default_factory=tuple)
