"""Pure sync DTOs. ZERO I/O."""

from feedsync_sync.domain.types import (
    CreatePlan,
    ExistingMatch,
    FieldChange,
    InvalidPlan,
    PlanAction,
    PreviewResult,
    PreviewSample,
    RowDiff,
    RowError,
    RowPlan,
    RunResult,
    RunTrigger,
    UnchangedPlan,
    UpdatePlan,
)

__all__ = [
    "CreatePlan",
    "ExistingMatch",
    "FieldChange",
    "InvalidPlan",
    "PlanAction",
    "PreviewResult",
    "PreviewSample",
    "RowDiff",
    "RowError",
    "RowPlan",
    "RunResult",
    "RunTrigger",
    "UnchangedPlan",
    "UpdatePlan",
]
