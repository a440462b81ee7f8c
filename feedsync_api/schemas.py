"""
Response models for the sync API.

Fields are snake_case in Python and camelCase on the wire.  Optional
members left as None are dropped from the payload, so ``dryRun``,
``runId`` and ``error`` only appear when they apply.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from feedsync_sync.domain.types import PreviewResult, RowError, RunResult


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class RowErrorOut(CamelModel):
    row: int
    message: str
    field: str | None = None

    @classmethod
    def from_error(cls, error: RowError) -> RowErrorOut:
        return cls(row=error.row, message=error.message, field=error.field)


class SyncRunResponse(CamelModel):
    """Body of POST /sync/{feed} and POST /sync/{feed}/confirm."""

    rows_total: int
    rows_imported: int
    rows_errors: int
    status: str
    errors: list[RowErrorOut] = Field(default_factory=list)
    dry_run: bool | None = None
    run_id: str | None = None
    error: str | None = None

    @classmethod
    def from_result(cls, result: RunResult, include_run_id: bool = False) -> SyncRunResponse:
        return cls(
            rows_total=result.rows_total,
            rows_imported=result.rows_imported,
            rows_errors=result.rows_errors,
            status=result.status,
            errors=[RowErrorOut.from_error(e) for e in result.errors],
            dry_run=True if result.dry_run else None,
            run_id=str(result.run_id) if include_run_id and result.run_id else None,
            error=result.error,
        )


class PreviewSampleOut(CamelModel):
    row: int
    display_name: str
    customer_code: str
    action: str


class PreviewResponse(CamelModel):
    fetched_rows: int
    valid_rows: int
    invalid_rows: int
    excluded_rows: int
    would_create: int
    would_update: int
    would_skip: int
    errors: list[RowErrorOut] = Field(default_factory=list)
    sample: list[PreviewSampleOut] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: PreviewResult) -> PreviewResponse:
        return cls(
            fetched_rows=result.fetched_rows,
            valid_rows=result.valid_rows,
            invalid_rows=result.invalid_rows,
            excluded_rows=result.excluded_rows,
            would_create=result.would_create,
            would_update=result.would_update,
            would_skip=result.would_skip,
            errors=[RowErrorOut.from_error(e) for e in result.errors],
            sample=[
                PreviewSampleOut(
                    row=s.row,
                    display_name=s.display_name,
                    customer_code=s.customer_code,
                    action=s.action,
                )
                for s in result.sample
            ],
        )


class SyncStatusResponse(CamelModel):
    """Last-run state; every field is null until the feed first runs."""

    last_synced_at: datetime | None = None
    last_run_status: str | None = None
    last_run_error: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
