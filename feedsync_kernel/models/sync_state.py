"""
Run bookkeeping models: per-feed SyncState, SyncRun history and the
SyncLease rows used by the lease-lock backend.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import JSON, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from feedsync_kernel.db.base import Base


class RunStatus(str, Enum):
    OK = "ok"
    ERROR = "error"


class SyncState(Base):
    """
    One row per feed key.

    Written only by the batch executor at the end of a live run, under the
    feed lock, so there is a single writer per key.
    """

    __tablename__ = "sync_state"

    key: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    last_synced_at: Mapped[datetime | None] = mapped_column(nullable=True)
    last_run_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    last_run_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def to_dict(self) -> dict[str, Any]:
        return {
            "last_synced_at": self.last_synced_at,
            "last_run_status": self.last_run_status,
            "last_run_error": self.last_run_error,
        }


class SyncRun(Base):
    """Run-history record: one per executed live run."""

    __tablename__ = "sync_runs"

    __table_args__ = (
        Index("idx_sync_runs_feed_started", "feed_key", "started_at"),
    )

    feed_key: Mapped[str] = mapped_column(String(100), nullable=False)
    source_label: Mapped[str] = mapped_column(String(200), nullable=False)
    trigger: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    rows_total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rows_imported: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rows_errors: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    errors_json: Mapped[list | None] = mapped_column(JSON, nullable=True)
    actor: Mapped[str] = mapped_column(String(100), nullable=False)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class SyncLease(Base):
    """
    Lease row backing LeaseFeedLock on stores without advisory locks.

    The unique ``key`` makes acquisition an atomic INSERT; ``expires_at``
    lets a crashed holder's lease be reclaimed.
    """

    __tablename__ = "sync_leases"

    key: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    holder: Mapped[str] = mapped_column(String(100), nullable=False)
    acquired_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
