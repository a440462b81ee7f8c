"""
AuditLogEntry -- append-only record of a persisted mutation.

Written once per row-level change, inside the same transaction as the
change, so a rolled-back row leaves no audit entry behind.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from feedsync_kernel.db.base import Base, UUIDString


class AuditAction(str, Enum):
    """Types of auditable actions."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class AuditLogEntry(Base):
    """
    Audit entry with before/after snapshots.

    Rows are never updated or deleted.  ``old_values``/``new_values`` hold
    only the fields that changed (``old_values`` is None on create).
    """

    __tablename__ = "audit_log"

    __table_args__ = (
        Index("idx_audit_entity", "entity", "entity_id"),
        Index("idx_audit_occurred", "occurred_at"),
    )

    # e.g. "clients"
    entity: Mapped[str] = mapped_column(String(50), nullable=False)

    entity_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    action: Mapped[str] = mapped_column(String(20), nullable=False)

    old_values: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    new_values: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    actor: Mapped[str] = mapped_column(String(100), nullable=False)

    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<AuditLogEntry {self.action} on {self.entity}:{self.entity_id}>"
