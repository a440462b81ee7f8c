"""
AuditorService -- append-only audit log writer.

Responsibility:
    Records one AuditLogEntry per persisted row-level change (customer
    create/update) with before/after snapshots of the changed fields.

Contract:
    Flush-only: the service adds rows to the caller's session and flushes;
    the caller owns commit/rollback, so an audit entry commits or rolls
    back together with the change it describes.
"""

from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from feedsync_kernel.domain.clock import Clock, SystemClock
from feedsync_kernel.logging_config import get_logger
from feedsync_kernel.models.audit_log import AuditAction, AuditLogEntry

logger = get_logger("services.auditor")

SYSTEM_ACTOR = "system"


def diff_changed_fields(
    old: dict[str, Any] | None,
    new: dict[str, Any] | None,
) -> tuple[dict[str, Any] | None, dict[str, Any] | None]:
    """
    Reduce two snapshots to the fields that differ.

    Returns ``(old_values, new_values)``.  On create (``old is None``) the
    full new snapshot is returned; on delete the full old snapshot.  When
    nothing differs both are None.
    """
    if old is None and new is None:
        return None, None
    if old is None:
        return None, dict(new or {})
    if new is None:
        return dict(old), None

    old_values: dict[str, Any] = {}
    new_values: dict[str, Any] = {}
    for key in sorted(set(old) | set(new)):
        if old.get(key) != new.get(key):
            old_values[key] = old.get(key)
            new_values[key] = new.get(key)
    if not old_values and not new_values:
        return None, None
    return old_values, new_values


class AuditorService:
    """Writes AuditLogEntry rows inside the caller's transaction."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    def record_create(
        self,
        entity: str,
        entity_id: UUID,
        new_values: dict[str, Any],
        actor: str = SYSTEM_ACTOR,
    ) -> AuditLogEntry:
        """Record the creation of ``entity_id`` with its full snapshot."""
        return self._create_entry(
            entity, entity_id, AuditAction.CREATE, None, new_values, actor,
        )

    def record_update(
        self,
        entity: str,
        entity_id: UUID,
        old_values: dict[str, Any] | None,
        new_values: dict[str, Any] | None,
        actor: str = SYSTEM_ACTOR,
    ) -> AuditLogEntry:
        """Record an update with before/after values of the changed fields."""
        return self._create_entry(
            entity, entity_id, AuditAction.UPDATE, old_values, new_values, actor,
        )

    def _create_entry(
        self,
        entity: str,
        entity_id: UUID,
        action: AuditAction,
        old_values: dict[str, Any] | None,
        new_values: dict[str, Any] | None,
        actor: str,
    ) -> AuditLogEntry:
        entry = AuditLogEntry(
            entity=entity,
            entity_id=entity_id,
            action=action.value,
            old_values=old_values,
            new_values=new_values,
            actor=actor,
            occurred_at=self._clock.now(),
        )
        self._session.add(entry)
        self._session.flush()

        logger.debug(
            "audit_entry_recorded",
            extra={
                "entity": entity,
                "entity_id": str(entity_id),
                "action": action.value,
                "actor": actor,
            },
        )
        return entry
