"""Tests for AuditorService and diff_changed_fields."""

from uuid import uuid4

from sqlalchemy import select

from feedsync_kernel.models.audit_log import AuditAction, AuditLogEntry
from feedsync_kernel.services.auditor_service import (
    SYSTEM_ACTOR,
    AuditorService,
    diff_changed_fields,
)


def _entries(session, entity_id):
    return list(
        session.execute(
            select(AuditLogEntry)
            .where(AuditLogEntry.entity_id == entity_id)
            .order_by(AuditLogEntry.occurred_at)
        ).scalars()
    )


class TestDiffChangedFields:

    def test_create_returns_full_new_snapshot(self):
        assert diff_changed_fields(None, {"a": 1}) == (None, {"a": 1})

    def test_delete_returns_full_old_snapshot(self):
        assert diff_changed_fields({"a": 1}, None) == ({"a": 1}, None)

    def test_only_changed_keys_survive(self):
        old, new = diff_changed_fields({"a": 1, "b": 2}, {"a": 1, "b": 3, "c": 4})
        assert old == {"b": 2, "c": None}
        assert new == {"b": 3, "c": 4}

    def test_identical_snapshots(self):
        assert diff_changed_fields({"a": 1}, {"a": 1}) == (None, None)


class TestAuditorService:

    def test_record_create_and_update_in_write_order(self, session, clock):
        auditor = AuditorService(session, clock)
        entity_id = uuid4()

        auditor.record_create("clients", entity_id, {"display_name": "Acme"})
        clock.advance(5)
        auditor.record_update(
            "clients", entity_id, {"notes": None}, {"notes": "vip"}, actor="session:ab12cd34",
        )
        session.commit()

        entries = _entries(session, entity_id)
        assert [e.action for e in entries] == [AuditAction.CREATE.value, AuditAction.UPDATE.value]
        assert entries[0].old_values is None
        assert entries[0].new_values == {"display_name": "Acme"}
        assert entries[0].actor == SYSTEM_ACTOR
        assert entries[1].old_values == {"notes": None}
        assert entries[1].actor == "session:ab12cd34"

    def test_rolled_back_entry_disappears(self, session, clock):
        auditor = AuditorService(session, clock)
        entity_id = uuid4()
        auditor.record_create("clients", entity_id, {"display_name": "Ghost"})
        session.rollback()
        assert _entries(session, entity_id) == []
