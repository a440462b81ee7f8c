"""
Tests for SyncExecutor: live runs, dry runs, row isolation, bookkeeping
and lock handling.
"""

from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select

from feedsync_kernel.exceptions import FeedNotConfiguredError, LockContentionError
from feedsync_kernel.logging_config import GENERIC_ERROR_MESSAGE
from feedsync_kernel.models.audit_log import AuditLogEntry
from feedsync_kernel.models.client import Client, ClientLineItem, ClientPartner
from feedsync_kernel.models.sync_state import SyncRun, SyncState
from feedsync_sync.domain.types import RunTrigger
from feedsync_sync.services.executor import AUDIT_ENTITY, SyncExecutor
from tests.helpers import POSVENDA_KEY, TAX_FORM_KEY, make_settings, posvenda_row, tax_form_row

ACME = posvenda_row(
    "Acme LLC",
    valor_llc="1.500,00",
    given_name="John",
    sur_name="Doe",
    porcentagem_1="100",
)


def _count(session, model):
    return session.execute(select(func.count()).select_from(model)).scalar_one()


def _clients(session):
    return list(session.execute(select(Client).order_by(Client.display_name)).scalars())


# =============================================================================
# First run and re-runs
# =============================================================================


class TestLiveRun:

    def test_first_run_creates_customer(self, executor, static_source, session):
        static_source.set_rows(POSVENDA_KEY, [ACME])

        result = executor.execute(POSVENDA_KEY)

        assert result.status == "ok"
        assert (result.rows_total, result.rows_imported, result.rows_errors) == (1, 1, 0)
        assert result.run_id is not None

        (client,) = _clients(session)
        assert client.display_name == "Acme LLC"
        assert client.normalized_name == "acme llc"
        assert client.customer_code.startswith("PV-")

        (item,) = client.line_items
        assert (item.kind, item.value_cents, item.source_feed) == ("entity-formation", 150000, "posvenda")
        (partner,) = client.partners
        assert (partner.full_name, partner.role, partner.percentage_basis_points) == (
            "John Doe", "principal", 10000,
        )

    def test_rerun_with_unchanged_source_is_a_no_op(self, executor, static_source, session):
        static_source.set_rows(POSVENDA_KEY, [ACME, posvenda_row("Beta", valor_gateway="10")])
        executor.execute(POSVENDA_KEY)
        audit_before = _count(session, AuditLogEntry)
        session.rollback()  # release the read lock before the next run

        second = executor.execute(POSVENDA_KEY)

        assert second.rows_imported == 0
        assert second.rows_unchanged == 2
        assert second.rows_errors == 0
        assert _count(session, AuditLogEntry) == audit_before
        assert _count(session, Client) == 2

    def test_changed_row_updates_in_place(self, executor, static_source, session):
        static_source.set_rows(POSVENDA_KEY, [ACME])
        executor.execute(POSVENDA_KEY)
        (client,) = _clients(session)
        code = client.customer_code
        session.rollback()

        static_source.set_rows(POSVENDA_KEY, [dict(ACME, valor_llc="2.000,00", observacao="upsell")])
        result = executor.execute(POSVENDA_KEY, actor="ops@example.com")

        assert result.rows_imported == 1
        (client,) = _clients(session)
        assert client.customer_code == code
        assert client.notes == "upsell"
        assert client.updated_by == "ops@example.com"
        assert [i.value_cents for i in client.line_items] == [200000]
        assert _count(session, ClientLineItem) == 1

    def test_duplicate_names_in_one_run_converge(self, executor, static_source, session):
        static_source.set_rows(POSVENDA_KEY, [ACME, posvenda_row("ACME, LLC.", valor_llc="1.500,00")])

        result = executor.execute(POSVENDA_KEY)

        assert result.rows_total == 2
        assert result.rows_errors == 0
        assert _count(session, Client) == 1

    def test_rows_without_company_are_excluded(self, executor, static_source):
        static_source.set_rows(
            POSVENDA_KEY,
            [ACME, posvenda_row("", valor_llc="99"), posvenda_row("Beta")],
        )

        result = executor.execute(POSVENDA_KEY)

        assert result.rows_fetched == 3
        assert result.rows_total == 2
        assert (result.rows_imported, result.rows_errors) == (2, 0)

    def test_explicit_code_is_used(self, executor, static_source, session):
        static_source.set_rows(POSVENDA_KEY, [dict(ACME, no="LEGACY-7")])
        executor.execute(POSVENDA_KEY)
        assert _clients(session)[0].customer_code == "LEGACY-7"

    def test_unknown_feed(self, executor):
        with pytest.raises(FeedNotConfiguredError):
            executor.execute("nope")


# =============================================================================
# Row isolation
# =============================================================================


class TestRowIsolation:

    def _add_ghost(self, session):
        session.add(
            Client(
                display_name="Ghost",
                normalized_name="ghost",
                customer_code="PV-9",
                deleted_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
            )
        )
        session.commit()

    def test_one_failing_row_does_not_abort_the_batch(self, executor, static_source, session):
        # A soft-deleted customer still owns its code, so re-creating it
        # violates the unique index.
        self._add_ghost(session)

        static_source.set_rows(
            POSVENDA_KEY,
            [
                ACME,
                posvenda_row("", valor_llc="5"),
                posvenda_row("Bravo", no="PV-9", valor_llc="10"),
                posvenda_row("Charlie", valor_llc="20"),
            ],
        )

        result = executor.execute(POSVENDA_KEY)

        assert result.status == "ok"
        assert result.rows_total == 3
        assert result.rows_imported == 2
        assert result.rows_errors == 1
        (error,) = result.errors
        assert error.row == 4
        assert "IntegrityError" in error.message

        names = {c.display_name for c in _clients(session)}
        assert names == {"Acme LLC", "Charlie", "Ghost"}
        assert _count(session, AuditLogEntry) == 2

    def test_row_error_hides_driver_message_outside_development(
        self, session_factory, lock, adapters, static_source, clock, session,
    ):
        self._add_ghost(session)
        static_source.set_rows(POSVENDA_KEY, [posvenda_row("Bravo", no="PV-9")])
        executor = SyncExecutor(
            make_settings(environment="production"), session_factory, lock,
            adapters=adapters, clock=clock,
        )

        result = executor.execute(POSVENDA_KEY)

        (error,) = result.errors
        assert error.message == "IntegrityError: row could not be saved"
        run = session.execute(select(SyncRun)).scalar_one()
        assert run.errors_json == [{"row": 2, "message": "IntegrityError: row could not be saved"}]

    def test_invalid_rows_count_as_errors(self, executor, static_source, session):
        static_source.set_rows(POSVENDA_KEY, [ACME, posvenda_row("...")])

        result = executor.execute(POSVENDA_KEY)

        assert (result.rows_imported, result.rows_errors) == (1, 1)
        assert result.errors[0].row == 3
        assert result.errors[0].field == "display_name"


# =============================================================================
# Audit and bookkeeping
# =============================================================================


class TestBookkeeping:

    def test_audit_entries(self, executor, static_source, session):
        static_source.set_rows(POSVENDA_KEY, [ACME])
        executor.execute(POSVENDA_KEY, actor="cron")
        static_source.set_rows(POSVENDA_KEY, [dict(ACME, observacao="VIP")])
        executor.execute(POSVENDA_KEY, actor="cron")

        entries = list(session.execute(select(AuditLogEntry).order_by(AuditLogEntry.action)).scalars())
        create, update = entries
        assert create.entity == AUDIT_ENTITY
        assert create.action == "create"
        assert create.old_values is None
        assert create.new_values["display_name"] == "Acme LLC"
        assert create.new_values["line_items"][0]["value_cents"] == 150000
        assert create.new_values["partners"][0]["full_name"] == "John Doe"
        assert update.action == "update"
        assert update.old_values == {"notes": None}
        assert update.new_values == {"notes": "VIP"}
        assert {create.actor, update.actor} == {"cron"}

    def test_update_audit_lists_only_changed_children(self, executor, static_source, session):
        static_source.set_rows(POSVENDA_KEY, [ACME])
        executor.execute(POSVENDA_KEY)
        static_source.set_rows(POSVENDA_KEY, [dict(ACME, valor_llc="2.000,00")])
        executor.execute(POSVENDA_KEY)

        update = session.execute(
            select(AuditLogEntry).where(AuditLogEntry.action == "update")
        ).scalar_one()
        assert set(update.old_values) == set(update.new_values) == {"line_items"}
        assert update.old_values["line_items"][0]["value_cents"] == 150000
        assert update.new_values["line_items"][0]["value_cents"] == 200000

    def test_state_and_run_history(self, executor, static_source, session):
        static_source.set_rows(POSVENDA_KEY, [ACME, posvenda_row("...")])

        result = executor.execute(POSVENDA_KEY, trigger=RunTrigger.CRON, actor="cron")

        state = session.execute(select(SyncState).where(SyncState.key == POSVENDA_KEY)).scalar_one()
        assert state.last_run_status == "ok"
        assert state.last_run_error is None
        assert state.last_synced_at is not None

        run = session.get(SyncRun, result.run_id)
        assert run.feed_key == POSVENDA_KEY
        assert run.source_label == "static:posvenda_llc"
        assert run.trigger == "cron"
        assert run.actor == "cron"
        assert (run.rows_total, run.rows_imported, run.rows_errors) == (2, 1, 1)
        assert run.errors_json[0]["row"] == 3

    def test_fetch_failure_records_error_state(self, executor, static_source, session, captured_logs):
        static_source.fail_with = "HTTP 503"

        result = executor.execute(POSVENDA_KEY)

        assert result.status == "error"
        assert "HTTP 503" in result.error
        assert result.rows_total == 0
        state = session.execute(select(SyncState)).scalar_one()
        assert state.last_run_status == "error"
        assert "HTTP 503" in state.last_run_error
        assert _count(session, SyncRun) == 0

        failed = [r for r in captured_logs() if r["message"] == "sync_run_failed"]
        assert failed[0]["error_code"] == "SOURCE_FETCH_FAILED"
        assert failed[0]["feed_key"] == POSVENDA_KEY

    def test_error_message_is_generic_outside_development(
        self, session_factory, lock, adapters, static_source, clock,
    ):
        executor = SyncExecutor(
            make_settings(environment="production"), session_factory, lock,
            adapters=adapters, clock=clock,
        )
        static_source.fail_with = "secret-host:5432 refused"

        result = executor.execute(POSVENDA_KEY)

        assert result.error == GENERIC_ERROR_MESSAGE

    def test_unexpected_setup_error_is_wrapped(self, executor, static_source, monkeypatch):
        def boom(source):
            raise RuntimeError("adapter crashed")

        monkeypatch.setattr(static_source, "fetch", boom)

        result = executor.execute(POSVENDA_KEY)

        assert result.status == "error"
        assert "adapter crashed" in result.error

    def test_completed_log_carries_counts(self, executor, static_source, captured_logs):
        static_source.set_rows(POSVENDA_KEY, [ACME])
        executor.execute(POSVENDA_KEY)

        (completed,) = [r for r in captured_logs() if r["message"] == "sync_run_completed"]
        assert completed["rows_imported"] == 1
        assert completed["feed_key"] == POSVENDA_KEY
        assert completed["trigger"] == "manual"
        assert "duration_ms" in completed


# =============================================================================
# Dry run
# =============================================================================


class TestDryRun:

    def test_dry_run_reports_without_writing(self, executor, static_source, session):
        static_source.set_rows(POSVENDA_KEY, [ACME, posvenda_row("Beta"), posvenda_row("...")])

        result = executor.execute(POSVENDA_KEY, dry_run=True)

        assert result.dry_run is True
        assert result.run_id is None
        assert (result.rows_total, result.rows_imported, result.rows_errors) == (3, 2, 1)
        for model in (Client, ClientLineItem, ClientPartner, AuditLogEntry, SyncState, SyncRun):
            assert _count(session, model) == 0

    def test_dry_run_fetch_failure_leaves_state_alone(self, executor, static_source, session):
        static_source.fail_with = "timeout"

        result = executor.execute(POSVENDA_KEY, dry_run=True)

        assert result.status == "error"
        assert result.dry_run is True
        assert _count(session, SyncState) == 0


# =============================================================================
# Locking
# =============================================================================


class TestLocking:

    def test_busy_lock_rejects_without_fetching(self, executor, lock, static_source, session):
        assert lock.try_acquire(POSVENDA_KEY)

        with pytest.raises(LockContentionError):
            executor.execute(POSVENDA_KEY)

        assert static_source.fetch_count == 0
        assert _count(session, SyncState) == 0

    def test_lock_is_per_feed(self, executor, lock, static_source):
        assert lock.try_acquire(TAX_FORM_KEY)
        static_source.set_rows(POSVENDA_KEY, [ACME])

        assert executor.execute(POSVENDA_KEY).status == "ok"

    @pytest.mark.parametrize("fail_with", [None, "HTTP 500"])
    def test_lock_released_after_run(self, executor, lock, static_source, fail_with):
        static_source.fail_with = fail_with
        executor.execute(POSVENDA_KEY)

        assert lock.try_acquire(POSVENDA_KEY)

    def test_on_locked_runs_before_fetch_and_only_when_held(self, executor, lock, static_source):
        calls = []
        executor.execute(POSVENDA_KEY, on_locked=lambda: calls.append(static_source.fetch_count))
        assert calls == [0]

        assert lock.try_acquire(POSVENDA_KEY)
        with pytest.raises(LockContentionError):
            executor.execute(POSVENDA_KEY, on_locked=lambda: calls.append("busy"))
        assert calls == [0]


# =============================================================================
# Feed ownership
# =============================================================================


class TestFeedOwnership:

    def test_tax_form_run_keeps_posvenda_children(self, executor, static_source, session):
        static_source.set_rows(POSVENDA_KEY, [dict(ACME, observacao="from sales")])
        executor.execute(POSVENDA_KEY)

        static_source.set_rows(
            TAX_FORM_KEY,
            [tax_form_row("ACME LLC", ein="12-3456789", owner_full_legal_name="Jane Roe")],
        )
        result = executor.execute(TAX_FORM_KEY)

        assert result.rows_imported == 1
        (client,) = _clients(session)
        assert client.display_name == "ACME LLC"
        assert client.notes == "from sales"
        assert client.tax_profile["ein_number"] == "12-3456789"
        assert [i.source_feed for i in client.line_items] == ["posvenda"]
        assert sorted((p.full_name, p.source_feed) for p in client.partners) == [
            ("Jane Roe", "tax_form"), ("John Doe", "posvenda"),
        ]

    def test_posvenda_rerun_keeps_tax_form_fields(self, executor, static_source, session):
        static_source.set_rows(POSVENDA_KEY, [ACME])
        static_source.set_rows(TAX_FORM_KEY, [tax_form_row("Acme LLC", ein="1")])
        executor.execute(POSVENDA_KEY)
        executor.execute(TAX_FORM_KEY)

        rerun = executor.execute(POSVENDA_KEY)

        assert rerun.rows_unchanged == 1
        assert _clients(session)[0].tax_profile["ein_number"] == "1"
