"""
SyncExecutor -- live reconciliation run for one feed.

Contract:
    ``execute(feed_key, dry_run=False)`` runs the whole pipeline under the
    feed's lock: fetch -> per row (map -> resolve -> plan -> apply) ->
    SyncState + SyncRun.  Returns a RunResult.

Transactions:
    Each row is resolved, planned and applied inside its own transaction,
    committed before the next row starts.  A failing row is rolled back,
    recorded as a RowError and the loop continues; earlier rows stay
    committed.  Resolution happens inside the row transaction, so a
    customer created by an earlier row is found by a later duplicate.

State machine:
    lock busy          -> LockContentionError (nothing written)
    lock lost mid-run  -> LockContentionError (committed rows stay)
    fetch/setup fails  -> SyncState(error), RunResult(status="error")
    loop completes     -> SyncState(ok), SyncRun, RunResult(status="ok")
    dry_run            -> planning only; storage, SyncState and run
                          history untouched
    The lock is released in every case.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, sessionmaker

from feedsync_config.schema import FeedSettings, SyncSettings
from feedsync_ingestion.adapters import SourceAdapter
from feedsync_ingestion.domain.types import MappedRow, SourceRows
from feedsync_ingestion.mapping.engine import map_row, table_for
from feedsync_kernel.domain.clock import Clock, SystemClock
from feedsync_kernel.exceptions import (
    InternalSyncError,
    LockContentionError,
    RowPersistenceError,
    SourceFetchError,
)
from feedsync_kernel.logging_config import LogContext, get_logger, sanitize_error_message
from feedsync_kernel.models.client import Client, ClientLineItem, ClientPartner
from feedsync_kernel.models.sync_state import RunStatus, SyncRun, SyncState
from feedsync_kernel.services.auditor_service import (
    SYSTEM_ACTOR,
    AuditorService,
    diff_changed_fields,
)
from feedsync_sync.domain.types import (
    CreatePlan,
    InvalidPlan,
    RowError,
    RowPlan,
    RunResult,
    RunTrigger,
    UnchangedPlan,
    UpdatePlan,
)
from feedsync_sync.locks.base import FeedLock
from feedsync_sync.services.fetching import fetch_feed_rows
from feedsync_sync.services.planner import plan
from feedsync_sync.services.resolver import IdentityResolver

logger = get_logger("sync.executor")

AUDIT_ENTITY = "clients"
MAX_REPORTED_ERRORS = 100


class SyncExecutor:
    """Runs live (or dry) reconciliation for configured feeds.

    Contract:
        - Owns its sessions and commits per row; callers pass a session
          factory, not a session.
        - Is the only writer of SyncState and SyncRun.
    """

    def __init__(
        self,
        settings: SyncSettings,
        session_factory: sessionmaker[Session],
        lock: FeedLock,
        adapters: Mapping[str, SourceAdapter] | None = None,
        clock: Clock | None = None,
    ):
        self._settings = settings
        self._session_factory = session_factory
        self._lock = lock
        self._adapters = adapters
        self._clock = clock or SystemClock()

    # -------------------------------------------------------------------------
    # Run
    # -------------------------------------------------------------------------

    def execute(
        self,
        feed_key: str,
        dry_run: bool = False,
        trigger: RunTrigger = RunTrigger.MANUAL,
        actor: str = SYSTEM_ACTOR,
        on_locked: Callable[[], None] | None = None,
    ) -> RunResult:
        """Run one feed.

        ``on_locked`` is called once the feed lock is held, before any work.

        Raises:
            FeedNotConfiguredError: unknown feed key.
            LockContentionError: another run holds the feed's lock.
        """
        feed = self._settings.feed(feed_key)

        if not self._lock.try_acquire(feed.key):
            logger.warning("sync_run_rejected", extra={"feed_key": feed.key})
            raise LockContentionError(feed.key)

        try:
            if on_locked is not None:
                on_locked()
            with LogContext.bind(
                feed_key=feed.key,
                run_id=uuid4().hex,
                trigger=RunTrigger(trigger).value,
                actor=actor,
            ):
                return self._run(feed, dry_run, RunTrigger(trigger), actor)
        finally:
            self._lock.release(feed.key)

    def _run(
        self,
        feed: FeedSettings,
        dry_run: bool,
        trigger: RunTrigger,
        actor: str,
    ) -> RunResult:
        start_time = time.monotonic()
        started_at = self._clock.now()
        logger.info("sync_run_started", extra={"dry_run": dry_run, "source": feed.source_label})

        try:
            source_rows = fetch_feed_rows(feed, self._adapters)
        except SourceFetchError as exc:
            return self._fail(feed, exc, started_at, dry_run)
        except Exception as exc:
            logger.exception("sync_run_setup_failed")
            return self._fail(
                feed, InternalSyncError(feed.key, f"{type(exc).__name__}: {exc}"),
                started_at, dry_run,
            )

        self._keep_lock(feed)

        session = self._session_factory()
        try:
            if dry_run:
                result = self._plan_only(session, feed, source_rows, started_at)
            else:
                result = self._apply_all(session, feed, source_rows, started_at, trigger, actor)
        finally:
            session.close()

        logger.info(
            "sync_run_completed",
            extra={
                "dry_run": dry_run,
                "status": result.status,
                "rows_fetched": result.rows_fetched,
                "rows_total": result.rows_total,
                "rows_imported": result.rows_imported,
                "rows_unchanged": result.rows_unchanged,
                "rows_errors": result.rows_errors,
                "duration_ms": int((time.monotonic() - start_time) * 1000),
            },
        )
        return result

    def _keep_lock(self, feed: FeedSettings) -> None:
        """Renew the feed lock; a lost lock ends the run."""
        if not self._lock.renew(feed.key):
            logger.error("sync_lock_lost", extra={"feed_key": feed.key})
            raise LockContentionError(feed.key)

    # -------------------------------------------------------------------------
    # Dry run
    # -------------------------------------------------------------------------

    def _plan_only(
        self,
        session: Session,
        feed: FeedSettings,
        source_rows: SourceRows,
        started_at: datetime,
    ) -> RunResult:
        resolver = IdentityResolver(session, feed.variant)
        total = planned = unchanged = 0
        errors: list[RowError] = []
        try:
            for row_number, raw in source_rows.numbered():
                self._keep_lock(feed)
                mapped = map_row(raw, feed.variant)
                if mapped is None:
                    continue
                total += 1
                row_plan = plan(
                    row_number, mapped, resolver.resolve(mapped.client),
                    feed.variant, feed.code_prefix,
                )
                if isinstance(row_plan, InvalidPlan):
                    errors.extend(row_plan.errors)
                elif isinstance(row_plan, UnchangedPlan):
                    unchanged += 1
                else:
                    planned += 1
        finally:
            session.rollback()

        return RunResult(
            feed_key=feed.key,
            status=RunStatus.OK.value,
            rows_fetched=len(source_rows),
            rows_total=total,
            rows_imported=planned,
            rows_unchanged=unchanged,
            rows_errors=total - planned - unchanged,
            errors=tuple(errors[:MAX_REPORTED_ERRORS]),
            dry_run=True,
            started_at=started_at,
            completed_at=self._clock.now(),
        )

    # -------------------------------------------------------------------------
    # Live run
    # -------------------------------------------------------------------------

    def _apply_all(
        self,
        session: Session,
        feed: FeedSettings,
        source_rows: SourceRows,
        started_at: datetime,
        trigger: RunTrigger,
        actor: str,
    ) -> RunResult:
        resolver = IdentityResolver(session, feed.variant)
        auditor = AuditorService(session, self._clock)

        total = imported = unchanged = failed = 0
        errors: list[RowError] = []

        for row_number, raw in source_rows.numbered():
            self._keep_lock(feed)
            mapped = map_row(raw, feed.variant)
            if mapped is None:
                continue
            total += 1

            try:
                row_plan = self._apply_row(
                    session, resolver, auditor, feed, row_number, mapped, actor,
                )
            except RowPersistenceError as exc:
                failed += 1
                errors.append(RowError(exc.row, exc.reason, exc.field))
                logger.warning(
                    "row_failed",
                    extra={"row": exc.row, "reason": exc.reason},
                    exc_info=exc.__cause__,
                )
                continue

            if isinstance(row_plan, InvalidPlan):
                failed += 1
                errors.extend(row_plan.errors)
                logger.info("row_invalid", extra={"row": row_number, "error_count": len(row_plan.errors)})
            elif isinstance(row_plan, UnchangedPlan):
                unchanged += 1
            else:
                imported += 1

        completed_at = self._clock.now()
        run_id = self._record_run(
            session,
            feed,
            status=RunStatus.OK,
            error=None,
            trigger=trigger,
            actor=actor,
            counts=(total, imported, failed),
            errors=errors,
            started_at=started_at,
            completed_at=completed_at,
        )

        return RunResult(
            feed_key=feed.key,
            status=RunStatus.OK.value,
            rows_fetched=len(source_rows),
            rows_total=total,
            rows_imported=imported,
            rows_unchanged=unchanged,
            rows_errors=failed,
            errors=tuple(errors[:MAX_REPORTED_ERRORS]),
            run_id=run_id,
            started_at=started_at,
            completed_at=completed_at,
        )

    def _apply_row(
        self,
        session: Session,
        resolver: IdentityResolver,
        auditor: AuditorService,
        feed: FeedSettings,
        row_number: int,
        mapped: MappedRow,
        actor: str,
    ) -> RowPlan:
        """Resolve, plan and apply one row in its own transaction.

        Raises:
            RowPersistenceError: the row's transaction failed and was rolled back.
        """
        txn = session.begin()
        try:
            match = resolver.resolve(mapped.client)
            row_plan = plan(row_number, mapped, match, feed.variant, feed.code_prefix)

            if isinstance(row_plan, CreatePlan):
                self._create(session, auditor, feed, row_plan, actor)
            elif isinstance(row_plan, UpdatePlan):
                self._update(session, auditor, feed, row_plan, actor)

            txn.commit()
        except Exception as exc:
            txn.rollback()
            raise RowPersistenceError(row_number, self._row_failure_reason(exc)) from exc

        if isinstance(row_plan, (CreatePlan, UpdatePlan)):
            logger.debug(
                "row_applied",
                extra={
                    "row": row_number,
                    "action": row_plan.action.value,
                    "customer_code": row_plan.customer_code,
                },
            )
        return row_plan

    def _row_failure_reason(self, exc: Exception) -> str:
        """Outside development the driver message (SQL and parameters) is dropped."""
        if self._settings.is_development:
            return sanitize_error_message(f"{type(exc).__name__}: {exc}", development=True)
        return f"{type(exc).__name__}: row could not be saved"

    # -------------------------------------------------------------------------
    # Row writes
    # -------------------------------------------------------------------------

    def _client_values(
        self,
        mapped: MappedRow,
        feed: FeedSettings,
        for_update: bool,
    ) -> dict[str, Any]:
        table = table_for(feed.variant)
        values: dict[str, Any] = {}
        for name in table.owned_fields:
            if name == "meta":
                value = dict(mapped.meta) if mapped.meta else None
            else:
                value = getattr(mapped.client, name)
            if for_update and value is None and name in table.keep_existing_if_empty:
                continue
            values[name] = value
        return values

    def _create(
        self,
        session: Session,
        auditor: AuditorService,
        feed: FeedSettings,
        row_plan: CreatePlan,
        actor: str,
    ) -> None:
        now = self._clock.now()
        client = Client(
            customer_code=row_plan.customer_code,
            created_by=actor,
            created_at=now,
            updated_at=now,
            **self._client_values(row_plan.mapped, feed, for_update=False),
        )
        session.add(client)
        session.flush()

        items, partners = self._insert_children(session, client.id, feed, row_plan.mapped, actor)

        snapshot = client.to_snapshot()
        snapshot["line_items"] = items
        snapshot["partners"] = partners
        auditor.record_create(AUDIT_ENTITY, client.id, snapshot, actor)

    def _update(
        self,
        session: Session,
        auditor: AuditorService,
        feed: FeedSettings,
        row_plan: UpdatePlan,
        actor: str,
    ) -> None:
        client = session.get(Client, row_plan.client_id)
        if client is None:
            raise LookupError(f"client {row_plan.client_id} disappeared")

        before = client.to_snapshot()
        values = self._client_values(row_plan.mapped, feed, for_update=True)
        for change in row_plan.diff.fields:
            setattr(client, change.field, values[change.field])
        client.updated_by = actor
        client.updated_at = self._clock.now()
        after = client.to_snapshot()

        old_items, old_partners = self._delete_children(session, client.id, feed)
        items, partners = self._insert_children(session, client.id, feed, row_plan.mapped, actor)
        # Child lists go into the audit only when their content changed, not their order.
        if row_plan.diff.items_changed:
            before["line_items"], after["line_items"] = old_items, items
        if row_plan.diff.partners_changed:
            before["partners"], after["partners"] = old_partners, partners

        session.flush()
        old_values, new_values = diff_changed_fields(before, after)
        auditor.record_update(AUDIT_ENTITY, client.id, old_values, new_values, actor)

    def _delete_children(
        self,
        session: Session,
        client_id: UUID,
        feed: FeedSettings,
    ) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
        """Delete the feed-owned children, returning their snapshots."""
        source_feed = feed.variant.value
        old_items = [
            item.to_snapshot()
            for item in session.execute(
                select(ClientLineItem)
                .where(ClientLineItem.client_id == client_id, ClientLineItem.source_feed == source_feed)
                .order_by(ClientLineItem.position)
            ).scalars()
        ]
        old_partners = [
            partner.to_snapshot()
            for partner in session.execute(
                select(ClientPartner)
                .where(ClientPartner.client_id == client_id, ClientPartner.source_feed == source_feed)
                .order_by(ClientPartner.position)
            ).scalars()
        ]
        session.execute(
            delete(ClientLineItem).where(
                ClientLineItem.client_id == client_id,
                ClientLineItem.source_feed == source_feed,
            )
        )
        session.execute(
            delete(ClientPartner).where(
                ClientPartner.client_id == client_id,
                ClientPartner.source_feed == source_feed,
            )
        )
        return old_items, old_partners

    def _insert_children(
        self,
        session: Session,
        client_id: UUID,
        feed: FeedSettings,
        mapped: MappedRow,
        actor: str,
    ) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
        source_feed = feed.variant.value
        now = self._clock.now()
        for position, item in enumerate(mapped.line_items):
            session.add(
                ClientLineItem(
                    client_id=client_id,
                    source_feed=source_feed,
                    position=position,
                    kind=item.kind.value,
                    description=item.description,
                    value_cents=item.value_cents,
                    meta=item.meta,
                    billing_period=item.billing_period,
                    address_provider=item.address_provider,
                    address_line1=item.address_line1,
                    address_line2=item.address_line2,
                    ste_number=item.ste_number,
                    llc_state=item.llc_state,
                    llc_category=item.llc_category,
                    created_by=actor,
                    created_at=now,
                    updated_at=now,
                )
            )
        for position, partner in enumerate(mapped.partners):
            session.add(
                ClientPartner(
                    client_id=client_id,
                    source_feed=source_feed,
                    position=position,
                    full_name=partner.full_name,
                    role=partner.role.value,
                    percentage_basis_points=partner.basis_points,
                    phone=partner.phone,
                    created_by=actor,
                    created_at=now,
                    updated_at=now,
                )
            )
        session.flush()
        return (
            [item.to_snapshot() for item in mapped.line_items],
            [partner.to_snapshot() for partner in mapped.partners],
        )

    # -------------------------------------------------------------------------
    # Run bookkeeping
    # -------------------------------------------------------------------------

    def _fail(
        self,
        feed: FeedSettings,
        exc: Exception,
        started_at: datetime,
        dry_run: bool,
    ) -> RunResult:
        message = sanitize_error_message(str(exc), self._settings.is_development)
        logger.error(
            "sync_run_failed",
            extra={"error_code": getattr(exc, "code", "INTERNAL_ERROR"), "reason": str(exc)},
        )
        if not dry_run:
            session = self._session_factory()
            try:
                with session.begin():
                    self._write_state(session, feed, RunStatus.ERROR, message)
            finally:
                session.close()
        return RunResult(
            feed_key=feed.key,
            status=RunStatus.ERROR.value,
            dry_run=dry_run,
            error=message,
            started_at=started_at,
            completed_at=self._clock.now(),
        )

    def _write_state(
        self,
        session: Session,
        feed: FeedSettings,
        status: RunStatus,
        error: str | None,
    ) -> SyncState:
        now = self._clock.now()
        state = session.execute(
            select(SyncState).where(SyncState.key == feed.key)
        ).scalar_one_or_none()
        if state is None:
            state = SyncState(key=feed.key)
            session.add(state)
        state.last_synced_at = now
        state.last_run_status = status.value
        state.last_run_error = error
        state.updated_at = now
        session.flush()
        return state

    def _record_run(
        self,
        session: Session,
        feed: FeedSettings,
        *,
        status: RunStatus,
        error: str | None,
        trigger: RunTrigger,
        actor: str,
        counts: tuple[int, int, int],
        errors: list[RowError],
        started_at: datetime,
        completed_at: datetime,
    ) -> UUID:
        rows_total, rows_imported, rows_errors = counts
        with session.begin():
            self._write_state(session, feed, status, error)
            run = SyncRun(
                feed_key=feed.key,
                source_label=feed.source_label,
                trigger=trigger.value,
                status=status.value,
                rows_total=rows_total,
                rows_imported=rows_imported,
                rows_errors=rows_errors,
                errors_json=[e.to_dict() for e in errors[:MAX_REPORTED_ERRORS]],
                actor=actor,
                started_at=started_at,
                completed_at=completed_at,
            )
            session.add(run)
            session.flush()
            run_id = run.id
        return run_id
