"""Tests for the pure reconciliation planner."""

from dataclasses import replace
from uuid import uuid4

import pytest

from feedsync_ingestion.domain.identity import deterministic_customer_code
from feedsync_ingestion.domain.types import LineItem, Partner
from feedsync_ingestion.mapping.engine import map_row
from feedsync_kernel.domain.values import FeedVariant, LineItemKind, PartnerRole
from feedsync_sync.domain.types import (
    CreatePlan,
    ExistingMatch,
    InvalidPlan,
    PlanAction,
    UnchangedPlan,
    UpdatePlan,
)
from feedsync_sync.services.planner import diff_against, plan, validate
from tests.helpers import posvenda_row, tax_form_row


def _mapped(**cells):
    return map_row(
        posvenda_row("Acme LLC", valor_llc="1.500,00", given_name="John", sur_name="Doe", **cells),
        FeedVariant.POSVENDA,
    )


def _match_for(mapped, code="PV-1", **snapshot_overrides):
    """An ExistingMatch whose persisted state equals ``mapped``."""
    snapshot = mapped.client_snapshot()
    snapshot["customer_code"] = code
    snapshot.update(snapshot_overrides)
    return ExistingMatch(
        client_id=uuid4(),
        customer_code=code,
        snapshot=snapshot,
        line_items=tuple(i.to_snapshot() for i in mapped.line_items),
        partners=tuple(p.to_snapshot() for p in mapped.partners),
    )


# =============================================================================
# Validation
# =============================================================================


class TestValidate:

    def test_mapped_row_is_valid(self):
        assert validate(2, _mapped()) == ()

    def test_empty_normalized_name(self):
        mapped = map_row(posvenda_row("..."), FeedVariant.POSVENDA)
        errors = validate(7, mapped)
        assert [(e.row, e.field) for e in errors] == [(7, "display_name")]

    def test_negative_amount(self):
        mapped = _mapped()
        bad = replace(
            mapped,
            line_items=(LineItem(kind=LineItemKind.OTHER, description="x", value_cents=-1),),
        )
        assert [e.field for e in validate(3, bad)] == ["value_cents"]

    def test_percentage_out_of_range(self):
        bad = replace(
            _mapped(),
            partners=(Partner(full_name="X", role=PartnerRole.PRINCIPAL, percentage=120.0),),
        )
        assert [e.field for e in validate(3, bad)] == ["percentage"]


# =============================================================================
# Plans
# =============================================================================


class TestPlan:

    def test_create_with_derived_code(self):
        mapped = _mapped()
        row_plan = plan(2, mapped, None, FeedVariant.POSVENDA, "PV")

        assert isinstance(row_plan, CreatePlan)
        assert row_plan.action == PlanAction.CREATE
        assert row_plan.customer_code == deterministic_customer_code("PV", "acme llc")

    def test_create_keeps_explicit_code(self):
        row_plan = plan(2, _mapped(no="PV-77"), None, FeedVariant.POSVENDA, "PV")
        assert row_plan.customer_code == "PV-77"

    def test_unchanged(self):
        mapped = _mapped()
        row_plan = plan(2, mapped, _match_for(mapped), FeedVariant.POSVENDA, "PV")

        assert isinstance(row_plan, UnchangedPlan)
        assert row_plan.action.value == "skip"
        assert row_plan.customer_code == "PV-1"

    def test_update_on_field_change(self):
        mapped = _mapped(observacao="new note")
        match = _match_for(mapped, notes="old note")

        row_plan = plan(2, mapped, match, FeedVariant.POSVENDA, "PV")

        assert isinstance(row_plan, UpdatePlan)
        assert row_plan.client_id == match.client_id
        assert row_plan.diff.changed_fields == {"notes": "new note"}
        assert not row_plan.diff.items_changed

    def test_invalid_plan_carries_errors(self):
        mapped = map_row(posvenda_row("---"), FeedVariant.POSVENDA)
        row_plan = plan(9, mapped, None, FeedVariant.POSVENDA, "PV")

        assert isinstance(row_plan, InvalidPlan)
        assert row_plan.errors[0].row == 9


# =============================================================================
# Diff
# =============================================================================


class TestDiff:

    def test_child_order_is_ignored(self):
        mapped = _mapped(valor_gateway="10", gateway="Stripe")
        match = _match_for(mapped)
        reordered = replace(match, line_items=tuple(reversed(match.line_items)))

        assert not diff_against(mapped, reordered, FeedVariant.POSVENDA).has_changes

    def test_item_value_change(self):
        mapped = _mapped()
        match = _match_for(mapped)
        changed = replace(mapped, line_items=(replace(mapped.line_items[0], value_cents=1),))

        diff = diff_against(changed, match, FeedVariant.POSVENDA)
        assert diff.items_changed
        assert not diff.partners_changed
        assert diff.fields == ()

    def test_partner_change(self):
        mapped = _mapped()
        match = _match_for(mapped)
        changed = map_row(
            posvenda_row("Acme LLC", valor_llc="1.500,00", given_name="John", sur_name="Doe", porcentagem_1="50"),
            FeedVariant.POSVENDA,
        )
        assert diff_against(changed, match, FeedVariant.POSVENDA).partners_changed

    def test_fields_outside_the_feed_are_ignored(self):
        mapped = _mapped()
        match = _match_for(mapped, tax_profile={"ein_number": "1"})
        assert not diff_against(mapped, match, FeedVariant.POSVENDA).has_changes

    @pytest.mark.parametrize("stored", ["keep me", None])
    def test_empty_keep_existing_field_is_not_a_change(self, stored):
        mapped = map_row(tax_form_row("Beta LLC"), FeedVariant.TAX_FORM)
        match = _match_for(mapped, notes=stored)
        assert not diff_against(mapped, match, FeedVariant.TAX_FORM).has_changes

    def test_keep_existing_field_with_value_is_compared(self):
        mapped = map_row(tax_form_row("Beta LLC", notes="fresh"), FeedVariant.TAX_FORM)
        match = _match_for(mapped, notes="stale")
        diff = diff_against(mapped, match, FeedVariant.TAX_FORM)
        assert diff.changed_fields == {"notes": "fresh"}
