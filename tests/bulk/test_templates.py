"""
Tests for salary_bulk.services.templates -- TemplateStore.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from salary_kernel.exceptions import TemplateNotFoundError, ValidationError
from salary_kernel.models.audit_event import AuditAction
from salary_kernel.services.auditor_service import TEMPLATE_ENTITY

from salary_bulk.domain.types import (
    AdjustmentType,
    OperationTemplate,
    OperationType,
)
from salary_bulk.services.selection import SelectionContext
from salary_bulk.services.templates import TemplateStore


def make_template(name="Engineering Merit", **kwargs) -> OperationTemplate:
    defaults = dict(
        template_id=uuid4(),
        name=name,
        operation_type=OperationType.MASS_INCREASE,
        adjustment_type=AdjustmentType.PERCENTAGE,
        adjustment_value=Decimal("5"),
        description="Mid-year merit round",
        default_reason="Merit cycle",
    )
    defaults.update(kwargs)
    return OperationTemplate(**defaults)


@pytest.fixture
def store(orchestrator):
    return orchestrator.templates


# =============================================================================
# CRUD
# =============================================================================


class TestCrud:
    def test_create_and_get(self, store, test_actor_id, clock):
        created = store.create(make_template(), test_actor_id)

        loaded = store.get(created.template_id)
        assert loaded.name == "Engineering Merit"
        assert loaded.adjustment_value == Decimal("5")
        assert loaded.usage_count == 0
        assert loaded.last_used_at is None
        assert loaded.created_by == test_actor_id
        assert loaded.created_at == clock.now()

    def test_create_resets_usage(self, store, test_actor_id):
        created = store.create(make_template(usage_count=9), test_actor_id)
        assert created.usage_count == 0

    def test_name_is_trimmed(self, store, test_actor_id):
        created = store.create(make_template(name="  Sales COLA  "), test_actor_id)
        assert created.name == "Sales COLA"

    def test_update_keeps_usage(self, store, test_actor_id):
        created = store.create(make_template(), test_actor_id)
        store.apply(created.template_id, test_actor_id)

        updated = store.update(
            make_template(
                template_id=created.template_id,
                name="Engineering Merit v2",
                adjustment_value=Decimal("7.5"),
            ),
            test_actor_id,
        )

        assert updated.name == "Engineering Merit v2"
        assert updated.adjustment_value == Decimal("7.5")
        assert updated.usage_count == 1

    def test_update_unknown(self, store, test_actor_id):
        with pytest.raises(TemplateNotFoundError):
            store.update(make_template(), test_actor_id)

    def test_delete(self, store, test_actor_id):
        created = store.create(make_template(), test_actor_id)
        store.delete(created.template_id)

        with pytest.raises(TemplateNotFoundError):
            store.get(created.template_id)

    def test_delete_unknown(self, store):
        with pytest.raises(TemplateNotFoundError):
            store.delete(uuid4())

    def test_duplicate(self, store, test_actor_id):
        original = store.create(make_template(is_favorite=True), test_actor_id)
        store.apply(original.template_id, test_actor_id)

        copy = store.duplicate(original.template_id, test_actor_id)

        assert copy.template_id != original.template_id
        assert copy.name == "Engineering Merit (Copy)"
        assert copy.is_favorite is False
        assert copy.usage_count == 0
        assert copy.adjustment_value == original.adjustment_value

    def test_toggle_favorite(self, store, test_actor_id):
        created = store.create(make_template(), test_actor_id)
        assert store.toggle_favorite(created.template_id, test_actor_id).is_favorite
        assert not store.toggle_favorite(created.template_id, test_actor_id).is_favorite


class TestListing:
    def test_favorites_then_usage_then_name(self, store, test_actor_id):
        beta = store.create(make_template(name="Beta"), test_actor_id)
        store.create(make_template(name="Alpha"), test_actor_id)
        store.create(make_template(name="Zeta", is_favorite=True), test_actor_id)
        store.apply(beta.template_id, test_actor_id)

        names = [t.name for t in store.list_templates()]
        assert names == ["Zeta", "Beta", "Alpha"]

    def test_by_name_only(self, store, test_actor_id):
        store.create(make_template(name="Beta"), test_actor_id)
        store.create(make_template(name="Alpha", is_favorite=True), test_actor_id)

        names = [t.name for t in store.list_templates(favorites_first=False)]
        assert names == ["Alpha", "Beta"]


class TestValidation:
    def test_rollback_template_rejected(self, store, test_actor_id):
        with pytest.raises(ValidationError):
            store.create(
                make_template(operation_type=OperationType.ROLLBACK), test_actor_id,
            )

    def test_empty_name_rejected(self, store, test_actor_id):
        with pytest.raises(ValidationError):
            store.create(make_template(name="   "), test_actor_id)

    def test_zero_value_rejected(self, store, test_actor_id):
        with pytest.raises(ValidationError):
            store.create(make_template(adjustment_value=Decimal("0")), test_actor_id)

    def test_over_limit_percentage_rejected(self, store, test_actor_id):
        with pytest.raises(ValidationError):
            store.create(make_template(adjustment_value=Decimal("150")), test_actor_id)


# =============================================================================
# Apply
# =============================================================================


class TestApply:
    def test_hydrates_adjustment(self, store, test_actor_id):
        template = store.create(make_template(), test_actor_id)

        adjustment = store.apply(template.template_id, test_actor_id)

        assert adjustment.operation_type == OperationType.MASS_INCREASE
        assert adjustment.adjustment_type == AdjustmentType.PERCENTAGE
        assert adjustment.adjustment_value == Decimal("5")
        assert adjustment.reason == "Merit cycle"
        assert adjustment.name == "Engineering Merit"
        assert adjustment.template_id == template.template_id

    def test_usage_tracked(self, store, test_actor_id, clock):
        template = store.create(make_template(), test_actor_id)
        clock.advance(60)

        store.apply(template.template_id, test_actor_id)
        store.apply(template.template_id, test_actor_id)

        loaded = store.get(template.template_id)
        assert loaded.usage_count == 2
        assert loaded.last_used_at == clock.now()

    def test_department_filter_reselects(self, store, directory, employees, test_actor_id):
        template = store.create(
            make_template(department_filter="Engineering", position_filter="Analyst"),
            test_actor_id,
        )
        selection = SelectionContext.from_directory(directory)
        selection.toggle(employees["citra"].employee_id)

        store.apply(template.template_id, test_actor_id, selection=selection)

        assert set(selection.selected_ids) == {
            employees["alice"].employee_id,
            employees["budi"].employee_id,
        }

    def test_position_filter_used_without_department(
        self, store, directory, employees, test_actor_id,
    ):
        template = store.create(make_template(position_filter="Analyst"), test_actor_id)
        selection = SelectionContext.from_directory(directory)

        store.apply(template.template_id, test_actor_id, selection=selection)

        assert set(selection.selected_ids) == {
            employees["citra"].employee_id,
            employees["dewi"].employee_id,
        }

    def test_no_filter_leaves_selection(self, store, directory, employees, test_actor_id):
        template = store.create(make_template(), test_actor_id)
        selection = SelectionContext.from_directory(directory)
        selection.toggle(employees["dewi"].employee_id)

        store.apply(template.template_id, test_actor_id, selection=selection)

        assert selection.selected_ids == (employees["dewi"].employee_id,)

    def test_unknown_template(self, store, test_actor_id):
        with pytest.raises(TemplateNotFoundError):
            store.apply(uuid4(), test_actor_id)

    def test_audited(self, orchestrator, store, test_actor_id):
        template = store.create(make_template(), test_actor_id)
        store.apply(template.template_id, test_actor_id)

        trace = orchestrator.auditor.get_trace(TEMPLATE_ENTITY, template.template_id)
        assert trace.actions == (AuditAction.TEMPLATE_APPLIED,)
        assert trace.entries[0].payload == {"usage_count": 1}

    def test_store_without_auditor(self, db_session, clock, test_actor_id):
        store = TemplateStore(db_session, clock=clock)
        template = store.create(make_template(), test_actor_id)
        assert store.apply(template.template_id, test_actor_id).name == "Engineering Merit"
