"""Tests for pipeline stage services."""

import uuid
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from crm_pipeline.config import settings
from crm_pipeline.models.enums import StageKind
from crm_pipeline.schemas.pipeline import StageCreate, StageUpdate
from crm_pipeline.services.pipeline import ensure_default_stages, load_canonical, pipeline_boards, pipeline_stages
from crm_pipeline.services.pipeline.errors import PipelineNotFoundError, PipelineValidationError

# =============================================================================
# Bootstrap
# =============================================================================


def test_bootstrap_creates_default_columns(store):
    stages = ensure_default_stages(store)

    assert [stage.title for stage in stages] == list(settings.default_stage_titles)
    assert [stage.order_index for stage in stages] == list(range(len(stages)))
    assert all(stage.tenant_id == "tenant-a" for stage in stages)


def test_bootstrap_runs_once(store):
    first = ensure_default_stages(store)
    second = ensure_default_stages(store)
    assert [stage.id for stage in first] == [stage.id for stage in second]


def test_bootstrap_skipped_when_any_stage_exists(store, make_stage):
    make_stage("Entrada", 0, tenant_id="tenant-b")
    stages = ensure_default_stages(store)
    assert [stage.title for stage in stages] == ["Entrada"]


def test_list_returns_canonical_columns(store, make_stage, six_stages):
    make_stage("Fechado", 7, tenant_id="tenant-b")
    stages = pipeline_stages.list(store)
    assert [stage.title for stage in stages] == [stage.title for stage in six_stages]


# =============================================================================
# Create / update
# =============================================================================


def test_create_stage_appends_after_canonical_columns(store, six_stages, make_stage):
    make_stage("Fechado", 9, tenant_id="tenant-b")

    stage = pipeline_stages.create(store, StageCreate(title="Negociação"))

    assert stage.order_index == 6
    assert stage.tenant_id == "tenant-a"
    assert stage.kind is None


def test_create_stage_with_pinned_kind(store, six_stages):
    stage = pipeline_stages.create(store, StageCreate(title="Assinado", kind=StageKind.won))
    assert stage.kind == StageKind.won


def test_rename_stage_keeps_order(store, six_stages):
    target = six_stages[3]
    updated = pipeline_stages.update(store, str(target.id), StageUpdate(title="Proposta"))
    assert updated.title == "Proposta"
    assert updated.order_index == 3


def test_update_stage_not_found(store, six_stages):
    with pytest.raises(PipelineNotFoundError) as exc_info:
        pipeline_stages.update(store, str(uuid.uuid4()), StageUpdate(title="Nada"))
    assert exc_info.value.status_code == 404


def test_update_stage_invalid_id(store, six_stages):
    with pytest.raises(PipelineValidationError) as exc_info:
        pipeline_stages.update(store, "not-a-uuid", StageUpdate(title="Nada"))
    assert exc_info.value.code == "invalid_uuid"


# =============================================================================
# Reorder
# =============================================================================


def test_reorder_assigns_positions_from_list(store, six_stages):
    ids = [str(stage.id) for stage in reversed(six_stages)]

    result = pipeline_stages.reorder(store, ids)

    assert result.updated_ids == ids
    assert result.skipped_ids == []
    assert [stage.title for stage in result.stages] == [stage.title for stage in reversed(six_stages)]
    assert [stage.order_index for stage in result.stages] == list(range(6))


def test_reorder_skips_unknown_ids_and_continues(store, six_stages):
    missing = str(uuid.uuid4())
    ids = [str(six_stages[1].id), missing, "garbage", str(six_stages[0].id)]

    result = pipeline_stages.reorder(store, ids)

    assert result.skipped_ids == [missing, "garbage"]
    assert result.updated_ids == [str(six_stages[1].id), str(six_stages[0].id)]
    assert store.get_stage(six_stages[1].id).order_index == 0
    assert store.get_stage(six_stages[0].id).order_index == 3


def test_reorder_leaves_unlisted_stages_alone(store, six_stages):
    pipeline_stages.reorder(store, [str(six_stages[5].id)])
    assert store.get_stage(six_stages[5].id).order_index == 0
    assert store.get_stage(six_stages[0].id).order_index == 0
    assert store.get_stage(six_stages[1].id).order_index == 1


# =============================================================================
# Delete with fallback routing
# =============================================================================


def test_delete_routes_leads_to_closest_predecessor(store, six_stages, make_lead):
    target = six_stages[3]
    leads = [make_lead(target.id), make_lead(target.id)]

    result = pipeline_stages.delete(store, str(target.id))

    assert result.fallback_stage_id == six_stages[2].id
    assert result.leads_moved == 2
    assert result.leads_discarded is False
    assert store.get_stage(target.id) is None
    for lead in leads:
        assert store.get_lead(lead.id).stage_id == six_stages[2].id


def test_delete_skips_gaps_in_order(store, make_stage, make_lead):
    stages = [make_stage("A", 0), make_stage("B", 1), make_stage("C", 4), make_stage("D", 5)]
    lead = make_lead(stages[2].id)

    result = pipeline_stages.delete(store, str(stages[2].id))

    assert result.fallback_stage_id == stages[1].id
    assert store.get_lead(lead.id).stage_id == stages[1].id


def test_delete_first_column_routes_to_closest_successor(store, make_stage, make_lead):
    first = make_stage("Entrada", 0)
    others = [make_stage(f"Etapa {order}", order) for order in range(1, 5)]
    lead = make_lead(first.id)

    result = pipeline_stages.delete(store, str(first.id))

    assert result.fallback_stage_id == others[0].id
    assert store.get_lead(lead.id).stage_id == others[0].id


def test_delete_last_stage_discards_its_leads(store, make_stage, make_lead):
    only = make_stage("Única", 0)
    make_lead(only.id)
    make_lead(only.id)

    result = pipeline_stages.delete(store, str(only.id))

    assert result.fallback_stage_id is None
    assert result.leads_deleted == 2
    assert result.leads_discarded is True
    assert store.list_leads() == []
    assert store.list_stages() == []


def test_delete_empty_stage_reports_no_moves(store, six_stages):
    result = pipeline_stages.delete(store, str(six_stages[4].id))
    assert result.leads_moved == 0
    assert result.leads_discarded is False


def test_delete_repoints_only_raw_matches(store, six_stages, make_stage, make_lead):
    absorbed = make_stage("Proposta Enviada", 8, tenant_id="tenant-b")
    direct = make_lead(six_stages[3].id)
    via_absorbed = make_lead(absorbed.id, tenant_id="tenant-b")

    pipeline_stages.delete(store, str(six_stages[3].id))

    assert store.get_lead(direct.id).stage_id == six_stages[2].id
    assert store.get_lead(via_absorbed.id).stage_id == absorbed.id
    # The absorbed row now stands in as the canonical column for its title.
    assert load_canonical(store).by_title("Proposta Enviada").id == absorbed.id


def test_delete_stage_not_found(store, six_stages):
    with pytest.raises(PipelineNotFoundError) as exc_info:
        pipeline_stages.delete(store, str(uuid.uuid4()))
    assert exc_info.value.code == "stage_not_found"


def test_fallback_prefers_predecessor_then_successor(store, six_stages):
    canonical = load_canonical(store)
    stages = canonical.stages
    assert pipeline_stages.fallback_for(canonical, stages[3]).id == stages[2].id
    assert pipeline_stages.fallback_for(canonical, stages[0]).id == stages[1].id


def test_fallback_uses_any_column_when_orders_tie(store, make_stage, make_lead):
    target = make_stage("Triagem", 2)
    sibling = make_stage("Qualificação", 2)
    lead = make_lead(target.id)

    result = pipeline_stages.delete(store, str(target.id))

    assert result.fallback_stage_id == sibling.id
    assert result.leads_discarded is False
    assert store.get_lead(lead.id).stage_id == sibling.id


def test_delete_absorbed_stage_keeps_leads_in_their_column(store, six_stages, make_stage, make_lead):
    absorbed = make_stage("Fechado", 7, tenant_id="tenant-b")
    lead = make_lead(absorbed.id, tenant_id="tenant-b", value="1000")
    won_before = pipeline_boards.aggregates(store).won_value

    result = pipeline_stages.delete(store, str(absorbed.id))

    assert result.fallback_stage_id == six_stages[4].id
    assert result.leads_moved == 1
    assert store.get_stage(absorbed.id) is None
    assert store.get_lead(lead.id).stage_id == six_stages[4].id
    assert won_before == Decimal("1000")
    assert pipeline_boards.aggregates(store).won_value == Decimal("1000")


def test_reorder_store_failure_leaves_order_untouched(store, six_stages, monkeypatch):
    original_update = store.update_stage
    calls = []

    def _flaky_update(stage_id, fields):
        calls.append(stage_id)
        if len(calls) == 3:
            raise OperationalError("UPDATE crm_pipeline_stages", {}, Exception("disk I/O error"))
        return original_update(stage_id, fields)

    monkeypatch.setattr(store, "update_stage", _flaky_update)

    with pytest.raises(OperationalError):
        pipeline_stages.reorder(store, [str(stage.id) for stage in reversed(six_stages)])

    monkeypatch.undo()
    assert [store.get_stage(stage.id).order_index for stage in six_stages] == list(range(6))
    assert store._atomic_depth == 0
