"""Board projection and revenue rollups.

Input is the canonical stage set plus leads already read through the store
boundary (``LeadRead`` with a parsed ``money``). Nothing here touches the
database.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal

from crm_pipeline.models.enums import StageKind
from crm_pipeline.schemas.pipeline import LeadRead
from crm_pipeline.services.pipeline.canonical import CanonicalStages
from crm_pipeline.services.pipeline.classification import is_potential_title, stage_kind
from crm_pipeline.services.pipeline.money import money_amount


@dataclass
class StageBreakdown:
    id: uuid.UUID
    title: str
    order_index: int
    kind: StageKind
    count: int = 0
    value: Decimal = Decimal("0")


@dataclass
class Board:
    stages: list
    kinds: dict[uuid.UUID, StageKind]
    leads_by_stage: dict[uuid.UUID, list[LeadRead]]
    unassigned: list[LeadRead] = field(default_factory=list)


@dataclass
class PipelineAggregates:
    total_leads: int = 0
    new_leads_count: int = 0
    won_leads_count: int = 0
    lost_leads_count: int = 0
    active_leads_count: int = 0
    orphaned_leads_count: int = 0
    won_value: Decimal = Decimal("0")
    potential_value: Decimal = Decimal("0")
    stages: list[StageBreakdown] = field(default_factory=list)


def lead_amount(lead: LeadRead) -> Decimal:
    if lead.money is not None:
        return lead.money.amount
    return money_amount(lead.value)


def remap_leads(canonical: CanonicalStages, leads: Iterable[LeadRead]) -> list[LeadRead]:
    """Point every lead at its canonical stage; orphaned ids are kept as is."""
    remapped = []
    for lead in leads:
        if lead.stage_id is not None and lead.stage_id in canonical.id_map:
            target = canonical.id_map[lead.stage_id]
            if target != lead.stage_id:
                lead = lead.model_copy(update={"stage_id": target})
        remapped.append(lead)
    return remapped


def sort_stage_leads(leads: Iterable[LeadRead]) -> list[LeadRead]:
    # Position ascending, newest first within the same position.
    newest_first = sorted(leads, key=lambda lead: lead.created_at, reverse=True)
    return sorted(newest_first, key=lambda lead: lead.position)


def build_board(canonical: CanonicalStages, leads: Iterable[LeadRead]) -> Board:
    kinds = {stage.id: stage_kind(stage) for stage in canonical.stages}
    grouped: dict[uuid.UUID, list[LeadRead]] = {stage.id: [] for stage in canonical.stages}
    unassigned: list[LeadRead] = []
    for lead in leads:
        bucket = grouped.get(lead.stage_id) if lead.stage_id is not None else None
        if bucket is None:
            unassigned.append(lead)
        else:
            bucket.append(lead)
    return Board(
        stages=list(canonical.stages),
        kinds=kinds,
        leads_by_stage={stage_id: sort_stage_leads(items) for stage_id, items in grouped.items()},
        unassigned=sort_stage_leads(unassigned),
    )


def compute_aggregates(canonical: CanonicalStages, leads: Iterable[LeadRead]) -> PipelineAggregates:
    breakdown = {
        stage.id: StageBreakdown(
            id=stage.id,
            title=stage.title,
            order_index=stage.order_index,
            kind=stage_kind(stage),
        )
        for stage in canonical.stages
    }
    potential_ids = {stage.id for stage in canonical.stages if is_potential_title(stage.title)}

    totals = PipelineAggregates()
    for lead in leads:
        totals.total_leads += 1
        row = breakdown.get(lead.stage_id) if lead.stage_id is not None else None
        if row is None:
            totals.orphaned_leads_count += 1
            continue
        amount = lead_amount(lead)
        row.count += 1
        row.value += amount
        if row.kind == StageKind.won:
            totals.won_leads_count += 1
            totals.won_value += amount
        elif row.kind == StageKind.lost:
            totals.lost_leads_count += 1
        elif row.kind == StageKind.new:
            totals.new_leads_count += 1
        else:
            totals.active_leads_count += 1
        if row.id in potential_ids:
            totals.potential_value += amount

    totals.stages = [breakdown[stage.id] for stage in canonical.stages]
    return totals


def merge_leads(local: Iterable[LeadRead], returned: Iterable[LeadRead]) -> list[LeadRead]:
    """Reconcile an optimistic client list with rows echoed by the server.

    Rows the server returned replace local rows with the same id; every other
    local row is kept untouched.
    """
    returned_by_id = {lead.id: lead for lead in returned}
    return [returned_by_id.get(lead.id, lead) for lead in local]


def stage_value(leads: Iterable[LeadRead]) -> Decimal:
    return sum((lead_amount(lead) for lead in leads), Decimal("0"))
