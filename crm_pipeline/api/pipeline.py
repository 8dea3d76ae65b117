"""Lead pipeline API endpoints."""

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from crm_pipeline.api.deps import get_store
from crm_pipeline.config import settings
from crm_pipeline.schemas.pipeline import (
    BoardColumnRead,
    BoardRead,
    LeadContentUpdate,
    LeadCreate,
    LeadMove,
    LeadRead,
    PipelineSummaryRead,
    StageCreate,
    StageDeletionRead,
    StageRead,
    StageReorder,
    StageReorderRead,
    StageUpdate,
)
from crm_pipeline.services.pipeline import pipeline_boards, pipeline_leads, pipeline_stages
from crm_pipeline.services.pipeline.errors import PipelineError
from crm_pipeline.services.pipeline.filters import LeadFilters
from crm_pipeline.services.pipeline.money import format_money
from crm_pipeline.services.pipeline.projector import stage_value
from crm_pipeline.services.pipeline.store import SqlPipelineStore

router = APIRouter(prefix="/crm", tags=["pipeline"])


def lead_filters(
    search: str | None = Query(None),
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    all_time: bool = Query(False),
) -> LeadFilters:
    """Board filters; without explicit dates the dashboard window applies."""
    if all_time:
        return LeadFilters(search=search)
    if end_date and not start_date:
        raise HTTPException(status_code=400, detail="start_date is required when end_date is set")
    if start_date and end_date and end_date < start_date:
        raise HTTPException(status_code=400, detail="end_date must not be before start_date")
    if start_date:
        return LeadFilters(search=search, created_from=start_date, created_to=end_date)
    return LeadFilters.last_days(settings.default_window_days, search=search)


@router.get("/board", response_model=BoardRead)
def get_board(
    filters: LeadFilters = Depends(lead_filters),
    store: SqlPipelineStore = Depends(get_store),
):
    """Get canonical columns with their ordered leads."""
    board = pipeline_boards.board(store, filters)
    columns = []
    for stage in board.stages:
        leads = board.leads_by_stage[stage.id]
        value = stage_value(leads)
        columns.append(
            BoardColumnRead(
                id=stage.id,
                title=stage.title,
                order_index=stage.order_index,
                kind=board.kinds[stage.id],
                lead_count=len(leads),
                value=value,
                value_display=format_money(value),
                leads=leads,
            )
        )
    return BoardRead(columns=columns, unassigned=board.unassigned)


@router.get("/board/summary", response_model=PipelineSummaryRead)
def get_board_summary(
    filters: LeadFilters = Depends(lead_filters),
    store: SqlPipelineStore = Depends(get_store),
):
    """Get lead counts, won revenue and open proposal value."""
    totals = pipeline_boards.aggregates(store, filters)
    return PipelineSummaryRead(
        total_leads=totals.total_leads,
        new_leads_count=totals.new_leads_count,
        won_leads_count=totals.won_leads_count,
        lost_leads_count=totals.lost_leads_count,
        active_leads_count=totals.active_leads_count,
        orphaned_leads_count=totals.orphaned_leads_count,
        won_value=totals.won_value,
        potential_value=totals.potential_value,
        won_value_display=format_money(totals.won_value),
        potential_value_display=format_money(totals.potential_value),
    )


@router.get("/stages", response_model=list[StageRead])
def list_stages(store: SqlPipelineStore = Depends(get_store)):
    return pipeline_stages.list(store)


@router.post("/stages", response_model=StageRead, status_code=201)
def create_stage(payload: StageCreate, store: SqlPipelineStore = Depends(get_store)):
    return pipeline_stages.create(store, payload)


@router.patch("/stages/{stage_id}", response_model=StageRead)
def update_stage(stage_id: str, payload: StageUpdate, store: SqlPipelineStore = Depends(get_store)):
    try:
        return pipeline_stages.update(store, stage_id, payload)
    except PipelineError as exc:
        raise exc.to_http_exception() from exc


@router.post("/stages/reorder", response_model=StageReorderRead)
def reorder_stages(payload: StageReorder, store: SqlPipelineStore = Depends(get_store)):
    """Persist a new column order; unknown ids are reported, not fatal."""
    return pipeline_stages.reorder(store, payload.ids)


@router.delete("/stages/{stage_id}", response_model=StageDeletionRead)
def delete_stage(stage_id: str, store: SqlPipelineStore = Depends(get_store)):
    """Delete a column, moving its leads to the nearest remaining column.

    ``leads_discarded`` is true when no other column existed and the leads
    were deleted with it.
    """
    try:
        return pipeline_stages.delete(store, stage_id)
    except PipelineError as exc:
        raise exc.to_http_exception() from exc


@router.post("/leads", response_model=LeadRead, status_code=201)
def create_lead(payload: LeadCreate, store: SqlPipelineStore = Depends(get_store)):
    return pipeline_leads.create(store, payload)


@router.get("/leads/{lead_id}", response_model=LeadRead)
def get_lead(lead_id: str, store: SqlPipelineStore = Depends(get_store)):
    try:
        return pipeline_leads.get(store, lead_id)
    except PipelineError as exc:
        raise exc.to_http_exception() from exc


@router.patch("/leads/{lead_id}", response_model=LeadRead)
def update_lead(lead_id: str, payload: LeadContentUpdate, store: SqlPipelineStore = Depends(get_store)):
    try:
        return pipeline_leads.update_content(store, lead_id, payload)
    except PipelineError as exc:
        raise exc.to_http_exception() from exc


@router.post("/leads/{lead_id}/move", response_model=LeadRead)
def move_lead(lead_id: str, payload: LeadMove, store: SqlPipelineStore = Depends(get_store)):
    """Move a lead card; stale column ids are corrected to the canonical one."""
    try:
        return pipeline_leads.move(store, lead_id, payload)
    except PipelineError as exc:
        raise exc.to_http_exception() from exc


@router.delete("/leads/{lead_id}", status_code=204)
def delete_lead(lead_id: str, store: SqlPipelineStore = Depends(get_store)):
    try:
        pipeline_leads.delete(store, lead_id)
    except PipelineError as exc:
        raise exc.to_http_exception() from exc
    return Response(status_code=204)
