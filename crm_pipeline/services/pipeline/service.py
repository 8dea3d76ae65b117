from __future__ import annotations

import logging

from crm_pipeline.config import settings
from crm_pipeline.models.pipeline import Lead, PipelineStage
from crm_pipeline.schemas.pipeline import (
    LeadContentUpdate,
    LeadCreate,
    LeadIntake,
    LeadMove,
    LeadRead,
    StageCreate,
    StageDeletionRead,
    StageRead,
    StageReorderRead,
    StageUpdate,
)
from crm_pipeline.services.common import coerce_uuid, try_uuid
from crm_pipeline.services.pipeline.canonical import CanonicalStages, canonicalize, stage_sort_key
from crm_pipeline.services.pipeline.errors import PipelineNotFoundError, PipelineValidationError
from crm_pipeline.services.pipeline.filters import LeadFilters
from crm_pipeline.services.pipeline.money import parse_money
from crm_pipeline.services.pipeline.projector import (
    Board,
    PipelineAggregates,
    build_board,
    compute_aggregates,
    remap_leads,
)
from crm_pipeline.services.pipeline.store import PipelineStore

logger = logging.getLogger(__name__)

LEAD_CONTENT_FIELDS = ("name", "company", "email", "whatsapp", "notes", "value")


def ensure_default_stages(store: PipelineStore) -> list[PipelineStage]:
    """Create the default columns when the board has none yet."""
    stages = store.list_stages()
    if stages:
        return stages
    titles = settings.default_stage_titles
    logger.info("pipeline_bootstrap tenant_id=%s titles=%s", store.tenant_id, ",".join(titles))
    return store.insert_stages([{"title": title, "order_index": index} for index, title in enumerate(titles)])


def load_canonical(store: PipelineStore) -> CanonicalStages:
    stages = ensure_default_stages(store)
    return canonicalize([StageRead.model_validate(stage) for stage in stages])


def read_lead(lead: Lead) -> LeadRead:
    return LeadRead.model_validate(lead).model_copy(update={"money": parse_money(lead.value)})


def read_leads(store: PipelineStore, canonical: CanonicalStages) -> list[LeadRead]:
    return remap_leads(canonical, [read_lead(lead) for lead in store.list_leads()])


def _resolve_stage_or_404(canonical: CanonicalStages, stage_id) -> StageRead:
    stage_uuid = try_uuid(stage_id)
    if stage_uuid is None or stage_uuid not in canonical.id_map:
        raise PipelineNotFoundError("stage_not_found", "Pipeline stage not found")
    return canonical.get(stage_uuid)


def _get_lead_or_404(store: PipelineStore, lead_id) -> Lead:
    lead = store.get_lead(coerce_uuid(lead_id, "lead_id"))
    if not lead:
        raise PipelineNotFoundError("lead_not_found", "Lead not found")
    return lead


def _blank_to_none(value: str | None) -> str | None:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class PipelineStages:
    @staticmethod
    def list(store: PipelineStore) -> list[StageRead]:
        return list(load_canonical(store).stages)

    @staticmethod
    def create(store: PipelineStore, payload: StageCreate) -> StageRead:
        canonical = load_canonical(store)
        data = payload.model_dump()
        data["order_index"] = len(canonical.stages)
        stage = store.insert_stage(data)
        logger.info("pipeline_stage_created stage_id=%s order_index=%s", stage.id, stage.order_index)
        return StageRead.model_validate(stage)

    @staticmethod
    def update(store: PipelineStore, stage_id: str, payload: StageUpdate) -> StageRead:
        ensure_default_stages(store)
        stage_uuid = coerce_uuid(stage_id, "stage_id")
        data = payload.model_dump(exclude_unset=True)
        if data.get("title") is None:
            data.pop("title", None)
        stage = store.update_stage(stage_uuid, data) if data else store.get_stage(stage_uuid)
        if not stage:
            raise PipelineNotFoundError("stage_not_found", "Pipeline stage not found")
        logger.info("pipeline_stage_updated stage_id=%s fields=%s", stage.id, ",".join(sorted(data)))
        return StageRead.model_validate(stage)

    @staticmethod
    def reorder(store: PipelineStore, ordered_ids: list[str]) -> StageReorderRead:
        """Assign ``order_index = position in ordered_ids`` to every listed stage.

        Unknown ids are skipped and reported instead of failing the call.
        """
        ensure_default_stages(store)
        updated: list[str] = []
        skipped: list[str] = []
        with store.atomic():
            for index, raw_id in enumerate(ordered_ids):
                stage_uuid = try_uuid(raw_id)
                stage = store.update_stage(stage_uuid, {"order_index": index}) if stage_uuid else None
                if stage is None:
                    logger.warning("pipeline_stage_reorder_skipped stage_id=%s index=%s", raw_id, index)
                    skipped.append(str(raw_id))
                    continue
                updated.append(str(stage.id))
        logger.info("pipeline_stages_reordered updated=%s skipped=%s", len(updated), len(skipped))
        return StageReorderRead(
            stages=list(load_canonical(store).stages),
            updated_ids=updated,
            skipped_ids=skipped,
        )

    @staticmethod
    def fallback_for(canonical: CanonicalStages, target) -> StageRead | None:
        """Pick the column that inherits the leads of ``target``.

        Closest predecessor by order, else closest successor, else any other
        canonical column.
        """
        candidates = [stage for stage in canonical.stages if stage.id != target.id]
        predecessors = [stage for stage in candidates if stage.order_index < target.order_index]
        if predecessors:
            return max(predecessors, key=stage_sort_key)
        successors = [stage for stage in candidates if stage.order_index > target.order_index]
        if successors:
            return min(successors, key=stage_sort_key)
        return candidates[0] if candidates else None

    @staticmethod
    def delete(store: PipelineStore, stage_id: str) -> StageDeletionRead:
        """Delete a stage row and hand its leads to another column.

        An absorbed row already shows its leads under the canonical column of
        the same title, so they are repointed there. A canonical row falls
        back to its nearest neighbour (see :meth:`fallback_for`).
        """
        canonical = load_canonical(store)
        stage_uuid = coerce_uuid(stage_id, "stage_id")
        if stage_uuid not in canonical.id_map or not store.get_stage(stage_uuid):
            raise PipelineNotFoundError("stage_not_found", "Pipeline stage not found")
        target = canonical.get(stage_uuid)
        if target.id != stage_uuid:
            fallback = target
        else:
            fallback = PipelineStages.fallback_for(canonical, target)

        moved = 0
        deleted = 0
        with store.atomic():
            if fallback is not None:
                moved = store.repoint_leads(stage_uuid, fallback.id)
            else:
                deleted = store.delete_leads_in_stage(stage_uuid)
            store.delete_stage(stage_uuid)

        if deleted:
            logger.warning(
                "pipeline_stage_deleted_without_destination stage_id=%s leads_deleted=%s",
                stage_uuid,
                deleted,
            )
        logger.info(
            "pipeline_stage_deleted stage_id=%s fallback_stage_id=%s leads_moved=%s",
            stage_uuid,
            fallback.id if fallback else None,
            moved,
        )
        return StageDeletionRead(
            stage_id=stage_uuid,
            fallback_stage_id=fallback.id if fallback else None,
            leads_moved=moved,
            leads_deleted=deleted,
            leads_discarded=deleted > 0,
        )


class PipelineLeads:
    @staticmethod
    def get(store: PipelineStore, lead_id: str) -> LeadRead:
        canonical = load_canonical(store)
        lead = _get_lead_or_404(store, lead_id)
        return remap_leads(canonical, [read_lead(lead)])[0]

    @staticmethod
    def create(store: PipelineStore, payload: LeadCreate) -> LeadRead:
        canonical = load_canonical(store)
        first = canonical.first()
        data = payload.model_dump()
        data["value"] = _blank_to_none(data.get("value"))
        data["stage_id"] = first.id
        data["position"] = 0
        lead = store.insert_lead(data)
        logger.info("pipeline_lead_created lead_id=%s stage_id=%s", lead.id, first.id)
        return read_lead(lead)

    @staticmethod
    def intake(store: PipelineStore, payload: LeadIntake) -> LeadRead:
        """Create a lead posted by an external form into the intake column."""
        if not (payload.name and payload.name.strip()) or not (payload.email and payload.email.strip()):
            raise PipelineValidationError("missing_fields", "Name and email are required")
        canonical = load_canonical(store)
        intake_title = settings.default_stage_titles[0] if settings.default_stage_titles else None
        target = (canonical.by_title(intake_title) if intake_title else None) or canonical.first()
        lead = store.insert_lead(
            {
                "name": payload.name.strip(),
                "email": payload.email.strip(),
                "whatsapp": payload.whatsapp or payload.phone,
                "company": payload.company,
                "notes": payload.notes,
                "value": _blank_to_none(payload.value),
                "campaign_source": payload.campaign_source,
                "stage_id": target.id,
                "position": 0,
            }
        )
        logger.info(
            "pipeline_lead_intake lead_id=%s stage_id=%s source=%s",
            lead.id,
            target.id,
            payload.campaign_source,
        )
        return read_lead(lead)

    @staticmethod
    def move(store: PipelineStore, lead_id: str, payload: LeadMove) -> LeadRead:
        canonical = load_canonical(store)
        lead_uuid = coerce_uuid(lead_id, "lead_id")
        target = _resolve_stage_or_404(canonical, payload.stage_id)
        lead = store.update_lead(lead_uuid, {"stage_id": target.id, "position": payload.position})
        if not lead:
            raise PipelineNotFoundError("lead_not_found", "Lead not found")
        logger.info(
            "pipeline_lead_moved lead_id=%s requested_stage_id=%s stage_id=%s position=%s",
            lead.id,
            payload.stage_id,
            target.id,
            payload.position,
        )
        return read_lead(lead)

    @staticmethod
    def update_content(store: PipelineStore, lead_id: str, payload: LeadContentUpdate) -> LeadRead:
        """Apply an edit dialog's changes without undoing a concurrent move.

        ``stage_id`` and ``position`` come from the freshly read row unless the
        caller sent them explicitly.
        """
        canonical = load_canonical(store)
        data = payload.model_dump(exclude_unset=True)
        update = {key: data[key] for key in LEAD_CONTENT_FIELDS if key in data}
        if update.get("name") is None:
            update.pop("name", None)
        if "value" in update:
            update["value"] = _blank_to_none(update["value"])

        existing = _get_lead_or_404(store, lead_id)
        if data.get("stage_id") is not None:
            update["stage_id"] = _resolve_stage_or_404(canonical, data["stage_id"]).id
        else:
            update["stage_id"] = existing.stage_id
        if data.get("position") is not None:
            update["position"] = data["position"]
        else:
            update["position"] = existing.position

        lead = store.update_lead(existing.id, update)
        if not lead:
            raise PipelineNotFoundError("lead_not_found", "Lead not found")
        logger.info("pipeline_lead_updated lead_id=%s fields=%s", lead.id, ",".join(sorted(update)))
        return remap_leads(canonical, [read_lead(lead)])[0]

    @staticmethod
    def delete(store: PipelineStore, lead_id: str) -> None:
        ensure_default_stages(store)
        if not store.delete_lead(coerce_uuid(lead_id, "lead_id")):
            raise PipelineNotFoundError("lead_not_found", "Lead not found")
        logger.info("pipeline_lead_deleted lead_id=%s", lead_id)


class PipelineBoards:
    @staticmethod
    def _project(store: PipelineStore, filters: LeadFilters | None) -> tuple[CanonicalStages, list[LeadRead]]:
        canonical = load_canonical(store)
        leads = read_leads(store, canonical)
        if filters is not None:
            leads = filters.apply(leads)
        return canonical, leads

    @staticmethod
    def board(store: PipelineStore, filters: LeadFilters | None = None) -> Board:
        canonical, leads = PipelineBoards._project(store, filters)
        return build_board(canonical, leads)

    @staticmethod
    def aggregates(store: PipelineStore, filters: LeadFilters | None = None) -> PipelineAggregates:
        canonical, leads = PipelineBoards._project(store, filters)
        return compute_aggregates(canonical, leads)


pipeline_stages = PipelineStages()
pipeline_leads = PipelineLeads()
pipeline_boards = PipelineBoards()
