"""Inbound lead webhooks."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from crm_pipeline.api.deps import get_db
from crm_pipeline.schemas.pipeline import LeadIntake
from crm_pipeline.services.pipeline import pipeline_leads
from crm_pipeline.services.pipeline.errors import PipelineError
from crm_pipeline.services.pipeline.store import SqlPipelineStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/leads")
def receive_lead(payload: LeadIntake, db: Session = Depends(get_db)):
    """Accept a lead from an external form.

    Any ``organizationId`` in the payload is ignored: intake always lands in
    the shared workspace.
    """
    store = SqlPipelineStore(db)
    try:
        lead = pipeline_leads.intake(store, payload)
    except PipelineError as exc:
        logger.info("lead_webhook_rejected code=%s", exc.code)
        raise exc.to_http_exception() from exc
    return {"success": True, "lead": lead.model_dump(mode="json", exclude={"money"})}
