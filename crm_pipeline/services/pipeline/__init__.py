"""Lead pipeline engine.

Canonical stage derivation, board projection, rollups and the mutation
façade used by the HTTP layer.
"""

from crm_pipeline.services.pipeline.service import (
    PipelineBoards,
    PipelineLeads,
    PipelineStages,
    ensure_default_stages,
    load_canonical,
    pipeline_boards,
    pipeline_leads,
    pipeline_stages,
)
from crm_pipeline.services.pipeline.store import PipelineStore, SqlPipelineStore

__all__ = [
    "PipelineBoards",
    "PipelineLeads",
    "PipelineStages",
    "PipelineStore",
    "SqlPipelineStore",
    "ensure_default_stages",
    "load_canonical",
    "pipeline_boards",
    "pipeline_leads",
    "pipeline_stages",
]
