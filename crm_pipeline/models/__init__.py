from crm_pipeline.models.enums import StageKind  # noqa: F401
from crm_pipeline.models.pipeline import Lead, PipelineStage  # noqa: F401
