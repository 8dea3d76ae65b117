import logging

from fastapi import FastAPI

from crm_pipeline.api.pipeline import router as pipeline_router
from crm_pipeline.api.webhooks import router as webhooks_router
from crm_pipeline.config import settings

app = FastAPI(title="CRM Pipeline")

app.include_router(pipeline_router)
app.include_router(webhooks_router)


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.on_event("startup")
def configure_logging():
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
