from fastapi import Depends, Header
from sqlalchemy.orm import Session

from crm_pipeline.db import get_db
from crm_pipeline.services.pipeline.store import SqlPipelineStore

__all__ = ["get_db", "get_store"]


def get_store(
    db: Session = Depends(get_db),
    x_tenant_id: str | None = Header(default=None),
) -> SqlPipelineStore:
    """Pipeline store for the calling tenant.

    Tenant resolution belongs to the auth layer; the header is its hand-off.
    Without it the shared workspace tenant is used.
    """
    return SqlPipelineStore(db, tenant_id=x_tenant_id)
