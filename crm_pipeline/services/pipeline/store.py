"""Stage and lead persistence used by the pipeline façade.

The façade only talks to :class:`PipelineStore`. :class:`SqlPipelineStore`
is the SQLAlchemy implementation; every write commits on its own unless it
runs inside :meth:`SqlPipelineStore.atomic`.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, Protocol

from sqlalchemy.orm import Session

from crm_pipeline.config import TenantScope, settings
from crm_pipeline.models.pipeline import Lead, PipelineStage


class PipelineStore(Protocol):
    tenant_id: str

    def list_stages(self) -> list[PipelineStage]: ...

    def list_leads(self) -> list[Lead]: ...

    def get_stage(self, stage_id: uuid.UUID) -> PipelineStage | None: ...

    def get_lead(self, lead_id: uuid.UUID) -> Lead | None: ...

    def insert_stage(self, fields: dict[str, Any]) -> PipelineStage: ...

    def insert_stages(self, rows: list[dict[str, Any]]) -> list[PipelineStage]: ...

    def update_stage(self, stage_id: uuid.UUID, fields: dict[str, Any]) -> PipelineStage | None: ...

    def delete_stage(self, stage_id: uuid.UUID) -> bool: ...

    def insert_lead(self, fields: dict[str, Any]) -> Lead: ...

    def update_lead(self, lead_id: uuid.UUID, fields: dict[str, Any]) -> Lead | None: ...

    def delete_lead(self, lead_id: uuid.UUID) -> bool: ...

    def repoint_leads(self, from_stage_id: uuid.UUID, to_stage_id: uuid.UUID) -> int: ...

    def delete_leads_in_stage(self, stage_id: uuid.UUID) -> int: ...

    def atomic(self) -> Any: ...


class SqlPipelineStore:
    def __init__(
        self,
        db: Session,
        tenant_id: str | None = None,
        scope: TenantScope | None = None,
    ):
        self.db = db
        self.tenant_id = tenant_id or settings.shared_tenant_id
        self.scope = scope or settings.tenant_scope
        self._atomic_depth = 0

    def _scoped(self, query, model):
        if self.scope == TenantScope.isolated:
            query = query.filter(model.tenant_id == self.tenant_id)
        return query

    def _visible(self, row):
        if row is None:
            return None
        if self.scope == TenantScope.isolated and row.tenant_id != self.tenant_id:
            return None
        return row

    def _commit(self) -> None:
        if self._atomic_depth:
            self.db.flush()
        else:
            self.db.commit()

    @contextmanager
    def atomic(self) -> Iterator[SqlPipelineStore]:
        """Group several writes into one transaction."""
        outermost = self._atomic_depth == 0
        self._atomic_depth += 1
        try:
            yield self
            if outermost:
                self.db.commit()
        except Exception:
            if outermost:
                self.db.rollback()
            raise
        finally:
            self._atomic_depth -= 1

    # Stages

    def list_stages(self) -> list[PipelineStage]:
        query = self._scoped(self.db.query(PipelineStage), PipelineStage)
        return query.order_by(PipelineStage.order_index.asc(), PipelineStage.id.asc()).all()

    def get_stage(self, stage_id: uuid.UUID) -> PipelineStage | None:
        return self._visible(self.db.get(PipelineStage, stage_id))

    def insert_stage(self, fields: dict[str, Any]) -> PipelineStage:
        stage = PipelineStage(**{"tenant_id": self.tenant_id, **fields})
        self.db.add(stage)
        self._commit()
        self.db.refresh(stage)
        return stage

    def insert_stages(self, rows: list[dict[str, Any]]) -> list[PipelineStage]:
        stages = [PipelineStage(**{"tenant_id": self.tenant_id, **row}) for row in rows]
        self.db.add_all(stages)
        self._commit()
        for stage in stages:
            self.db.refresh(stage)
        return stages

    def update_stage(self, stage_id: uuid.UUID, fields: dict[str, Any]) -> PipelineStage | None:
        stage = self.get_stage(stage_id)
        if not stage:
            return None
        for key, value in fields.items():
            setattr(stage, key, value)
        self._commit()
        self.db.refresh(stage)
        return stage

    def delete_stage(self, stage_id: uuid.UUID) -> bool:
        stage = self.get_stage(stage_id)
        if not stage:
            return False
        self.db.delete(stage)
        self._commit()
        return True

    # Leads

    def list_leads(self) -> list[Lead]:
        query = self._scoped(self.db.query(Lead), Lead)
        return query.order_by(Lead.position.asc(), Lead.created_at.desc()).all()

    def get_lead(self, lead_id: uuid.UUID) -> Lead | None:
        # Always re-read: edit dialogs rely on the current stage and position.
        return self._visible(self.db.get(Lead, lead_id, populate_existing=True))

    def insert_lead(self, fields: dict[str, Any]) -> Lead:
        lead = Lead(**{"tenant_id": self.tenant_id, **fields})
        self.db.add(lead)
        self._commit()
        self.db.refresh(lead)
        return lead

    def update_lead(self, lead_id: uuid.UUID, fields: dict[str, Any]) -> Lead | None:
        lead = self.get_lead(lead_id)
        if not lead:
            return None
        for key, value in fields.items():
            setattr(lead, key, value)
        self._commit()
        self.db.refresh(lead)
        return lead

    def delete_lead(self, lead_id: uuid.UUID) -> bool:
        lead = self.get_lead(lead_id)
        if not lead:
            return False
        self.db.delete(lead)
        self._commit()
        return True

    def repoint_leads(self, from_stage_id: uuid.UUID, to_stage_id: uuid.UUID) -> int:
        query = self._scoped(self.db.query(Lead), Lead).filter(Lead.stage_id == from_stage_id)
        count = query.update({Lead.stage_id: to_stage_id})
        self._commit()
        return int(count)

    def delete_leads_in_stage(self, stage_id: uuid.UUID) -> int:
        query = self._scoped(self.db.query(Lead), Lead).filter(Lead.stage_id == stage_id)
        count = query.delete()
        self._commit()
        return int(count)
