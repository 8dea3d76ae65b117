import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime, Enum, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from crm_pipeline.db import Base
from crm_pipeline.models.enums import StageKind


class PipelineStage(Base):
    """One column of the lead board.

    Rows are shared across tenants when the pipeline runs pooled; rows with the
    same title collapse into a single canonical column on read.
    """

    __tablename__ = "crm_pipeline_stages"
    __table_args__ = (Index("ix_crm_pipeline_stages_order", "order_index", "id"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(160), nullable=False)
    order_index: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    tenant_id: Mapped[str] = mapped_column(String(120), nullable=False)
    # None means the title heuristic decides.
    kind: Mapped[StageKind | None] = mapped_column(Enum(StageKind), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(UTC))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )


class Lead(Base):
    __tablename__ = "crm_leads"
    __table_args__ = (Index("ix_crm_leads_stage_position", "stage_id", "position"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255))
    company: Mapped[str | None] = mapped_column(String(200))
    whatsapp: Mapped[str | None] = mapped_column(String(40))
    notes: Mapped[str | None] = mapped_column(Text)
    campaign_source: Mapped[str | None] = mapped_column(String(120))
    # Free text as typed by users ("R$ 1.200,00") or written by integrations ("1500.00").
    value: Mapped[str | None] = mapped_column(String(60))
    # No foreign key: leads may reference absorbed or already removed stage rows.
    stage_id: Mapped[uuid.UUID | None] = mapped_column(Uuid)
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    tenant_id: Mapped[str] = mapped_column(String(120), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(UTC))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )
