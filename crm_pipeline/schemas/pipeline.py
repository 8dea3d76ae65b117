from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from crm_pipeline.models.enums import StageKind


class MoneyValue(BaseModel):
    """Lead value as stored plus the result of parsing it."""

    model_config = ConfigDict(frozen=True)

    raw: str | None = None
    parsed: Decimal | None = None
    error: str | None = None

    @property
    def amount(self) -> Decimal:
        return self.parsed if self.parsed is not None else Decimal("0")


class StageCreate(BaseModel):
    title: str = Field(min_length=1, max_length=160)
    kind: StageKind | None = None


class StageUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=160)
    kind: StageKind | None = None


class StageRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    order_index: int
    tenant_id: str
    kind: StageKind | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class StageReorder(BaseModel):
    ids: list[str] = Field(default_factory=list)


class StageReorderRead(BaseModel):
    stages: list[StageRead]
    updated_ids: list[str]
    skipped_ids: list[str]


class StageDeletionRead(BaseModel):
    stage_id: UUID
    fallback_stage_id: UUID | None = None
    leads_moved: int = 0
    leads_deleted: int = 0
    leads_discarded: bool = False


class LeadBase(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    email: str | None = Field(default=None, max_length=255)
    company: str | None = Field(default=None, max_length=200)
    whatsapp: str | None = Field(default=None, max_length=40)
    notes: str | None = None
    value: str | None = Field(default=None, max_length=60)
    campaign_source: str | None = Field(default=None, max_length=120)


class LeadCreate(LeadBase):
    pass


class LeadContentUpdate(BaseModel):
    """Fields an edit dialog may change.

    Anything else sent by the client is ignored. ``stage_id`` and ``position``
    are only written when the caller sends them explicitly.
    """

    name: str | None = Field(default=None, min_length=1, max_length=200)
    company: str | None = Field(default=None, max_length=200)
    email: str | None = Field(default=None, max_length=255)
    whatsapp: str | None = Field(
        default=None,
        max_length=40,
        validation_alias=AliasChoices("whatsapp", "phone"),
    )
    notes: str | None = None
    value: str | None = Field(default=None, max_length=60)
    stage_id: UUID | None = None
    position: int | None = None


class LeadMove(BaseModel):
    stage_id: UUID
    position: int = 0


class LeadIntake(BaseModel):
    """Payload posted by external lead forms."""

    model_config = ConfigDict(populate_by_name=True)

    name: str | None = None
    email: str | None = None
    whatsapp: str | None = None
    phone: str | None = None
    company: str | None = None
    notes: str | None = None
    value: str | None = None
    campaign_source: str | None = Field(default=None, alias="campaignSource")


class LeadRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: str | None = None
    company: str | None = None
    whatsapp: str | None = None
    notes: str | None = None
    campaign_source: str | None = None
    value: str | None = None
    stage_id: UUID | None = None
    position: int = 0
    tenant_id: str
    created_at: datetime
    updated_at: datetime | None = None
    money: MoneyValue | None = None


class BoardColumnRead(BaseModel):
    id: UUID
    title: str
    order_index: int
    kind: StageKind
    lead_count: int
    value: Decimal
    value_display: str
    leads: list[LeadRead]


class BoardRead(BaseModel):
    columns: list[BoardColumnRead]
    unassigned: list[LeadRead]


class PipelineSummaryRead(BaseModel):
    total_leads: int
    new_leads_count: int
    won_leads_count: int
    lost_leads_count: int
    active_leads_count: int
    orphaned_leads_count: int
    won_value: Decimal
    potential_value: Decimal
    won_value_display: str
    potential_value_display: str
