"""Create pipeline stage and lead tables.

Revision ID: a1c2e3f4b5d6
Revises:
Create Date: 2026-10-19
"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "a1c2e3f4b5d6"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    stagekind = sa.Enum("new", "active", "won", "lost", name="stagekind")

    op.create_table(
        "crm_pipeline_stages",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("title", sa.String(length=160), nullable=False),
        sa.Column("order_index", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("tenant_id", sa.String(length=120), nullable=False),
        sa.Column("kind", stagekind, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_crm_pipeline_stages_order", "crm_pipeline_stages", ["order_index", "id"])

    op.create_table(
        "crm_leads",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("company", sa.String(length=200), nullable=True),
        sa.Column("whatsapp", sa.String(length=40), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("campaign_source", sa.String(length=120), nullable=True),
        sa.Column("value", sa.String(length=60), nullable=True),
        sa.Column("stage_id", sa.Uuid(), nullable=True),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("tenant_id", sa.String(length=120), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_crm_leads_stage_position", "crm_leads", ["stage_id", "position"])


def downgrade() -> None:
    op.drop_index("ix_crm_leads_stage_position", table_name="crm_leads")
    op.drop_table("crm_leads")
    op.drop_index("ix_crm_pipeline_stages_order", table_name="crm_pipeline_stages")
    op.drop_table("crm_pipeline_stages")
    sa.Enum(name="stagekind").drop(op.get_bind(), checkfirst=True)
