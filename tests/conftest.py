import os
import uuid
from datetime import UTC, datetime

import pytest
from dotenv import load_dotenv
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from crm_pipeline import models  # noqa: F401
from crm_pipeline.config import TenantScope
from crm_pipeline.db import Base
from crm_pipeline.models.pipeline import Lead, PipelineStage
from crm_pipeline.services.pipeline.store import SqlPipelineStore

load_dotenv(os.path.join(os.getcwd(), ".env"))


@pytest.fixture(scope="session")
def engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite defers BEGIN on its own; emit it so savepoints nest correctly.
    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    return engine


@pytest.fixture()
def db_session(engine):
    """Session whose commits and rollbacks stay inside one outer transaction."""
    connection = engine.connect()
    transaction = connection.begin()
    SessionLocal = sessionmaker(
        bind=connection,
        autoflush=False,
        autocommit=False,
        join_transaction_mode="create_savepoint",
    )
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture()
def store(db_session):
    """Pooled store, the deployed configuration."""
    return SqlPipelineStore(db_session, tenant_id="tenant-a", scope=TenantScope.pooled)


# ============================================================================
# Row builders
# ============================================================================


@pytest.fixture()
def make_stage(db_session):
    def _make(title: str, order_index: int, tenant_id: str = "tenant-a", **extra) -> PipelineStage:
        stage = PipelineStage(title=title, order_index=order_index, tenant_id=tenant_id, **extra)
        db_session.add(stage)
        db_session.commit()
        db_session.refresh(stage)
        return stage

    return _make


@pytest.fixture()
def make_lead(db_session):
    def _make(stage_id, name: str | None = None, tenant_id: str = "tenant-a", **extra) -> Lead:
        extra.setdefault("created_at", datetime.now(UTC))
        lead = Lead(
            name=name or f"Lead {uuid.uuid4().hex[:6]}",
            stage_id=stage_id,
            tenant_id=tenant_id,
            **extra,
        )
        db_session.add(lead)
        db_session.commit()
        db_session.refresh(lead)
        return lead

    return _make


@pytest.fixture()
def six_stages(make_stage):
    """The conventional pipeline, ordered 0..5."""
    titles = ["Novos Leads", "Em Contato", "Não Retornou", "Proposta Enviada", "Fechado", "Perdido"]
    return [make_stage(title, index) for index, title in enumerate(titles)]
