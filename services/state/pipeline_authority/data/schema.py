"""SQLAlchemy table definitions owned by Pipeline Authority Service."""

from __future__ import annotations

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Column,
    DateTime,
    Engine,
    ForeignKey,
    Identity,
    MetaData,
    PrimaryKeyConstraint,
    String,
    Table,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB

from packages.relay_shared.ids import ulid_primary_key_column, ulid_reference_column
from services.state.pipeline_authority.data.runtime import pipeline_postgres_schema

metadata = MetaData()

pipeline_ledgers = Table(
    "pipeline_ledgers",
    metadata,
    ulid_primary_key_column("id", table_name="pipeline_ledgers"),
    Column("pipeline_identifier", String(256), nullable=False),
    Column(
        "created_at",
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    ),
    UniqueConstraint(
        "pipeline_identifier", name="uq_pipeline_ledgers_pipeline_identifier"
    ),
)

pipeline_commits = Table(
    "pipeline_commits",
    metadata,
    ulid_primary_key_column("id", table_name="pipeline_commits"),
    Column("seq", BigInteger, Identity(), nullable=False),
    ulid_reference_column("ledger_id", "pipeline_ledgers.id"),
    Column("environment_name", String(256), nullable=False),
    Column("revision_id", String(256), nullable=False),
    Column("timestamp_ms", BigInteger, nullable=False),
    Column("author", String(256), nullable=False, server_default=""),
    Column("message", Text, nullable=False, server_default=""),
    Column("committed_at_ms", BigInteger, nullable=True),
    Column(
        "created_at",
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    ),
    UniqueConstraint(
        "ledger_id",
        "environment_name",
        "revision_id",
        name="uq_pipeline_commits_ledger_env_revision",
    ),
    CheckConstraint("timestamp_ms >= 0", name="ck_pipeline_commits_timestamp_ms"),
)

pipeline_owners = Table(
    "pipeline_owners",
    metadata,
    Column("id", String(128), primary_key=True),
    Column("title", String(256), nullable=False, server_default=""),
)

owner_stage_environments = Table(
    "owner_stage_environments",
    metadata,
    Column(
        "owner_id",
        String(128),
        ForeignKey("pipeline_owners.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("stage_name", String(128), nullable=False),
    Column("environment_name", String(256), nullable=False, server_default=""),
    PrimaryKeyConstraint("owner_id", "stage_name", name="pk_owner_stage_environments"),
)

collector_items = Table(
    "collector_items",
    metadata,
    Column("id", String(128), primary_key=True),
    Column("options", JSONB, nullable=False, server_default=text("'{}'::jsonb")),
)


def ensure_schema(engine: Engine) -> None:
    """Create the owned schema and its tables when missing."""
    schema = pipeline_postgres_schema()
    with engine.begin() as connection:
        connection.execute(text(f"CREATE SCHEMA IF NOT EXISTS {schema}"))
        connection.execute(text(f"SET LOCAL search_path TO {schema}, public"))
        metadata.create_all(connection)
