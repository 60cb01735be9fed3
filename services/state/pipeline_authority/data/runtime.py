"""Pipeline Authority-owned Postgres runtime wiring."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from packages.relay_shared.config import RelaySettings
from resources.substrates.postgres import (
    ServiceSchemaSessionProvider,
    create_postgres_engine,
    create_session_factory,
    ping,
)
from resources.substrates.postgres.config import resolve_postgres_settings
from services.state.pipeline_authority.component import (
    SERVICE_COMPONENT_ID,
    component_id_to_schema_name,
)


@dataclass(frozen=True)
class PipelinePostgresRuntime:
    """Concrete service-owned handle for schema-scoped Postgres access."""

    engine: Engine
    session_factory: sessionmaker[Session]
    schema_sessions: ServiceSchemaSessionProvider
    health_timeout_seconds: float = 1.0

    @classmethod
    def from_settings(cls, settings: RelaySettings) -> "PipelinePostgresRuntime":
        """Build DB runtime from typed application settings."""
        postgres_config = resolve_postgres_settings(settings)
        engine = create_postgres_engine(postgres_config)
        session_factory = create_session_factory(engine)
        return cls(
            engine=engine,
            session_factory=session_factory,
            schema_sessions=ServiceSchemaSessionProvider(
                session_factory=session_factory,
                schema=pipeline_postgres_schema(),
            ),
            health_timeout_seconds=postgres_config.health_timeout_seconds,
        )

    def is_healthy(self) -> bool:
        """Return ``True`` when backing Postgres connection is reachable."""
        return ping(self.engine, timeout_seconds=self.health_timeout_seconds)


def pipeline_postgres_schema() -> str:
    """Resolve canonical schema name from component identity."""
    return component_id_to_schema_name(SERVICE_COMPONENT_ID)
