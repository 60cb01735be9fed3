"""Data-layer exports for Pipeline Authority Service."""

from services.state.pipeline_authority.data.repository import (
    InMemoryPipelineRepository,
    PostgresPipelineRepository,
)
from services.state.pipeline_authority.data.runtime import PipelinePostgresRuntime
from services.state.pipeline_authority.data.schema import ensure_schema

__all__ = [
    "InMemoryPipelineRepository",
    "PipelinePostgresRuntime",
    "PostgresPipelineRepository",
    "ensure_schema",
]
