"""Pydantic settings for Pipeline Authority Service behavior."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from packages.relay_shared.config import RelaySettings, resolve_component_settings
from services.state.pipeline_authority.component import SERVICE_COMPONENT_ID
from services.state.pipeline_authority.domain import Stage, StageType

DEFAULT_STAGES: tuple[Stage, ...] = (
    Stage(name="Commit", type=StageType.COMMIT),
    Stage(name="Build", type=StageType.BUILD),
    Stage(name="DEV", type=StageType.DEPLOY),
    Stage(name="QA", type=StageType.DEPLOY),
    Stage(name="INT", type=StageType.DEPLOY),
    Stage(name="PERF", type=StageType.DEPLOY),
    Stage(name="PROD", type=StageType.DEPLOY),
)


class PipelineAuthoritySettings(BaseModel):
    """Pipeline Authority Service runtime behavior settings."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    stages: tuple[Stage, ...] = DEFAULT_STAGES
    default_window_days: int = Field(default=90, gt=0)
    max_workers: int = Field(default=1, gt=0)
    owner_link_option: str = "dashboardId"

    @field_validator("stages")
    @classmethod
    def _validate_stages(cls, value: tuple[Stage, ...]) -> tuple[Stage, ...]:
        """Require a non-empty stage list with unique names."""
        if len(value) == 0:
            raise ValueError("stages must not be empty")
        names = [stage.name for stage in value]
        if len(set(names)) != len(names):
            raise ValueError("stage names must be unique")
        return value

    @field_validator("owner_link_option")
    @classmethod
    def _require_owner_link_option(cls, value: str) -> str:
        """Require a non-empty collector item option key."""
        normalized = value.strip()
        if normalized == "":
            raise ValueError("owner_link_option is required")
        return normalized


def resolve_pipeline_authority_settings(
    settings: RelaySettings,
) -> PipelineAuthoritySettings:
    """Resolve settings from ``components.service.pipeline_authority``."""
    return resolve_component_settings(
        settings=settings,
        component_id=SERVICE_COMPONENT_ID,
        model=PipelineAuthoritySettings,
    )
