"""Ordered stage registry and stage-to-environment resolution."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from services.state.pipeline_authority.config import PipelineAuthoritySettings
from services.state.pipeline_authority.domain import (
    PipelineOwner,
    Stage,
    StageResolution,
)


class StageRegistry:
    """Immutable ordered stage sequence; a stage's ordinal is its index."""

    def __init__(self, stages: Iterable[Stage]) -> None:
        ordered = tuple(stages)
        if len(ordered) == 0:
            raise ValueError("stage registry requires at least one stage")
        ordinals: dict[str, int] = {}
        for index, stage in enumerate(ordered):
            if stage.name.strip() == "":
                raise ValueError("stage name is required")
            if stage.name in ordinals:
                raise ValueError(f"duplicate stage name: {stage.name}")
            ordinals[stage.name] = index
        self._stages = ordered
        self._ordinals = ordinals

    @classmethod
    def from_settings(cls, settings: PipelineAuthoritySettings) -> "StageRegistry":
        """Build the registry from configured stages."""
        return cls(settings.stages)

    @property
    def stages(self) -> tuple[Stage, ...]:
        return self._stages

    @property
    def terminal(self) -> Stage:
        """Return the last stage in pipeline order."""
        return self._stages[-1]

    def ordinal(self, stage: Stage) -> int:
        """Return the index of ``stage``; unknown stages raise ``ValueError``."""
        index = self._ordinals.get(stage.name)
        if index is None or self._stages[index] != stage:
            raise ValueError(f"stage not registered: {stage.name}")
        return index

    def after(self, stage: Stage) -> tuple[Stage, ...]:
        """Return every stage with a greater ordinal than ``stage``."""
        return self._stages[self.ordinal(stage) + 1 :]

    def __iter__(self) -> Iterator[Stage]:
        return iter(self._stages)

    def __len__(self) -> int:
        return len(self._stages)


def resolve_environment_name(stage: Stage, owner: PipelineOwner) -> str | None:
    """Return the environment name holding commits for ``stage``.

    Commit and build stages resolve to their own name. Every other stage is
    looked up in the owner's mapping; unset or blank mappings yield ``None``.
    """
    if stage.resolution is StageResolution.SELF_RESOLVING:
        return stage.name
    mapped = owner.stage_environments.get(stage.name)
    if mapped is None or mapped.strip() == "":
        return None
    return mapped
