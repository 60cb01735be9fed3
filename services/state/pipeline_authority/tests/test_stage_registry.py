"""Unit tests for stage ordering and stage-to-environment resolution."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from services.state.pipeline_authority.config import (
    DEFAULT_STAGES,
    PipelineAuthoritySettings,
)
from services.state.pipeline_authority.domain import (
    PipelineOwner,
    Stage,
    StageResolution,
    StageType,
)
from services.state.pipeline_authority.stages import (
    StageRegistry,
    resolve_environment_name,
)

COMMIT = Stage(name="Commit", type=StageType.COMMIT)
BUILD = Stage(name="Build", type=StageType.BUILD)
QA = Stage(name="QA", type=StageType.DEPLOY)
PROD = Stage(name="PROD", type=StageType.DEPLOY)


def _owner(**stage_environments: str) -> PipelineOwner:
    """Return an owner with the given stage-environment mapping."""
    return PipelineOwner(owner_id="owner-1", stage_environments=stage_environments)


def test_ordinal_is_index_and_terminal_is_last_stage() -> None:
    """Ordinals should follow construction order and the last stage is terminal."""
    registry = StageRegistry([COMMIT, BUILD, QA, PROD])

    assert [registry.ordinal(stage) for stage in registry] == [0, 1, 2, 3]
    assert registry.terminal == PROD
    assert registry.after(BUILD) == (QA, PROD)
    assert registry.after(PROD) == ()
    assert len(registry) == 4


def test_registry_rejects_empty_and_duplicate_stage_lists() -> None:
    """Registry construction should fail for empty or duplicated stage names."""
    with pytest.raises(ValueError, match="at least one stage"):
        StageRegistry([])
    with pytest.raises(ValueError, match="duplicate stage name"):
        StageRegistry([QA, Stage(name="QA", type=StageType.OTHER)])


def test_ordinal_rejects_unregistered_stage() -> None:
    """Stages absent from the registry, or differing in type, are rejected."""
    registry = StageRegistry([COMMIT, QA])

    with pytest.raises(ValueError, match="stage not registered"):
        registry.ordinal(PROD)
    with pytest.raises(ValueError, match="stage not registered"):
        registry.ordinal(Stage(name="QA", type=StageType.OTHER))


def test_stage_equality_is_by_name_and_type() -> None:
    """Two stages are equal only when both name and type match."""
    assert Stage(name="QA", type=StageType.DEPLOY) == QA
    assert Stage(name="QA", type=StageType.OTHER) != QA


def test_stage_rejects_blank_name() -> None:
    """Blank stage names should fail model validation."""
    with pytest.raises(ValidationError):
        Stage(name="  ", type=StageType.DEPLOY)


def test_resolution_variant_follows_stage_type() -> None:
    """Commit and build stages self-resolve; all other types map through owner."""
    assert COMMIT.resolution is StageResolution.SELF_RESOLVING
    assert BUILD.resolution is StageResolution.SELF_RESOLVING
    assert QA.resolution is StageResolution.MAPPED_BY_OWNER
    other = Stage(name="Scan", type=StageType.OTHER)
    assert other.resolution is StageResolution.MAPPED_BY_OWNER


def test_self_resolving_stage_ignores_owner_mapping() -> None:
    """Commit and build stages should resolve to their own names."""
    owner = _owner(Commit="somewhere-else")

    assert resolve_environment_name(COMMIT, owner) == "Commit"
    assert resolve_environment_name(BUILD, owner) == "Build"


def test_mapped_stage_uses_owner_mapping() -> None:
    """Deploy stages should resolve through the owner's mapping."""
    owner = _owner(QA="qa-env")

    assert resolve_environment_name(QA, owner) == "qa-env"


def test_mapped_stage_returns_none_for_unset_or_blank_mapping() -> None:
    """Missing and blank mappings should both resolve to no environment."""
    owner = _owner(PROD="   ")

    assert resolve_environment_name(QA, owner) is None
    assert resolve_environment_name(PROD, owner) is None


def test_registry_builds_from_default_settings() -> None:
    """Default settings should yield the standard seven-stage pipeline."""
    registry = StageRegistry.from_settings(PipelineAuthoritySettings())

    assert registry.stages == DEFAULT_STAGES
    assert [stage.name for stage in registry] == [
        "Commit",
        "Build",
        "DEV",
        "QA",
        "INT",
        "PERF",
        "PROD",
    ]
    assert registry.terminal.name == "PROD"
