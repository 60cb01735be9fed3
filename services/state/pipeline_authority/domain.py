"""Domain contracts for Pipeline Authority Service payloads."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from packages.relay_shared.errors import ErrorDetail


class StageType(str, Enum):
    """Kinds of pipeline stages a commit can enter."""

    COMMIT = "commit"
    BUILD = "build"
    DEPLOY = "deploy"
    OTHER = "other"


class StageResolution(str, Enum):
    """How a stage maps to the environment name used for ledger lookups.

    ``SELF_RESOLVING`` stages use their own name. ``MAPPED_BY_OWNER`` stages
    are looked up in the pipeline owner's stage-environment mapping.
    """

    SELF_RESOLVING = "self_resolving"
    MAPPED_BY_OWNER = "mapped_by_owner"


_SELF_RESOLVING_TYPES = frozenset({StageType.COMMIT, StageType.BUILD})


class Stage(BaseModel):
    """One named step in a delivery pipeline."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    type: StageType

    @field_validator("name")
    @classmethod
    def _require_name(cls, value: str) -> str:
        """Reject blank stage names."""
        normalized = value.strip()
        if normalized == "":
            raise ValueError("stage name is required")
        return normalized

    @property
    def resolution(self) -> StageResolution:
        """Return the environment resolution variant for this stage type."""
        if self.type in _SELF_RESOLVING_TYPES:
            return StageResolution.SELF_RESOLVING
        return StageResolution.MAPPED_BY_OWNER


class CommitEntry(BaseModel):
    """One commit observed entering one environment."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    revision_id: str
    timestamp: int
    author: str = ""
    message: str = ""
    committed_at: int | None = None


class PipelineLedger(BaseModel):
    """Per-pipeline record of commits observed in each environment.

    ``environments`` maps environment name to an insertion-ordered mapping of
    revision id to the entry recorded when that revision first arrived.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    ledger_id: str
    pipeline_identifier: str
    environments: dict[str, dict[str, CommitEntry]] = Field(default_factory=dict)


class PipelineOwner(BaseModel):
    """Dashboard that owns one pipeline and maps stages to environments."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    owner_id: str
    title: str = ""
    stage_environments: dict[str, str] = Field(default_factory=dict)


class CollectorItem(BaseModel):
    """Tracked item whose options carry the link to its pipeline owner."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    collector_item_id: str
    options: dict[str, Any] = Field(default_factory=dict)


class ReconciledCommit(BaseModel):
    """Commit view annotated with first-entry timestamps per stage name."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    revision_id: str
    author: str = ""
    message: str = ""
    committed_at: int | None = None
    stage_timestamps: dict[str, int] = Field(default_factory=dict)

    @classmethod
    def from_entry(cls, entry: CommitEntry) -> "ReconciledCommit":
        """Start a reconciled view from one ledger entry with no timestamps."""
        return cls(
            revision_id=entry.revision_id,
            author=entry.author,
            message=entry.message,
            committed_at=entry.committed_at,
        )


class StageReport(BaseModel):
    """Un-propagated commits per stage for one pipeline."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    pipeline_identifier: str
    stages: dict[str, tuple[ReconciledCommit, ...]]
    unmapped_stages: tuple[str, ...] = ()


class PipelineReportResult(BaseModel):
    """Outcome for one requested pipeline identifier."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    pipeline_identifier: str
    report: StageReport | None = None
    errors: tuple[ErrorDetail, ...] = ()

    @property
    def ok(self) -> bool:
        """Return ``True`` when a report was produced without errors."""
        return self.report is not None and len(self.errors) == 0


class PipelineSearchResult(BaseModel):
    """Batch search payload in request order with the resolved window."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    results: tuple[PipelineReportResult, ...]
    lower_bound: int
    upper_bound: int


class HealthStatus(BaseModel):
    """Pipeline Authority and owned dependency readiness status payload."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    service_ready: bool
    substrate_ready: bool
    stage_count: int
    detail: str
