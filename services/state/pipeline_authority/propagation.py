"""Propagation detection and stage timestamp reconciliation."""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType

from services.state.pipeline_authority.domain import (
    CommitEntry,
    PipelineLedger,
    PipelineOwner,
    ReconciledCommit,
    Stage,
    StageType,
)
from services.state.pipeline_authority.stages import (
    StageRegistry,
    resolve_environment_name,
)

_EMPTY: Mapping[str, CommitEntry] = MappingProxyType({})


def commits_at(
    owner: PipelineOwner, ledger: PipelineLedger, stage: Stage
) -> Mapping[str, CommitEntry]:
    """Return a read-only view of revisions recorded for one stage."""
    environment = resolve_environment_name(stage, owner)
    if environment is None:
        return _EMPTY
    bucket = ledger.environments.get(environment)
    if bucket is None:
        return _EMPTY
    return MappingProxyType(bucket)


def not_propagated(
    registry: StageRegistry,
    owner: PipelineOwner,
    ledger: PipelineLedger,
    stage: Stage,
) -> tuple[ReconciledCommit, ...]:
    """Return commits present at ``stage`` but absent from every later stage."""
    start = commits_at(owner, ledger, stage)
    later: set[str] = set()
    for downstream in registry.after(stage):
        later.update(commits_at(owner, ledger, downstream).keys())
    return tuple(
        reconcile(registry, ReconciledCommit.from_entry(entry), owner, ledger)
        for revision, entry in start.items()
        if revision not in later
    )


def reconcile(
    registry: StageRegistry,
    commit: ReconciledCommit,
    owner: PipelineOwner,
    ledger: PipelineLedger,
) -> ReconciledCommit:
    """Fill first-entry timestamps for every stage the revision reached.

    Stages are walked in registry order and an existing entry for a stage
    name is never overwritten.
    """
    timestamps = dict(commit.stage_timestamps)
    for stage in registry:
        entry = commits_at(owner, ledger, stage).get(commit.revision_id)
        if entry is not None and stage.name not in timestamps:
            timestamps[stage.name] = entry.timestamp
    return commit.model_copy(update={"stage_timestamps": timestamps})


def unmapped_stages(registry: StageRegistry, owner: PipelineOwner) -> tuple[str, ...]:
    """Return deploy stage names with no environment configured by the owner."""
    return tuple(
        stage.name
        for stage in registry
        if stage.type is StageType.DEPLOY
        and resolve_environment_name(stage, owner) is None
    )
