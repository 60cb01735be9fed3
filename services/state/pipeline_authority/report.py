"""Per-pipeline report assembly, search window resolution, and owner linkage."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from services.state.pipeline_authority.domain import (
    CollectorItem,
    PipelineLedger,
    PipelineOwner,
    ReconciledCommit,
    Stage,
    StageReport,
)
from services.state.pipeline_authority.propagation import (
    not_propagated,
    unmapped_stages,
)
from services.state.pipeline_authority.stages import StageRegistry

MILLIS_PER_DAY = 24 * 60 * 60 * 1000


class LinkageError(ValueError):
    """Raised when a collector item cannot be linked to its pipeline owner."""

    def __init__(self, message: str, *, pipeline_identifier: str) -> None:
        super().__init__(message)
        self.pipeline_identifier = pipeline_identifier


@dataclass(frozen=True)
class SearchWindow:
    """Inclusive epoch-millisecond bounds applied to terminal-stage commits."""

    lower_bound: int
    upper_bound: int

    def contains(self, timestamp: int | None) -> bool:
        if timestamp is None:
            return False
        return self.lower_bound <= timestamp <= self.upper_bound


def resolve_window(
    *,
    begin_date: int | None,
    end_date: int | None,
    now_ms: int,
    default_window_days: int,
) -> SearchWindow:
    """Resolve request bounds, defaulting to the trailing window ending now.

    Inverted windows are returned as given.
    """
    lower = (
        now_ms - default_window_days * MILLIS_PER_DAY
        if begin_date is None
        else begin_date
    )
    upper = now_ms if end_date is None else end_date
    return SearchWindow(lower_bound=lower, upper_bound=upper)


def resolve_owner_id(
    collector_item: CollectorItem | None,
    *,
    pipeline_identifier: str,
    option_key: str,
) -> str:
    """Read the owner id stored in a collector item's options."""
    if collector_item is None:
        raise LinkageError(
            "collector item not found",
            pipeline_identifier=pipeline_identifier,
        )
    owner_id = collector_item.options.get(option_key)
    if not isinstance(owner_id, str) or owner_id.strip() == "":
        raise LinkageError(
            f"collector item option '{option_key}' is missing or invalid",
            pipeline_identifier=pipeline_identifier,
        )
    return owner_id.strip()


def within_window(
    commits: Iterable[ReconciledCommit], *, stage: Stage, window: SearchWindow
) -> tuple[ReconciledCommit, ...]:
    """Keep commits whose timestamp for ``stage`` falls inside ``window``."""
    return tuple(
        commit
        for commit in commits
        if window.contains(commit.stage_timestamps.get(stage.name))
    )


def build_stage_report(
    *,
    registry: StageRegistry,
    owner: PipelineOwner,
    ledger: PipelineLedger,
    window: SearchWindow,
) -> StageReport:
    """Compute un-propagated commits for every stage of one pipeline."""
    terminal = registry.terminal
    stages: dict[str, tuple[ReconciledCommit, ...]] = {}
    for stage in registry:
        commits = not_propagated(registry, owner, ledger, stage)
        if stage == terminal:
            commits = within_window(commits, stage=stage, window=window)
        stages[stage.name] = commits
    return StageReport(
        pipeline_identifier=ledger.pipeline_identifier,
        stages=stages,
        unmapped_stages=unmapped_stages(registry, owner),
    )
