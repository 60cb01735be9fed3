"""Authoritative in-process Python API for Pipeline Authority Service."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from packages.relay_shared.config import RelaySettings
from packages.relay_shared.envelope import Envelope, EnvelopeMeta
from services.state.pipeline_authority.domain import (
    CommitEntry,
    HealthStatus,
    PipelineLedger,
    PipelineSearchResult,
)


class PipelineAuthorityService(ABC):
    """Public API for pipeline commit propagation tracking."""

    @abstractmethod
    def search(
        self,
        *,
        meta: EnvelopeMeta,
        pipeline_identifiers: Sequence[str],
        begin_date: int | None = None,
        end_date: int | None = None,
    ) -> Envelope[PipelineSearchResult]:
        """Report un-propagated commits per stage for each pipeline identifier."""

    @abstractmethod
    def get_or_create_ledger(
        self, *, meta: EnvelopeMeta, pipeline_identifier: str
    ) -> Envelope[PipelineLedger]:
        """Return the ledger for one pipeline, creating it when missing."""

    @abstractmethod
    def record_commit(
        self,
        *,
        meta: EnvelopeMeta,
        pipeline_identifier: str,
        environment_name: str,
        revision_id: str,
        timestamp: int,
        author: str = "",
        message: str = "",
        committed_at: int | None = None,
    ) -> Envelope[CommitEntry]:
        """Record one commit entering one environment of a pipeline."""

    @abstractmethod
    def health(self, *, meta: EnvelopeMeta) -> Envelope[HealthStatus]:
        """Return service and owned dependency readiness status."""


def build_pipeline_authority_service(
    *, settings: RelaySettings
) -> PipelineAuthorityService:
    """Build default Pipeline Authority implementation from typed settings."""
    from services.state.pipeline_authority.implementation import (
        DefaultPipelineAuthorityService,
    )

    return DefaultPipelineAuthorityService.from_settings(settings)
