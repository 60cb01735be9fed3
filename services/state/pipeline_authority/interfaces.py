"""Transport-neutral protocol interfaces used by Pipeline Authority Service."""

from __future__ import annotations

from typing import Protocol

from services.state.pipeline_authority.domain import (
    CollectorItem,
    CommitEntry,
    PipelineLedger,
    PipelineOwner,
)


class PipelineLedgerRepository(Protocol):
    """Protocol for per-pipeline commit ledger persistence."""

    def find_ledger(self, *, pipeline_identifier: str) -> PipelineLedger | None:
        """Read one ledger and all of its commit entries."""

    def get_or_create_ledger(self, *, pipeline_identifier: str) -> PipelineLedger:
        """Create the ledger when missing and return the stored ledger."""

    def append_commit(
        self,
        *,
        pipeline_identifier: str,
        environment_name: str,
        entry: CommitEntry,
    ) -> CommitEntry:
        """Record one entry unless the key exists; return the stored entry."""

    def count_ledgers(self) -> int:
        """Return the number of stored ledgers."""


class PipelineOwnerRepository(Protocol):
    """Protocol for read-only pipeline owner (dashboard) lookups."""

    def find_owner(self, *, owner_id: str) -> PipelineOwner | None:
        """Read one owner and its stage-to-environment mapping."""


class CollectorItemRepository(Protocol):
    """Protocol for read-only collector item lookups."""

    def find_collector_item(self, *, collector_item_id: str) -> CollectorItem | None:
        """Read one collector item by id."""
