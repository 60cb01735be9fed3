"""Unit tests for the in-memory pipeline repository."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

from services.state.pipeline_authority.data import InMemoryPipelineRepository
from services.state.pipeline_authority.domain import (
    CollectorItem,
    CommitEntry,
    PipelineOwner,
)


def test_find_ledger_returns_none_until_created() -> None:
    """Lookups should not create ledgers implicitly."""
    repo = InMemoryPipelineRepository()

    assert repo.find_ledger(pipeline_identifier="p-1") is None
    created = repo.get_or_create_ledger(pipeline_identifier="p-1")
    found = repo.find_ledger(pipeline_identifier="p-1")

    assert found is not None
    assert found.ledger_id == created.ledger_id
    assert found.pipeline_identifier == "p-1"


def test_concurrent_get_or_create_converges_on_one_ledger() -> None:
    """Racing creators should all observe a single ledger id."""
    repo = InMemoryPipelineRepository()

    with ThreadPoolExecutor(max_workers=8) as executor:
        ledgers = list(
            executor.map(
                lambda _: repo.get_or_create_ledger(pipeline_identifier="p-1"),
                range(32),
            )
        )

    assert len({ledger.ledger_id for ledger in ledgers}) == 1
    assert repo.count_ledgers() == 1


def test_append_commit_is_append_only_per_environment_and_revision() -> None:
    """A repeated key keeps the first entry; other keys append in order."""
    repo = InMemoryPipelineRepository()
    first = CommitEntry(revision_id="a", timestamp=1)

    stored = repo.append_commit(
        pipeline_identifier="p-1", environment_name="qa-env", entry=first
    )
    repeated = repo.append_commit(
        pipeline_identifier="p-1",
        environment_name="qa-env",
        entry=CommitEntry(revision_id="a", timestamp=50),
    )
    repo.append_commit(
        pipeline_identifier="p-1",
        environment_name="qa-env",
        entry=CommitEntry(revision_id="b", timestamp=2),
    )
    repo.append_commit(
        pipeline_identifier="p-1",
        environment_name="prod-env",
        entry=CommitEntry(revision_id="a", timestamp=3),
    )

    ledger = repo.find_ledger(pipeline_identifier="p-1")
    assert stored == first
    assert repeated == first
    assert ledger is not None
    assert list(ledger.environments["qa-env"]) == ["a", "b"]
    assert ledger.environments["prod-env"]["a"].timestamp == 3


def test_ledger_snapshots_do_not_alias_repository_state() -> None:
    """Entries appended after a snapshot should not appear in that snapshot."""
    repo = InMemoryPipelineRepository()
    repo.append_commit(
        pipeline_identifier="p-1",
        environment_name="qa-env",
        entry=CommitEntry(revision_id="a", timestamp=1),
    )
    snapshot = repo.get_or_create_ledger(pipeline_identifier="p-1")

    repo.append_commit(
        pipeline_identifier="p-1",
        environment_name="qa-env",
        entry=CommitEntry(revision_id="b", timestamp=2),
    )

    assert list(snapshot.environments["qa-env"]) == ["a"]


def test_owner_and_collector_item_lookups() -> None:
    """Seeded owners and collector items should be readable by id."""
    repo = InMemoryPipelineRepository()
    repo.add_owner(PipelineOwner(owner_id="d-1", stage_environments={"QA": "qa"}))
    repo.add_collector_item(
        CollectorItem(collector_item_id="p-1", options={"dashboardId": "d-1"})
    )

    owner = repo.find_owner(owner_id="d-1")
    item = repo.find_collector_item(collector_item_id="p-1")

    assert owner is not None
    assert owner.stage_environments == {"QA": "qa"}
    assert item is not None
    assert item.options["dashboardId"] == "d-1"
    assert repo.find_owner(owner_id="missing") is None
    assert repo.find_collector_item(collector_item_id="missing") is None
