"""Real-provider integration tests for the Postgres pipeline repository."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from uuid import uuid4

import pytest

from packages.relay_shared.config import RelaySettings
from services.state.pipeline_authority.data import (
    PipelinePostgresRuntime,
    PostgresPipelineRepository,
    ensure_schema,
)
from services.state.pipeline_authority.domain import (
    CollectorItem,
    CommitEntry,
    PipelineOwner,
)
from tests.integration.helpers import real_provider_tests_enabled

pytest_plugins = ("tests.integration.fixtures",)

pytestmark = pytest.mark.skipif(
    not real_provider_tests_enabled(),
    reason="set RELAY_RUN_INTEGRATION_REAL=1 to run real-provider integration tests",
)


@pytest.fixture(scope="module")
def repo(integration_settings: RelaySettings) -> PostgresPipelineRepository:
    """Return a repository over a provisioned service schema."""
    runtime = PipelinePostgresRuntime.from_settings(integration_settings)
    ensure_schema(runtime.engine)
    return PostgresPipelineRepository(runtime.schema_sessions)


def _identifier() -> str:
    return f"it-{uuid4().hex}"


def test_get_or_create_ledger_is_idempotent(repo: PostgresPipelineRepository) -> None:
    """Concurrent creators should converge on one ledger row."""
    identifier = _identifier()

    with ThreadPoolExecutor(max_workers=4) as executor:
        ledgers = list(
            executor.map(
                lambda _: repo.get_or_create_ledger(pipeline_identifier=identifier),
                range(8),
            )
        )

    assert len({ledger.ledger_id for ledger in ledgers}) == 1
    found = repo.find_ledger(pipeline_identifier=identifier)
    assert found is not None
    assert found.ledger_id == ledgers[0].ledger_id


def test_append_commit_keeps_first_entry(repo: PostgresPipelineRepository) -> None:
    """Repeated keys should return the stored row and keep insertion order."""
    identifier = _identifier()
    first = CommitEntry(revision_id="a", timestamp=10, author="jdoe", message="m")

    stored = repo.append_commit(
        pipeline_identifier=identifier, environment_name="qa-env", entry=first
    )
    repeated = repo.append_commit(
        pipeline_identifier=identifier,
        environment_name="qa-env",
        entry=CommitEntry(revision_id="a", timestamp=99),
    )
    repo.append_commit(
        pipeline_identifier=identifier,
        environment_name="qa-env",
        entry=CommitEntry(revision_id="b", timestamp=20, committed_at=5),
    )

    ledger = repo.find_ledger(pipeline_identifier=identifier)
    assert stored == first
    assert repeated == first
    assert ledger is not None
    assert list(ledger.environments["qa-env"]) == ["a", "b"]
    assert ledger.environments["qa-env"]["b"].committed_at == 5


def test_owner_and_collector_item_round_trip(
    repo: PostgresPipelineRepository,
) -> None:
    """Seeded owner mappings and collector item options should be readable."""
    owner_id = f"d-{uuid4().hex}"
    identifier = _identifier()
    repo.add_owner(
        PipelineOwner(
            owner_id=owner_id,
            title="Team",
            stage_environments={"QA": "qa-env", "PROD": "prod-env"},
        )
    )
    repo.add_collector_item(
        CollectorItem(collector_item_id=identifier, options={"dashboardId": owner_id})
    )

    owner = repo.find_owner(owner_id=owner_id)
    item = repo.find_collector_item(collector_item_id=identifier)

    assert owner is not None
    assert owner.stage_environments == {"QA": "qa-env", "PROD": "prod-env"}
    assert item is not None
    assert item.options == {"dashboardId": owner_id}
