"""Pipeline Authority persistence repository implementations."""

from __future__ import annotations

from threading import Lock
from typing import Any, Mapping

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.orm import Session

from packages.relay_shared.ids import (
    generate_ulid_bytes,
    generate_ulid_str,
    ulid_bytes_to_str,
)
from resources.substrates.postgres.schema_session import ServiceSchemaSessionProvider
from services.state.pipeline_authority.data.schema import (
    collector_items,
    owner_stage_environments,
    pipeline_commits,
    pipeline_ledgers,
    pipeline_owners,
)
from services.state.pipeline_authority.domain import (
    CollectorItem,
    CommitEntry,
    PipelineLedger,
    PipelineOwner,
)
from services.state.pipeline_authority.interfaces import (
    CollectorItemRepository,
    PipelineLedgerRepository,
    PipelineOwnerRepository,
)


class InMemoryPipelineRepository(
    PipelineLedgerRepository, PipelineOwnerRepository, CollectorItemRepository
):
    """Process-local repository for ledgers, owners, and collector items.

    Ledger creation and commit appends are serialized by one lock so
    concurrent callers converge on a single ledger per identifier.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._ledger_ids: dict[str, str] = {}
        self._environments: dict[str, dict[str, dict[str, CommitEntry]]] = {}
        self._owners: dict[str, PipelineOwner] = {}
        self._collector_items: dict[str, CollectorItem] = {}

    def add_owner(self, owner: PipelineOwner) -> PipelineOwner:
        self._owners[owner.owner_id] = owner
        return owner

    def add_collector_item(self, item: CollectorItem) -> CollectorItem:
        self._collector_items[item.collector_item_id] = item
        return item

    def find_ledger(self, *, pipeline_identifier: str) -> PipelineLedger | None:
        with self._lock:
            if pipeline_identifier not in self._ledger_ids:
                return None
            return self._snapshot(pipeline_identifier)

    def get_or_create_ledger(self, *, pipeline_identifier: str) -> PipelineLedger:
        with self._lock:
            self._ensure(pipeline_identifier)
            return self._snapshot(pipeline_identifier)

    def append_commit(
        self,
        *,
        pipeline_identifier: str,
        environment_name: str,
        entry: CommitEntry,
    ) -> CommitEntry:
        with self._lock:
            self._ensure(pipeline_identifier)
            bucket = self._environments[pipeline_identifier].setdefault(
                environment_name, {}
            )
            return bucket.setdefault(entry.revision_id, entry)

    def count_ledgers(self) -> int:
        with self._lock:
            return len(self._ledger_ids)

    def find_owner(self, *, owner_id: str) -> PipelineOwner | None:
        return self._owners.get(owner_id)

    def find_collector_item(self, *, collector_item_id: str) -> CollectorItem | None:
        return self._collector_items.get(collector_item_id)

    def _ensure(self, pipeline_identifier: str) -> None:
        if pipeline_identifier not in self._ledger_ids:
            self._ledger_ids[pipeline_identifier] = generate_ulid_str()
            self._environments[pipeline_identifier] = {}

    def _snapshot(self, pipeline_identifier: str) -> PipelineLedger:
        return PipelineLedger(
            ledger_id=self._ledger_ids[pipeline_identifier],
            pipeline_identifier=pipeline_identifier,
            environments={
                name: dict(bucket)
                for name, bucket in self._environments[pipeline_identifier].items()
            },
        )


class PostgresPipelineRepository(
    PipelineLedgerRepository, PipelineOwnerRepository, CollectorItemRepository
):
    """SQL repository over Pipeline Authority-owned schema tables."""

    def __init__(self, sessions: ServiceSchemaSessionProvider) -> None:
        self._sessions = sessions

    def add_owner(self, owner: PipelineOwner) -> PipelineOwner:
        """Replace one owner row and its stage-environment mapping."""
        with self._sessions.session() as session:
            stmt = insert(pipeline_owners).values(id=owner.owner_id, title=owner.title)
            stmt = stmt.on_conflict_do_update(
                index_elements=[pipeline_owners.c.id],
                set_={"title": owner.title},
            )
            session.execute(stmt)
            session.execute(
                delete(owner_stage_environments).where(
                    owner_stage_environments.c.owner_id == owner.owner_id
                )
            )
            if owner.stage_environments:
                session.execute(
                    insert(owner_stage_environments),
                    [
                        {
                            "owner_id": owner.owner_id,
                            "stage_name": stage_name,
                            "environment_name": environment_name,
                        }
                        for (
                            stage_name,
                            environment_name,
                        ) in owner.stage_environments.items()
                    ],
                )
        return owner

    def add_collector_item(self, item: CollectorItem) -> CollectorItem:
        """Replace one collector item row."""
        with self._sessions.session() as session:
            stmt = insert(collector_items).values(
                id=item.collector_item_id, options=dict(item.options)
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[collector_items.c.id],
                set_={"options": stmt.excluded.options},
            )
            session.execute(stmt)
        return item

    def find_ledger(self, *, pipeline_identifier: str) -> PipelineLedger | None:
        with self._sessions.session() as session:
            row = (
                session.execute(
                    select(pipeline_ledgers).where(
                        pipeline_ledgers.c.pipeline_identifier == pipeline_identifier
                    )
                )
                .mappings()
                .one_or_none()
            )
            return None if row is None else _load_ledger(session, row)

    def get_or_create_ledger(self, *, pipeline_identifier: str) -> PipelineLedger:
        """Ensure one ledger row exists for the identifier and return it."""
        with self._sessions.session() as session:
            row = _upsert_ledger_row(session, pipeline_identifier)
            return _load_ledger(session, row)

    def append_commit(
        self,
        *,
        pipeline_identifier: str,
        environment_name: str,
        entry: CommitEntry,
    ) -> CommitEntry:
        """Insert one commit row unless its key exists; return the stored row."""
        with self._sessions.session() as session:
            ledger_row = _upsert_ledger_row(session, pipeline_identifier)
            stmt = insert(pipeline_commits).values(
                id=generate_ulid_bytes(),
                ledger_id=ledger_row["id"],
                environment_name=environment_name,
                revision_id=entry.revision_id,
                timestamp_ms=entry.timestamp,
                author=entry.author,
                message=entry.message,
                committed_at_ms=entry.committed_at,
            )
            stmt = stmt.on_conflict_do_nothing(
                constraint="uq_pipeline_commits_ledger_env_revision"
            )
            session.execute(stmt)

            row = (
                session.execute(
                    select(pipeline_commits).where(
                        pipeline_commits.c.ledger_id == ledger_row["id"],
                        pipeline_commits.c.environment_name == environment_name,
                        pipeline_commits.c.revision_id == entry.revision_id,
                    )
                )
                .mappings()
                .one()
            )
            return _to_commit(row)

    def count_ledgers(self) -> int:
        with self._sessions.session() as session:
            return int(
                session.scalar(select(func.count()).select_from(pipeline_ledgers))
            )

    def find_owner(self, *, owner_id: str) -> PipelineOwner | None:
        with self._sessions.session() as session:
            row = (
                session.execute(
                    select(pipeline_owners).where(pipeline_owners.c.id == owner_id)
                )
                .mappings()
                .one_or_none()
            )
            if row is None:
                return None
            mappings = session.execute(
                select(
                    owner_stage_environments.c.stage_name,
                    owner_stage_environments.c.environment_name,
                ).where(owner_stage_environments.c.owner_id == owner_id)
            ).all()
            return PipelineOwner(
                owner_id=str(row["id"]),
                title=str(row["title"]),
                stage_environments={
                    str(stage_name): str(environment_name)
                    for stage_name, environment_name in mappings
                },
            )

    def find_collector_item(self, *, collector_item_id: str) -> CollectorItem | None:
        with self._sessions.session() as session:
            row = (
                session.execute(
                    select(collector_items).where(
                        collector_items.c.id == collector_item_id
                    )
                )
                .mappings()
                .one_or_none()
            )
            if row is None:
                return None
            return CollectorItem(
                collector_item_id=str(row["id"]),
                options=dict(row["options"] or {}),
            )


def _upsert_ledger_row(session: Session, pipeline_identifier: str) -> Mapping[str, Any]:
    """Insert-or-ignore one ledger row and read back the surviving row."""
    stmt = insert(pipeline_ledgers).values(
        id=generate_ulid_bytes(),
        pipeline_identifier=pipeline_identifier,
    )
    stmt = stmt.on_conflict_do_nothing(
        constraint="uq_pipeline_ledgers_pipeline_identifier"
    )
    session.execute(stmt)
    return (
        session.execute(
            select(pipeline_ledgers).where(
                pipeline_ledgers.c.pipeline_identifier == pipeline_identifier
            )
        )
        .mappings()
        .one()
    )


def _load_ledger(session: Session, row: Mapping[str, Any]) -> PipelineLedger:
    """Assemble one ledger with commit buckets in insertion order."""
    commit_rows = (
        session.execute(
            select(pipeline_commits)
            .where(pipeline_commits.c.ledger_id == row["id"])
            .order_by(pipeline_commits.c.seq)
        )
        .mappings()
        .all()
    )
    environments: dict[str, dict[str, CommitEntry]] = {}
    for commit_row in commit_rows:
        bucket = environments.setdefault(str(commit_row["environment_name"]), {})
        entry = _to_commit(commit_row)
        bucket.setdefault(entry.revision_id, entry)
    return PipelineLedger(
        ledger_id=ulid_bytes_to_str(bytes(row["id"])),
        pipeline_identifier=str(row["pipeline_identifier"]),
        environments=environments,
    )


def _to_commit(row: Mapping[str, Any]) -> CommitEntry:
    """Map one SQL row to a strict commit entry."""
    committed_at = row["committed_at_ms"]
    return CommitEntry(
        revision_id=str(row["revision_id"]),
        timestamp=int(row["timestamp_ms"]),
        author=str(row["author"]),
        message=str(row["message"]),
        committed_at=None if committed_at is None else int(committed_at),
    )
