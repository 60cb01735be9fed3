"""Concrete Pipeline Authority Service implementation."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from contextvars import copy_context
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ValidationError

from packages.relay_shared.config import RelaySettings
from packages.relay_shared.envelope import (
    Envelope,
    EnvelopeMeta,
    failure,
    success,
    validate_meta,
)
from packages.relay_shared.errors import (
    ErrorDetail,
    codes,
    dependency_error,
    linkage_error,
    not_found_error,
    validation_error,
)
from packages.relay_shared.logging import (
    fields,
    get_logger,
    log_context,
    public_api_instrumented,
)
from resources.substrates.postgres.errors import (
    is_postgres_error,
    normalize_postgres_error,
)
from services.state.pipeline_authority.component import SERVICE_COMPONENT_ID
from services.state.pipeline_authority.config import (
    PipelineAuthoritySettings,
    resolve_pipeline_authority_settings,
)
from services.state.pipeline_authority.data import (
    PipelinePostgresRuntime,
    PostgresPipelineRepository,
)
from services.state.pipeline_authority.domain import (
    CommitEntry,
    HealthStatus,
    PipelineLedger,
    PipelineReportResult,
    PipelineSearchResult,
)
from services.state.pipeline_authority.interfaces import (
    CollectorItemRepository,
    PipelineLedgerRepository,
    PipelineOwnerRepository,
)
from services.state.pipeline_authority.report import (
    LinkageError,
    SearchWindow,
    build_stage_report,
    resolve_owner_id,
    resolve_window,
)
from services.state.pipeline_authority.service import PipelineAuthorityService
from services.state.pipeline_authority.stages import StageRegistry
from services.state.pipeline_authority.validation import (
    PipelineIdentifierRequest,
    RecordCommitRequest,
    SearchRequest,
)

_LOGGER = get_logger(__name__)


def _epoch_millis_now() -> int:
    return int(datetime.now(UTC).timestamp() * 1000)


class DefaultPipelineAuthorityService(PipelineAuthorityService):
    """Default implementation over ledger, owner, and collector item repositories."""

    def __init__(
        self,
        *,
        settings: PipelineAuthoritySettings,
        ledgers: PipelineLedgerRepository,
        owners: PipelineOwnerRepository,
        collector_items: CollectorItemRepository,
        runtime: PipelinePostgresRuntime | None = None,
        clock: Callable[[], int] = _epoch_millis_now,
    ) -> None:
        self._settings = settings
        self._registry = StageRegistry.from_settings(settings)
        self._ledgers = ledgers
        self._owners = owners
        self._collector_items = collector_items
        self._runtime = runtime
        self._clock = clock

    @classmethod
    def from_settings(
        cls, settings: RelaySettings
    ) -> "DefaultPipelineAuthorityService":
        """Build the service from typed settings and owned Postgres resources."""
        runtime = PipelinePostgresRuntime.from_settings(settings)
        repository = PostgresPipelineRepository(runtime.schema_sessions)
        return cls(
            settings=resolve_pipeline_authority_settings(settings),
            ledgers=repository,
            owners=repository,
            collector_items=repository,
            runtime=runtime,
        )

    @property
    def registry(self) -> StageRegistry:
        return self._registry

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=SERVICE_COMPONENT_ID,
        id_fields=("pipeline_identifiers",),
    )
    def search(
        self,
        *,
        meta: EnvelopeMeta,
        pipeline_identifiers: Sequence[str],
        begin_date: int | None = None,
        end_date: int | None = None,
    ) -> Envelope[PipelineSearchResult]:
        """Build one stage report per identifier, preserving request order."""
        request, errors = self._validate_request(
            meta=meta,
            model=SearchRequest,
            payload={
                "pipeline_identifiers": pipeline_identifiers,
                "begin_date": begin_date,
                "end_date": end_date,
            },
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert isinstance(request, SearchRequest)

        window = resolve_window(
            begin_date=request.begin_date,
            end_date=request.end_date,
            now_ms=self._clock(),
            default_window_days=self._settings.default_window_days,
        )
        identifiers = request.pipeline_identifiers
        workers = min(self._settings.max_workers, len(identifiers))
        if workers > 1:
            with ThreadPoolExecutor(max_workers=workers) as executor:
                futures = [
                    executor.submit(
                        copy_context().run, self._report_one, identifier, window
                    )
                    for identifier in identifiers
                ]
                results = tuple(future.result() for future in futures)
        else:
            results = tuple(
                self._report_one(identifier, window) for identifier in identifiers
            )

        return success(
            meta=meta,
            payload=PipelineSearchResult(
                results=results,
                lower_bound=window.lower_bound,
                upper_bound=window.upper_bound,
            ),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=SERVICE_COMPONENT_ID,
        id_fields=("pipeline_identifier",),
    )
    def get_or_create_ledger(
        self, *, meta: EnvelopeMeta, pipeline_identifier: str
    ) -> Envelope[PipelineLedger]:
        """Return the ledger for one pipeline, creating it when missing."""
        request, errors = self._validate_request(
            meta=meta,
            model=PipelineIdentifierRequest,
            payload={"pipeline_identifier": pipeline_identifier},
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert isinstance(request, PipelineIdentifierRequest)

        try:
            ledger = self._ledgers.get_or_create_ledger(
                pipeline_identifier=request.pipeline_identifier
            )
        except Exception as exc:  # noqa: BLE001
            return failure(
                meta=meta,
                errors=[self._storage_error(operation="get_or_create_ledger", exc=exc)],
            )
        return success(meta=meta, payload=ledger)

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=SERVICE_COMPONENT_ID,
        id_fields=("pipeline_identifier", "environment_name", "revision_id"),
    )
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
        """Append one entry; an already-recorded key returns the stored entry."""
        request, errors = self._validate_request(
            meta=meta,
            model=RecordCommitRequest,
            payload={
                "pipeline_identifier": pipeline_identifier,
                "environment_name": environment_name,
                "revision_id": revision_id,
                "timestamp": timestamp,
                "author": author,
                "message": message,
                "committed_at": committed_at,
            },
        )
        if errors:
            return failure(meta=meta, errors=errors)
        assert isinstance(request, RecordCommitRequest)

        entry = CommitEntry(
            revision_id=request.revision_id,
            timestamp=request.timestamp,
            author=request.author,
            message=request.message,
            committed_at=request.committed_at,
        )
        try:
            stored = self._ledgers.append_commit(
                pipeline_identifier=request.pipeline_identifier,
                environment_name=request.environment_name,
                entry=entry,
            )
        except Exception as exc:  # noqa: BLE001
            return failure(
                meta=meta,
                errors=[self._storage_error(operation="record_commit", exc=exc)],
            )
        if stored != entry:
            _LOGGER.info(
                "Commit already recorded; keeping original entry: "
                "environment_name=%s revision_id=%s",
                request.environment_name,
                request.revision_id,
            )
        return success(meta=meta, payload=stored)

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=SERVICE_COMPONENT_ID,
    )
    def health(self, *, meta: EnvelopeMeta) -> Envelope[HealthStatus]:
        """Return readiness based on substrate and ledger repository availability."""
        _, errors = self._validate_request(meta=meta, model=None, payload=None)
        if errors:
            return failure(meta=meta, errors=errors)

        if self._runtime is not None and not self._runtime.is_healthy():
            return success(
                meta=meta,
                payload=HealthStatus(
                    service_ready=False,
                    substrate_ready=False,
                    stage_count=len(self._registry),
                    detail="postgres unavailable",
                ),
            )

        try:
            self._ledgers.count_ledgers()
        except Exception as exc:  # noqa: BLE001
            return failure(
                meta=meta, errors=[self._storage_error(operation="health", exc=exc)]
            )
        return success(
            meta=meta,
            payload=HealthStatus(
                service_ready=True,
                substrate_ready=True,
                stage_count=len(self._registry),
                detail="ok",
            ),
        )

    def _report_one(
        self, pipeline_identifier: str, window: SearchWindow
    ) -> PipelineReportResult:
        """Compute one identifier's report, capturing failures as its errors."""
        with log_context({fields.PIPELINE_IDENTIFIER: pipeline_identifier}):
            try:
                ledger = self._ledgers.get_or_create_ledger(
                    pipeline_identifier=pipeline_identifier
                )
                item = self._collector_items.find_collector_item(
                    collector_item_id=pipeline_identifier
                )
                owner_id = resolve_owner_id(
                    item,
                    pipeline_identifier=pipeline_identifier,
                    option_key=self._settings.owner_link_option,
                )
                owner = self._owners.find_owner(owner_id=owner_id)
                if owner is None:
                    return PipelineReportResult(
                        pipeline_identifier=pipeline_identifier,
                        errors=(
                            not_found_error(
                                "pipeline owner not found",
                                code=codes.RESOURCE_NOT_FOUND,
                                metadata={
                                    "pipeline_identifier": pipeline_identifier,
                                    "owner_id": owner_id,
                                },
                            ),
                        ),
                    )
                report = build_stage_report(
                    registry=self._registry,
                    owner=owner,
                    ledger=ledger,
                    window=window,
                )
            except LinkageError as exc:
                _LOGGER.warning(
                    "Pipeline owner linkage failed: pipeline_identifier=%s reason=%s",
                    exc.pipeline_identifier,
                    exc,
                )
                return PipelineReportResult(
                    pipeline_identifier=pipeline_identifier,
                    errors=(
                        linkage_error(
                            str(exc),
                            metadata={"pipeline_identifier": pipeline_identifier},
                        ),
                    ),
                )
            except Exception as exc:  # noqa: BLE001
                return PipelineReportResult(
                    pipeline_identifier=pipeline_identifier,
                    errors=(self._storage_error(operation="search", exc=exc),),
                )
        return PipelineReportResult(pipeline_identifier=pipeline_identifier, report=report)

    def _validate_request(
        self,
        *,
        meta: EnvelopeMeta,
        model: type[BaseModel] | None,
        payload: dict[str, Any] | None,
    ) -> tuple[BaseModel | None, list[ErrorDetail]]:
        """Validate envelope metadata and request payload model."""
        try:
            validate_meta(meta)
        except ValueError as exc:
            return None, [validation_error(str(exc), code=codes.INVALID_ARGUMENT)]
        if model is None:
            return None, []

        try:
            request = model.model_validate(payload or {})
        except ValidationError as exc:
            return None, [
                validation_error(
                    f"request validation failed: {err['msg']}",
                    code=codes.INVALID_ARGUMENT,
                    metadata={"field": ".".join(str(p) for p in err["loc"])},
                )
                for err in exc.errors()
            ]
        return request, []

    def _storage_error(self, *, operation: str, exc: Exception) -> ErrorDetail:
        """Log and normalize one storage/runtime exception; never retried."""
        _LOGGER.warning(
            "%s failed due to storage error: exception_type=%s",
            operation,
            type(exc).__name__,
            exc_info=exc,
        )
        if is_postgres_error(exc):
            return normalize_postgres_error(exc)
        return dependency_error(
            f"{operation} failed",
            code=codes.DEPENDENCY_FAILURE,
            metadata={"exception_type": type(exc).__name__},
        )
