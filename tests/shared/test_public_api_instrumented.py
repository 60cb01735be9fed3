"""Tests for the public API instrumentation decorator."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import pytest

from packages.relay_shared.envelope import EnvelopeKind, failure, new_meta, success
from packages.relay_shared.errors import linkage_error
from packages.relay_shared.logging.public_api import (
    CompletionContext,
    InvocationContext,
    public_api_instrumented,
)


@dataclass
class _RecordingConcern:
    """Concern fake recording every invocation and completion."""

    invocations: list[InvocationContext] = field(default_factory=list)
    completions: list[CompletionContext] = field(default_factory=list)

    def on_invocation(self, context: InvocationContext) -> None:
        self.invocations.append(context)

    def on_completion(self, context: CompletionContext) -> None:
        self.completions.append(context)


class _ExplodingConcern:
    """Concern fake that always fails."""

    def on_invocation(self, context: InvocationContext) -> None:
        raise RuntimeError("invocation hook failed")

    def on_completion(self, context: CompletionContext) -> None:
        raise RuntimeError("completion hook failed")


def _meta():
    return new_meta(kind=EnvelopeKind.QUERY, source="test", principal="operator")


def test_decorator_reports_invocation_references_and_success() -> None:
    """Invocation context should carry meta identity and reference fields."""
    recorder = _RecordingConcern()

    @public_api_instrumented(
        component_id="service_pipeline_authority",
        id_fields=("pipeline_identifier",),
        concerns=(recorder,),
    )
    def get_or_create_ledger(*, meta, pipeline_identifier: str):
        return success(meta=meta, payload=pipeline_identifier)

    meta = _meta()
    result = get_or_create_ledger(meta=meta, pipeline_identifier="p-1")

    assert result.ok is True
    invocation = recorder.invocations[0]
    assert invocation.api_name == "get_or_create_ledger"
    assert invocation.trace_id == meta.trace_id
    assert invocation.references == {"pipeline_identifier": "p-1"}
    completion = recorder.completions[0]
    assert completion.success is True
    assert completion.errors == []


def test_decorator_summarizes_envelope_errors() -> None:
    """Failure envelopes should surface codes and categories on completion."""
    recorder = _RecordingConcern()

    @public_api_instrumented(
        component_id="service_pipeline_authority", concerns=(recorder,)
    )
    def search(*, meta):
        return failure(meta=meta, errors=[linkage_error("no owner")])

    search(meta=_meta())

    completion = recorder.completions[0]
    assert completion.success is False
    assert completion.errors == ["LINKAGE_ERROR: no owner"]
    assert completion.error_categories == ["linkage"]


def test_decorator_reraises_exceptions_after_completion() -> None:
    """Exceptions propagate and are still reported as internal failures."""
    recorder = _RecordingConcern()

    @public_api_instrumented(
        component_id="service_pipeline_authority", concerns=(recorder,)
    )
    def health(*, meta):
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError, match="boom"):
        health(meta=_meta())

    assert recorder.completions[0].success is False
    assert recorder.completions[0].error_categories == ["internal"]


def test_concern_failures_never_change_the_result(
    caplog: pytest.LogCaptureFixture,
) -> None:
    """A failing concern is logged and the wrapped call still returns."""
    logger = logging.getLogger("tests.public_api")

    @public_api_instrumented(
        component_id="service_pipeline_authority",
        concerns=(_ExplodingConcern(),),
        logger=logger,
    )
    def health(*, meta):
        return success(meta=meta, payload=True)

    with caplog.at_level(logging.INFO, logger="tests.public_api"):
        result = health(meta=_meta())

    assert result.ok is True
    messages = [record.getMessage() for record in caplog.records]
    assert "Public API instrumentation concern failed" in messages
    assert "Public API completion" in messages
