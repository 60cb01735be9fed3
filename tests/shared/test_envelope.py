"""Tests for envelope model and builder behavior."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from packages.relay_shared.envelope import (
    Envelope,
    EnvelopeKind,
    EnvelopeMeta,
    failure,
    new_meta,
    success,
)
from packages.relay_shared.errors import ErrorCategory, ErrorDetail


def _meta() -> EnvelopeMeta:
    """Return deterministic metadata for envelope tests."""
    return new_meta(
        kind=EnvelopeKind.RESULT,
        source="service_pipeline_authority",
        principal="operator",
        timestamp=datetime(2026, 1, 1, 12, 0, 0, tzinfo=UTC),
        envelope_id="env-1",
        trace_id="trace-1",
    )


def _error(code: str = "VALIDATION_ERROR") -> ErrorDetail:
    """Return a deterministic error detail for envelope tests."""
    return ErrorDetail(
        code=code,
        message="Invalid input",
        category=ErrorCategory.VALIDATION,
        retryable=False,
    )


def test_success_builder_returns_ok_envelope_with_payload() -> None:
    """success should build an ok envelope with payload and no errors."""
    envelope = success(meta=_meta(), payload={"pipeline_identifier": "p-1"})

    assert envelope.ok is True
    assert envelope.payload is not None
    assert envelope.value == {"pipeline_identifier": "p-1"}
    assert envelope.errors == []


def test_failure_builder_returns_non_ok_envelope_with_errors() -> None:
    """failure should build a non-ok envelope containing provided errors."""
    envelope = failure(meta=_meta(), errors=[_error("DEPENDENCY_UNAVAILABLE")])

    assert envelope.ok is False
    assert envelope.payload is None
    assert envelope.value is None
    assert [item.code for item in envelope.errors] == ["DEPENDENCY_UNAVAILABLE"]


def test_envelope_model_validation_rejects_invalid_metadata_shape() -> None:
    """Envelope model validation should fail for malformed metadata."""
    with pytest.raises(ValidationError):
        Envelope[int].model_validate(
            {
                "metadata": {"kind": "result"},
                "payload": {"value": 1},
                "errors": [],
            }
        )


def test_new_meta_normalizes_naive_timestamp_to_utc() -> None:
    """Naive timestamps should be treated as UTC."""
    meta = new_meta(
        kind=EnvelopeKind.QUERY,
        source="test",
        principal="operator",
        timestamp=datetime(2026, 1, 1, 0, 0, 0),
    )

    assert meta.timestamp.tzinfo is UTC
    assert meta.envelope_id != ""
    assert meta.trace_id != ""
