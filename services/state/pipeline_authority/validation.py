"""Pydantic request-validation models for Pipeline Authority Service API."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator


class _ValidationModel(BaseModel):
    """Base request model with strict shape semantics."""

    model_config = ConfigDict(frozen=True, extra="forbid")


def _require_text(value: str, info: ValidationInfo) -> str:
    normalized = value.strip()
    if normalized == "":
        raise ValueError(f"{info.field_name} is required")
    return normalized


class SearchRequest(_ValidationModel):
    """Validated batch search request shape."""

    pipeline_identifiers: tuple[str, ...] = Field(min_length=1)
    begin_date: int | None = Field(default=None, ge=0)
    end_date: int | None = Field(default=None, ge=0)

    @field_validator("pipeline_identifiers")
    @classmethod
    def _validate_identifiers(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        """Reject blank identifiers and normalize surrounding whitespace."""
        normalized = tuple(item.strip() for item in value)
        if any(item == "" for item in normalized):
            raise ValueError("pipeline_identifiers must not contain blank values")
        return normalized


class PipelineIdentifierRequest(_ValidationModel):
    """Validated request shape for operations keyed by pipeline identifier."""

    pipeline_identifier: str

    @field_validator("pipeline_identifier")
    @classmethod
    def _validate_identifier(cls, value: str, info: ValidationInfo) -> str:
        return _require_text(value, info)


class RecordCommitRequest(_ValidationModel):
    """Validated record-commit request shape."""

    pipeline_identifier: str
    environment_name: str
    revision_id: str
    timestamp: int = Field(ge=0)
    author: str = ""
    message: str = ""
    committed_at: int | None = Field(default=None, ge=0)

    @field_validator("pipeline_identifier", "environment_name", "revision_id")
    @classmethod
    def _validate_required_text(cls, value: str, info: ValidationInfo) -> str:
        """Require non-blank identity fields."""
        return _require_text(value, info)
