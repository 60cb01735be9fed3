"""Component identity for Pipeline Authority Service."""

from __future__ import annotations

SERVICE_COMPONENT_ID = "service_pipeline_authority"


def component_id_to_schema_name(component_id: str) -> str:
    """Map one component id to its owned Postgres schema name."""
    normalized = component_id.strip().lower()
    if normalized == "":
        raise ValueError("component_id is required")
    return normalized
