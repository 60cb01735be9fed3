"""Tests for pydantic-settings-backed shared configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import BaseModel, ValidationError

from packages.relay_shared.config import load_settings, resolve_component_settings
from resources.substrates.postgres.config import PostgresSettings


def test_load_settings_uses_relay_precedence_cascade(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Init params should override env, env should override YAML, then defaults."""
    config_file = tmp_path / "relay.yaml"
    config_file.write_text(
        "\n".join(
            [
                "logging:",
                "  level: WARNING",
                "  environment: staging",
                "components:",
                "  substrate:",
                "    postgres:",
                "      pool_size: 7",
                "      max_overflow: 3",
            ]
        ),
        encoding="utf-8",
    )
    monkeypatch.setenv("RELAY_LOGGING__LEVEL", "ERROR")
    monkeypatch.setenv("RELAY_COMPONENTS__SUBSTRATE__POSTGRES__POOL_SIZE", "9")

    settings = load_settings(
        cli_params={"logging": {"level": "DEBUG"}},
        config_path=config_file,
    )
    postgres = resolve_component_settings(
        settings=settings,
        component_id="substrate_postgres",
        model=PostgresSettings,
    )

    assert settings.logging.level == "DEBUG"
    assert settings.logging.environment == "staging"
    assert postgres.pool_size == 9
    assert postgres.max_overflow == 3


def test_load_settings_uses_model_defaults_when_sources_missing(
    tmp_path: Path,
) -> None:
    """Settings should fall back to model defaults when YAML is absent."""
    settings = load_settings(config_path=tmp_path / "relay.yaml")
    postgres = resolve_component_settings(
        settings=settings,
        component_id="substrate_postgres",
        model=PostgresSettings,
    )

    assert settings.logging.service == "relay"
    assert settings.observability.public_api.otel.tracer_name == "relay.public_api"
    assert postgres.pool_size == 5


def test_flat_component_keys_are_rejected(tmp_path: Path) -> None:
    """Flat ``service_x`` keys should point users at the grouped location."""
    config_file = tmp_path / "relay.yaml"
    config_file.write_text(
        "components:\n  service_pipeline_authority:\n    max_workers: 2\n",
        encoding="utf-8",
    )

    with pytest.raises(ValidationError, match="components.service.pipeline_authority"):
        load_settings(config_path=config_file)


def test_resolve_component_settings_rejects_unknown_kind(tmp_path: Path) -> None:
    """Component ids must start with a supported kind prefix."""

    class _Model(BaseModel):
        pass

    settings = load_settings(config_path=tmp_path / "relay.yaml")

    with pytest.raises(ValueError, match="unsupported component id"):
        resolve_component_settings(
            settings=settings, component_id="actor_x", model=_Model
        )
