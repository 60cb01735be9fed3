"""Shared fixtures for integration-oriented test modules."""

from __future__ import annotations

import pytest

from packages.relay_shared.config import RelaySettings, load_settings
from resources.substrates.postgres import (
    create_postgres_engine,
    ping,
    resolve_postgres_settings,
)
from tests.integration.helpers import real_provider_tests_enabled


@pytest.fixture(scope="session")
def integration_settings() -> RelaySettings:
    """Return loaded settings, skipping when Postgres is not reachable."""
    if not real_provider_tests_enabled():
        pytest.skip("real-provider integration tests disabled")
    settings = load_settings()
    engine = create_postgres_engine(resolve_postgres_settings(settings))
    try:
        if not ping(engine):
            pytest.skip("postgres unavailable for integration tests")
    finally:
        engine.dispose()
    return settings
