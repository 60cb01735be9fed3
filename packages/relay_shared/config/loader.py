"""Settings loading with deterministic precedence.

The cascade is always:
1) explicit init params (``cli_params``)
2) environment variables (``RELAY_`` prefix, ``__`` nesting)
3) YAML config file (``~/.config/relay/relay.yaml`` unless overridden)
4) model defaults

Example: ``RELAY_LOGGING__LEVEL=DEBUG`` sets ``logging.level``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, ClassVar, Mapping

from .models import DEFAULT_CONFIG_PATH, RelaySettings


def load_settings(
    *,
    cli_params: Mapping[str, Any] | None = None,
    config_path: str | Path | None = None,
) -> RelaySettings:
    """Load root settings, reading YAML from ``config_path`` when given."""
    resolved_path = DEFAULT_CONFIG_PATH if config_path is None else Path(config_path)

    class _PathBoundSettings(RelaySettings):
        _config_path: ClassVar[Path] = resolved_path

    return _PathBoundSettings(**dict(cli_params or {}))
