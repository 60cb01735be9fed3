"""Shared ULID primitives for binary primary keys."""

from packages.relay_shared.ids.sqlalchemy import (
    ULID_BYTES_LENGTH,
    ulid_primary_key_column,
    ulid_reference_column,
)
from packages.relay_shared.ids.ulid import (
    generate_ulid_bytes,
    generate_ulid_str,
    ulid_bytes_to_str,
)

__all__ = [
    "ULID_BYTES_LENGTH",
    "generate_ulid_bytes",
    "generate_ulid_str",
    "ulid_bytes_to_str",
    "ulid_primary_key_column",
    "ulid_reference_column",
]
