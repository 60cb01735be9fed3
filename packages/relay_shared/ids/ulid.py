"""ULID generation and conversion helpers.

Canonical string form is 26 Crockford Base32 characters encoding 128 bits,
big-endian: 48 bits of millisecond timestamp followed by 80 bits of entropy.
Binary form is the matching 16 bytes, which is what Postgres stores.
"""

from __future__ import annotations

import secrets
import time

_ALPHABET = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
_TIMESTAMP_BITS = 48
_ENTROPY_BYTES = 10


def generate_ulid_bytes(*, timestamp_ms: int | None = None) -> bytes:
    """Generate a new ULID as 16-byte big-endian binary."""
    ts_ms = time.time_ns() // 1_000_000 if timestamp_ms is None else int(timestamp_ms)
    if not 0 <= ts_ms < (1 << _TIMESTAMP_BITS):
        raise ValueError("timestamp_ms out of ULID 48-bit range")
    entropy = int.from_bytes(secrets.token_bytes(_ENTROPY_BYTES), byteorder="big")
    number = (ts_ms << (_ENTROPY_BYTES * 8)) | entropy
    return number.to_bytes(16, byteorder="big")


def generate_ulid_str(*, timestamp_ms: int | None = None) -> str:
    """Generate a new ULID in canonical string form."""
    return ulid_bytes_to_str(generate_ulid_bytes(timestamp_ms=timestamp_ms))


def ulid_bytes_to_str(value: bytes) -> str:
    """Encode 16-byte ULID binary as a canonical 26-character string."""
    if len(value) != 16:
        raise ValueError("ULID bytes must be exactly 16 bytes")
    number = int.from_bytes(value, byteorder="big")
    chars = []
    for _ in range(26):
        number, remainder = divmod(number, 32)
        chars.append(_ALPHABET[remainder])
    return "".join(reversed(chars))
