"""
Identifier and counter registry.

Issues dense, 1-based sequence numbers per record kind and normalizes the
opaque 256-bit identifiers that link records to accounts. Index 0 and the
all-zero identifier are reserved as "absent".
"""

from __future__ import annotations

import hashlib
import re
from enum import Enum

from cipherstake.core.exceptions import InvalidIdentifierError

IDENTIFIER_BITS = 256
_HEX_DIGITS = re.compile(r"[0-9a-fA-F]{1,64}")
ZERO_IDENTIFIER = "0x" + "0" * 64


class RecordKind(Enum):
    STAKE = "stake"
    DELEGATION = "delegation"
    VOTE = "vote"
    PROPOSAL = "proposal"


def normalize_identifier(value: bytes | int | str) -> str:
    """Return ``value`` as a canonical 0x-prefixed, lowercase 64-digit hex string.

    Accepts 32 raw bytes, an int below 2**256 or a hex string of up to 64
    digits (with or without 0x).

    Raises:
        InvalidIdentifierError: If the value is malformed or all zero
    """
    if isinstance(value, (bytes, bytearray)):
        if len(value) != IDENTIFIER_BITS // 8:
            raise InvalidIdentifierError(f"Identifier must be 32 bytes, got {len(value)}")
        number = int.from_bytes(value, "big")
    elif isinstance(value, bool):
        raise InvalidIdentifierError("Identifier cannot be a boolean")
    elif isinstance(value, int):
        if value < 0 or value >= 1 << IDENTIFIER_BITS:
            raise InvalidIdentifierError("Identifier must be an unsigned 256-bit integer")
        number = value
    elif isinstance(value, str):
        digits = value[2:] if value.lower().startswith("0x") else value
        if not _HEX_DIGITS.fullmatch(digits):
            raise InvalidIdentifierError(f"Identifier must be 1-64 hex digits: {value!r}")
        number = int(digits, 16)
    else:
        raise InvalidIdentifierError(f"Unsupported identifier type {type(value).__name__}")

    if number == 0:
        raise InvalidIdentifierError("The zero identifier is reserved")
    return "0x" + number.to_bytes(32, "big").hex()


def identifier_for(address: str) -> str:
    """Derive the identifier hash of a plaintext account address."""
    if not address:
        raise InvalidIdentifierError("Address cannot be empty")
    return "0x" + hashlib.sha3_256(address.strip().lower().encode()).hexdigest()


class IdentifierRegistry:
    """Monotonic per-kind counters. Not thread-safe; the ledger serializes access."""

    def __init__(self):
        self._counters: dict[RecordKind, int] = {kind: 0 for kind in RecordKind}

    def count(self, kind: RecordKind) -> int:
        return self._counters[kind]

    def issue(self, kind: RecordKind) -> int:
        self._counters[kind] += 1
        return self._counters[kind]

    def contains(self, kind: RecordKind, index: int) -> bool:
        return isinstance(index, int) and not isinstance(index, bool) and 1 <= index <= self._counters[kind]

    def snapshot(self) -> dict[str, int]:
        return {kind.value: count for kind, count in self._counters.items()}
