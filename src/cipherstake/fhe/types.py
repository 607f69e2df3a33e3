"""
CipherStake - Homomorphic Engine Interfaces

The ledger never sees plaintext. It only needs four operations from the
encryption scheme: an encrypted zero, width promotion, addition and
serialization to a handle. Anything providing them can back the ledger.

Thread Safety: engines shared between ledgers MUST be thread-safe.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

EUINT8 = 8
EUINT16 = 16
EUINT32 = 32
EUINT64 = 64

SUPPORTED_WIDTHS = (EUINT8, EUINT16, EUINT32, EUINT64)


@dataclass(frozen=True)
class Ciphertext:
    """An encrypted unsigned integer of a fixed bit width.

    ``payload`` is scheme specific and opaque to the ledger.
    """

    width: int
    payload: int

    @property
    def handle(self) -> str:
        """256-bit reference to this ciphertext, as 0x-prefixed hex."""
        size = max(1, (self.payload.bit_length() + 7) // 8)
        digest = hashlib.sha256(
            self.width.to_bytes(2, "big") + self.payload.to_bytes(size, "big")
        ).hexdigest()
        return "0x" + digest

    def __repr__(self) -> str:
        return f"Ciphertext(width={self.width}, handle={self.handle[:10]}...)"


@runtime_checkable
class HomomorphicEngine(Protocol):
    """
    Protocol for the additive homomorphic evaluation engine.

    Security:
        - No method may reveal or depend on the plaintext
        - ``promote`` must preserve the encrypted value
    """

    def zero(self, width: int) -> Ciphertext:
        """Return an encryption of zero at ``width`` bits."""
        ...

    def promote(self, ct: Ciphertext, from_width: int, to_width: int) -> Ciphertext:
        """Widen ``ct`` from ``from_width`` to ``to_width`` bits."""
        ...

    def add(self, a: Ciphertext, b: Ciphertext) -> Ciphertext:
        """Return an encryption of ``a + b`` (mod 2**width)."""
        ...

    def to_handle(self, ct: Ciphertext) -> str:
        """Serialize ``ct`` to a batch element the oracle can resolve."""
        ...
