"""
Reference additive homomorphic engine (Paillier).

Implements the HomomorphicEngine protocol over the Paillier cryptosystem so
the ledger can run end to end without an external coprocessor:

- E(m) = (1 + m*n) * r^n mod n^2
- E(a) * E(b) mod n^2 = E(a + b)
- widening re-randomizes the ciphertext; the plaintext is unchanged

Plaintexts are unsigned integers reduced modulo 2**width on decryption, which
matches wrapping euint arithmetic. The prime pair comes from the
``cryptography`` RSA key generator.

``decrypt`` is used by the reference decryption oracle only. The ledger never
holds a PaillierPrivateKey.
"""

from __future__ import annotations

import logging
import math
import secrets
import threading
from dataclasses import dataclass

from cryptography.hazmat.primitives.asymmetric import rsa

from cipherstake.core.exceptions import CiphertextWidthError, ValidationError
from cipherstake.fhe.types import SUPPORTED_WIDTHS, Ciphertext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaillierPublicKey:
    n: int

    @property
    def n_squared(self) -> int:
        return self.n * self.n


@dataclass(frozen=True)
class PaillierPrivateKey:
    lam: int
    mu: int


def generate_paillier_keypair(key_bits: int = 2048) -> tuple[PaillierPublicKey, PaillierPrivateKey]:
    """Generate a Paillier key pair with an n of ``key_bits`` bits."""
    numbers = rsa.generate_private_key(public_exponent=65537, key_size=key_bits).private_numbers()
    p, q = numbers.p, numbers.q
    n = p * q
    lam = (p - 1) * (q - 1) // math.gcd(p - 1, q - 1)
    # With g = n + 1, mu is simply lambda^-1 mod n
    mu = pow(lam, -1, n)
    return PaillierPublicKey(n=n), PaillierPrivateKey(lam=lam, mu=mu)


def _check_width(width: int) -> None:
    if width not in SUPPORTED_WIDTHS:
        raise CiphertextWidthError(
            f"Unsupported ciphertext width {width}, expected one of {SUPPORTED_WIDTHS}",
            details={"width": width},
        )


class PaillierEngine:
    """Paillier-backed implementation of HomomorphicEngine."""

    def __init__(self, key_bits: int = 2048):
        self.public_key, self._private_key = generate_paillier_keypair(key_bits)
        self.key_bits = key_bits
        self._handles: dict[str, Ciphertext] = {}
        self._lock = threading.RLock()

        logger.info(
            "Paillier engine initialized",
            extra={"event": "fhe.engine_initialized", "key_bits": key_bits},
        )

    # ==================== Client-side ====================

    def encrypt(self, value: int, width: int) -> Ciphertext:
        """Encrypt ``value`` as an unsigned ``width``-bit integer."""
        _check_width(width)
        if not isinstance(value, int) or value < 0 or value >= 1 << width:
            raise ValidationError(
                f"Value does not fit in an unsigned {width}-bit integer",
                details={"width": width},
            )
        return Ciphertext(width=width, payload=self._raw_encrypt(value))

    # ==================== HomomorphicEngine ====================

    def zero(self, width: int) -> Ciphertext:
        _check_width(width)
        return Ciphertext(width=width, payload=self._raw_encrypt(0))

    def promote(self, ct: Ciphertext, from_width: int, to_width: int) -> Ciphertext:
        _check_width(to_width)
        if ct.width != from_width:
            raise CiphertextWidthError(
                f"Ciphertext is {ct.width}-bit, not {from_width}-bit",
                details={"width": ct.width, "from_width": from_width},
            )
        if to_width < from_width:
            raise CiphertextWidthError(
                f"Cannot narrow a ciphertext from {from_width} to {to_width} bits",
                details={"from_width": from_width, "to_width": to_width},
            )
        return Ciphertext(width=to_width, payload=self._rerandomize(ct.payload))

    def add(self, a: Ciphertext, b: Ciphertext) -> Ciphertext:
        if a.width != b.width:
            raise CiphertextWidthError(
                f"Cannot add a {a.width}-bit ciphertext to a {b.width}-bit ciphertext",
                details={"left": a.width, "right": b.width},
            )
        n_sq = self.public_key.n_squared
        return Ciphertext(width=a.width, payload=(a.payload * b.payload) % n_sq)

    def to_handle(self, ct: Ciphertext) -> str:
        handle = ct.handle
        with self._lock:
            self._handles[handle] = ct
        return handle

    # ==================== Oracle-side ====================

    def resolve(self, handle: str) -> Ciphertext:
        """Look up a ciphertext previously serialized with ``to_handle``."""
        with self._lock:
            try:
                return self._handles[handle]
            except KeyError:
                raise ValidationError(f"Unknown ciphertext handle {handle[:10]}...") from None

    def decrypt(self, ct: Ciphertext) -> int:
        """Decrypt ``ct``. Only the decryption oracle should call this."""
        n = self.public_key.n
        x = pow(ct.payload, self._private_key.lam, self.public_key.n_squared)
        plaintext = ((x - 1) // n) * self._private_key.mu % n
        return plaintext % (1 << ct.width)

    # ==================== Helpers ====================

    def _random_unit(self) -> int:
        n = self.public_key.n
        while True:
            r = secrets.randbelow(n - 1) + 1
            if math.gcd(r, n) == 1:
                return r

    def _raw_encrypt(self, m: int) -> int:
        n = self.public_key.n
        n_sq = self.public_key.n_squared
        return ((1 + m * n) * pow(self._random_unit(), n, n_sq)) % n_sq

    def _rerandomize(self, payload: int) -> int:
        n = self.public_key.n
        n_sq = self.public_key.n_squared
        return (payload * pow(self._random_unit(), n, n_sq)) % n_sq
