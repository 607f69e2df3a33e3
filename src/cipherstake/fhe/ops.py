"""Stateless ciphertext helpers built on a HomomorphicEngine."""

from __future__ import annotations

from typing import Sequence

from cipherstake.core.exceptions import CiphertextWidthError, EmptyInputError
from cipherstake.fhe.types import EUINT32, EUINT64, Ciphertext, HomomorphicEngine


def add64(engine: HomomorphicEngine, a: Ciphertext, b: Ciphertext) -> Ciphertext:
    """Add two 64-bit ciphertexts."""
    for ct in (a, b):
        if ct.width != EUINT64:
            raise CiphertextWidthError(
                f"add64 expects 64-bit ciphertexts, got {ct.width}-bit",
                details={"width": ct.width},
            )
    return engine.add(a, b)


def sum32(engine: HomomorphicEngine, values: Sequence[Ciphertext]) -> Ciphertext:
    """Fold-sum an ordered, non-empty sequence of 32-bit ciphertexts.

    Raises:
        EmptyInputError: If ``values`` is empty
    """
    if not values:
        raise EmptyInputError("sum32 requires at least one ciphertext")

    for ct in values:
        if ct.width != EUINT32:
            raise CiphertextWidthError(
                f"sum32 expects 32-bit ciphertexts, got {ct.width}-bit",
                details={"width": ct.width},
            )

    total = values[0]
    for ct in values[1:]:
        total = engine.add(total, ct)
    return total
