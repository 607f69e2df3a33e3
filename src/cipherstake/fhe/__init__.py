"""Homomorphic encryption boundary: engine protocol, reference engine, helpers."""

from cipherstake.fhe.ops import add64, sum32
from cipherstake.fhe.paillier import PaillierEngine
from cipherstake.fhe.types import (
    EUINT8,
    EUINT16,
    EUINT32,
    EUINT64,
    Ciphertext,
    HomomorphicEngine,
)

__all__ = [
    "EUINT8",
    "EUINT16",
    "EUINT32",
    "EUINT64",
    "Ciphertext",
    "HomomorphicEngine",
    "PaillierEngine",
    "add64",
    "sum32",
]
