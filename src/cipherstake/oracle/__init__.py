"""Decryption oracle boundary."""

from cipherstake.oracle.gateway import (
    DecryptionCallback,
    DecryptionOracle,
    SigningDecryptionOracle,
    encode_decryption_message,
)

__all__ = [
    "DecryptionCallback",
    "DecryptionOracle",
    "SigningDecryptionOracle",
    "encode_decryption_message",
]
