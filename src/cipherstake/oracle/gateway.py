"""
CipherStake - Decryption Oracle Gateway

The oracle is the only party able to turn ciphertext handles into cleartext.
It accepts a batch of handles, answers later through a callback, and signs
every answer so the ledger can authenticate the result before trusting it.

SigningDecryptionOracle is the reference oracle:
- request ids are strictly increasing from 1 and never reused
- submissions are queued; fulfillment is explicit (``fulfill`` /
  ``fulfill_pending``), mirroring the asynchronous boundary of a real oracle
- proofs are Ed25519 signatures over (request id, handles, cleartexts)
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol, Sequence, runtime_checkable

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519

from cipherstake.core.exceptions import UnknownRequestError, ValidationError
from cipherstake.core.logging_config import short_handle

logger = logging.getLogger(__name__)

DecryptionCallback = Callable[[int, list[int], bytes], Any]

PROOF_DOMAIN = b"cipherstake.decryption.v1"
CLEARTEXT_BYTES = 32


def encode_decryption_message(request_id: int, handles: Sequence[str], cleartexts: Sequence[int]) -> bytes:
    """Canonical byte string signed by the oracle for one decryption result."""
    if len(handles) != len(cleartexts):
        raise ValidationError(
            f"Batch has {len(handles)} handles but {len(cleartexts)} cleartexts",
            details={"handles": len(handles), "cleartexts": len(cleartexts)},
        )
    parts = [PROOF_DOMAIN, request_id.to_bytes(8, "big"), len(handles).to_bytes(4, "big")]
    for handle in handles:
        parts.append(bytes.fromhex(handle[2:] if handle.startswith("0x") else handle))
    for value in cleartexts:
        if not isinstance(value, int) or value < 0 or value >= 1 << (8 * CLEARTEXT_BYTES):
            raise ValidationError("Cleartext values must be unsigned 256-bit integers")
        parts.append(value.to_bytes(CLEARTEXT_BYTES, "big"))
    return b"".join(parts)


@runtime_checkable
class DecryptionOracle(Protocol):
    """Protocol for the external decryption authority."""

    def submit_batch(self, handles: Sequence[str], callback: DecryptionCallback) -> int:
        """Queue ``handles`` for decryption and return a fresh request id."""
        ...

    def verify(self, request_id: int, handles: Sequence[str], cleartexts: Sequence[int], proof: bytes) -> bool:
        """Return True only if ``proof`` authenticates ``cleartexts`` for this batch."""
        ...


@dataclass
class _QueuedBatch:
    request_id: int
    handles: list[str]
    callback: DecryptionCallback = field(repr=False)


class SigningDecryptionOracle:
    """Reference oracle that decrypts with the engine key and signs results."""

    def __init__(self, engine, signing_key: ed25519.Ed25519PrivateKey | None = None):
        """
        Args:
            engine: Engine exposing ``resolve(handle)`` and ``decrypt(ct)``
            signing_key: Ed25519 key used to sign results (generated if omitted)
        """
        self._engine = engine
        self._signing_key = signing_key or ed25519.Ed25519PrivateKey.generate()
        self.public_key = self._signing_key.public_key()
        self._queue: dict[int, _QueuedBatch] = {}
        self._request_counter = 0
        self._lock = threading.RLock()

    @property
    def public_key_hex(self) -> str:
        raw = self.public_key.public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )
        return raw.hex()

    def submit_batch(self, handles: Sequence[str], callback: DecryptionCallback) -> int:
        if not handles:
            raise ValidationError("Decryption batch must contain at least one handle")

        with self._lock:
            self._request_counter += 1
            request_id = self._request_counter
            self._queue[request_id] = _QueuedBatch(request_id, list(handles), callback)

        logger.debug(
            "Decryption batch queued",
            extra={"event": "oracle.batch_queued", "request_id": request_id, "batch_size": len(handles)},
        )
        return request_id

    def pending_requests(self) -> list[int]:
        with self._lock:
            return sorted(self._queue)

    def decrypt_batch(self, request_id: int) -> tuple[list[int], bytes]:
        """Decrypt a queued batch and sign the result without delivering it."""
        with self._lock:
            batch = self._queue.get(request_id)
            if batch is None:
                raise UnknownRequestError(f"Oracle has no queued request {request_id}")
            handles = list(batch.handles)

        cleartexts = [self._engine.decrypt(self._engine.resolve(handle)) for handle in handles]
        return cleartexts, self.sign(request_id, handles, cleartexts)

    def fulfill(self, request_id: int) -> list[int]:
        """Decrypt, sign and deliver one queued request to its callback.

        The request leaves the queue once the callback accepted it, or once the
        callback reports the request as unknown (already finalized elsewhere).
        Any other callback failure keeps it queued for a retry.
        """
        with self._lock:
            batch = self._queue.get(request_id)
        if batch is None:
            raise UnknownRequestError(f"Oracle has no queued request {request_id}")

        cleartexts, proof = self.decrypt_batch(request_id)
        try:
            batch.callback(request_id, cleartexts, proof)
        except UnknownRequestError:
            with self._lock:
                self._queue.pop(request_id, None)
            logger.warning(
                "Dropped decryption request unknown to its callback",
                extra={"event": "oracle.stale_request_dropped", "request_id": request_id},
            )
            raise

        with self._lock:
            self._queue.pop(request_id, None)

        logger.info(
            "Decryption request fulfilled",
            extra={"event": "oracle.fulfilled", "request_id": request_id, "batch_size": len(cleartexts)},
        )
        return cleartexts

    def fulfill_pending(self) -> dict[int, list[int]]:
        """Fulfill every queued request in request id order.

        A failed delivery is logged and skipped so later requests still go
        out. Returns the cleartexts of the requests that were delivered.
        """
        delivered = {}
        for request_id in self.pending_requests():
            try:
                delivered[request_id] = self.fulfill(request_id)
            except Exception as exc:
                logger.error(
                    "Decryption delivery failed for request %s: %s",
                    request_id,
                    exc,
                    extra={"event": "oracle.delivery_failed", "request_id": request_id},
                )
        return delivered

    def sign(self, request_id: int, handles: Sequence[str], cleartexts: Sequence[int]) -> bytes:
        return self._signing_key.sign(encode_decryption_message(request_id, handles, cleartexts))

    def verify(self, request_id: int, handles: Sequence[str], cleartexts: Sequence[int], proof: bytes) -> bool:
        if not isinstance(proof, (bytes, bytearray)):
            return False
        try:
            message = encode_decryption_message(request_id, handles, cleartexts)
        except ValidationError:
            return False
        try:
            self.public_key.verify(proof, message)
        except InvalidSignature:
            logger.warning(
                "Rejected decryption proof",
                extra={
                    "event": "oracle.proof_rejected",
                    "request_id": request_id,
                    "first_handle": short_handle(handles[0] if handles else ""),
                },
            )
            return False
        return True
