"""
Decryption orchestrator.

Resolves an aggregate (or a proposal's encrypted votes) to cleartext through
the external oracle:

    Requested -> AwaitingProof -> Finalized

A request is keyed by the oracle-issued request id. The purpose tag is audit
metadata derived from (kind, subject, request time) and is never used as a
key. On callback the result is trusted only after the oracle proof verifies
against the exact batch that was submitted; a finalized request is purged so
a replayed callback is rejected as unknown.
"""

from __future__ import annotations

import hashlib
import logging
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Sequence

from cipherstake.core.exceptions import (
    NoVotesError,
    NoWeightError,
    ProofInvalidError,
    StateError,
    UnknownRequestError,
)
from cipherstake.core.logging_config import short_handle
from cipherstake.fhe.types import Ciphertext, HomomorphicEngine
from cipherstake.governance.aggregation import AggregationEngine
from cipherstake.governance.record_store import EncryptedRecordStore
from cipherstake.oracle.gateway import DecryptionCallback, DecryptionOracle

logger = logging.getLogger(__name__)


class PurposeKind(Enum):
    VALIDATOR_WEIGHT = "validator_weight"
    PROPOSAL_VOTES = "proposal_votes"


class RequestState(Enum):
    REQUESTED = "requested"
    AWAITING_PROOF = "awaiting_proof"
    FINALIZED = "finalized"


def derive_purpose_tag(kind: PurposeKind, subject: str | int, timestamp: int, counter: int | None = None) -> str:
    """Hash (kind, subject, timestamp[, counter]) into a 256-bit purpose tag."""
    if isinstance(subject, int):
        subject_bytes = subject.to_bytes(32, "big")
    else:
        subject_bytes = bytes.fromhex(subject[2:] if subject.startswith("0x") else subject)

    hasher = hashlib.sha256()
    hasher.update(kind.value.encode())
    hasher.update(subject_bytes)
    hasher.update(int(timestamp).to_bytes(8, "big"))
    if counter is not None:
        hasher.update(counter.to_bytes(8, "big"))
    return "0x" + hasher.hexdigest()


@dataclass(frozen=True)
class PendingDecryption:
    request_id: int
    purpose_tag: str
    kind: PurposeKind
    subject: str | int
    handles: tuple[str, ...]
    requested_at: int
    state: RequestState = RequestState.REQUESTED
    cleartexts: tuple[int, ...] = ()

    def to_dict(self) -> dict:
        return {
            "request_id": self.request_id,
            "purpose_tag": self.purpose_tag,
            "kind": self.kind.value,
            "subject": self.subject,
            "handles": list(self.handles),
            "requested_at": self.requested_at,
            "state": self.state.value,
        }


class DecryptionOrchestrator:
    """Builds ciphertext batches, tracks pending requests and finalizes callbacks."""

    def __init__(
        self,
        engine: HomomorphicEngine,
        oracle: DecryptionOracle,
        aggregation: AggregationEngine,
        store: EncryptedRecordStore,
        clock: Callable[[], int] | None = None,
        fold_request_counter: bool = False,
    ):
        self.engine = engine
        self.oracle = oracle
        self.aggregation = aggregation
        self.store = store
        self.clock = clock or (lambda: int(time.time()))
        self.fold_request_counter = fold_request_counter
        self._pending: dict[int, PendingDecryption] = {}
        self._request_counter = 0
        self.completed_count = 0

    # ==================== Requests ====================

    def request_validator_weight_decryption(
        self, delegatee_id: str, callback: DecryptionCallback
    ) -> PendingDecryption:
        aggregate = self.aggregation.get(delegatee_id)
        if aggregate is None:
            raise NoWeightError(
                f"Delegatee {short_handle(delegatee_id)} has no delegated weight",
                details={"delegatee_id": delegatee_id},
            )
        return self._submit(PurposeKind.VALIDATOR_WEIGHT, delegatee_id, [aggregate], callback)

    def request_proposal_votes_decryption(self, proposal_id: int, callback: DecryptionCallback) -> PendingDecryption:
        self.store.check_proposal(proposal_id)
        votes = self.store.votes_for_proposal(proposal_id)
        if not votes:
            raise NoVotesError(f"Proposal {proposal_id} has no votes", details={"proposal_id": proposal_id})
        return self._submit(PurposeKind.PROPOSAL_VOTES, proposal_id, [vote.choice for vote in votes], callback)

    def _submit(
        self,
        kind: PurposeKind,
        subject: str | int,
        ciphertexts: Sequence[Ciphertext],
        callback: DecryptionCallback,
    ) -> PendingDecryption:
        now = self.clock()
        counter = self._request_counter + 1
        purpose_tag = derive_purpose_tag(kind, subject, now, counter if self.fold_request_counter else None)
        handles = tuple(self.engine.to_handle(ct) for ct in ciphertexts)

        requested = PendingDecryption(
            request_id=0,
            purpose_tag=purpose_tag,
            kind=kind,
            subject=subject,
            handles=handles,
            requested_at=now,
        )
        request_id = self.oracle.submit_batch(list(handles), callback)
        if request_id in self._pending:
            raise StateError(
                f"Oracle reissued request id {request_id}",
                details={"request_id": request_id},
            )

        pending = replace(requested, request_id=request_id, state=RequestState.AWAITING_PROOF)
        self._request_counter = counter
        self._pending[pending.request_id] = pending

        logger.info(
            "Decryption requested",
            extra={
                "event": "decryption.requested",
                "request_id": pending.request_id,
                "kind": kind.value,
                "batch_size": len(handles),
                "purpose_tag": short_handle(purpose_tag),
            },
        )
        return pending

    # ==================== Callback ====================

    def on_decryption_callback(self, request_id: int, cleartexts: Sequence[int], proof: bytes) -> PendingDecryption:
        """Authenticate and finalize a decryption result.

        Raises:
            UnknownRequestError: No pending batch for ``request_id`` (never
                issued, or already finalized)
            ProofInvalidError: ``proof`` does not authenticate ``cleartexts``
                for the submitted batch; nothing changes
        """
        pending = self._pending.get(request_id)
        if pending is None:
            raise UnknownRequestError(
                f"No pending decryption request {request_id}",
                details={"request_id": request_id},
            )

        cleartexts = tuple(cleartexts)
        if not self.oracle.verify(request_id, pending.handles, cleartexts, proof):
            logger.warning(
                "Decryption proof rejected",
                extra={"event": "decryption.proof_invalid", "request_id": request_id},
            )
            raise ProofInvalidError(
                f"Proof does not authenticate the result of request {request_id}",
                details={"request_id": request_id},
            )

        del self._pending[request_id]
        finalized = replace(pending, state=RequestState.FINALIZED, cleartexts=cleartexts)
        self.completed_count += 1

        logger.info(
            "Decryption completed",
            extra={
                "event": "decryption.completed",
                "request_id": request_id,
                "kind": pending.kind.value,
                "batch_size": len(cleartexts),
            },
        )
        return finalized

    # ==================== Reads ====================

    def get_pending(self, request_id: int) -> PendingDecryption | None:
        return self._pending.get(request_id)

    def purpose_tag(self, request_id: int) -> str | None:
        pending = self._pending.get(request_id)
        return pending.purpose_tag if pending else None

    def pending_requests(self) -> list[PendingDecryption]:
        return [self._pending[request_id] for request_id in sorted(self._pending)]
