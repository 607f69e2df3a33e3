"""
CipherStake Confidential Governance Ledger

The ledger program. All state changes go through the operations below:
- Submit stake / delegation / vote (payloads already encrypted client-side)
- Create proposal
- Reset delegatee aggregates (administrators only)
- Request decryption of a validator aggregate or a proposal's votes
- Accept the oracle's decryption callback

Every operation runs under one re-entrant lock and either fully commits or
raises before mutating anything. Events are emitted after the commit.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Iterable, Sequence

from cipherstake.core.config import LedgerConfig
from cipherstake.core.exceptions import (
    ProofInvalidError,
    UnknownRequestError,
    ValidationError,
)
from cipherstake.core.logging_config import short_handle
from cipherstake.core.metrics import LedgerMetrics
from cipherstake.fhe import ops
from cipherstake.fhe.types import EUINT32, Ciphertext, HomomorphicEngine
from cipherstake.governance.access_control import AccessPolicy
from cipherstake.governance.aggregation import AggregationEngine
from cipherstake.governance.decryption import DecryptionOrchestrator, PendingDecryption
from cipherstake.governance.events import EventLog, EventType
from cipherstake.governance.record_store import EncryptedRecordStore, require_width
from cipherstake.governance.records import DelegationEntry, Proposal, StakeEntry, VoteEntry
from cipherstake.governance.registry import IdentifierRegistry, RecordKind, normalize_identifier
from cipherstake.oracle.gateway import DecryptionOracle

logger = logging.getLogger(__name__)


class ConfidentialLedger:
    """
    Encrypted-state ledger for delegated staking and voting.

    Plaintext never enters storage: records hold ciphertexts, aggregates are
    maintained homomorphically, and cleartext appears only in
    DecryptionCompleted events after the oracle proof has been verified.
    """

    def __init__(
        self,
        engine: HomomorphicEngine,
        oracle: DecryptionOracle,
        config: LedgerConfig | None = None,
        metrics: LedgerMetrics | None = None,
        clock: Callable[[], int] | None = None,
    ):
        """
        Args:
            engine: Homomorphic evaluation engine
            oracle: Decryption oracle receiving ciphertext batches
            config: Ledger configuration (defaults to testnet defaults)
            metrics: Prometheus metrics holder (a private registry if omitted)
            clock: Returns the current time in whole seconds
        """
        self.config = config or LedgerConfig()
        self.engine = engine
        self.oracle = oracle
        self.metrics = metrics or LedgerMetrics()
        self.clock = clock or (lambda: int(time.time()))

        self.registry = IdentifierRegistry()
        self.store = EncryptedRecordStore(self.registry, index_votes=self.config.index_votes)
        self.aggregation = AggregationEngine(engine)
        self.decryption = DecryptionOrchestrator(
            engine,
            oracle,
            self.aggregation,
            self.store,
            clock=self.clock,
            fold_request_counter=self.config.fold_request_counter,
        )
        self.policy = AccessPolicy(self.config.admin_addresses, self.config.enforce_identifier_holder)
        self.events = EventLog(clock=self.clock)
        self._lock = threading.RLock()

        logger.info(
            "Confidential ledger initialized",
            extra={
                "event": "ledger.initialized",
                "network": self.config.network.value,
                "index_votes": self.config.index_votes,
                "admins": len(self.policy.admins),
            },
        )

    # ==================== Submissions ====================

    def submit_stake(self, owner_id: Any, amount: Ciphertext, caller: str | None = None) -> int:
        """Record an encrypted (euint64) stake and return its index."""
        with self._lock:
            owner = normalize_identifier(owner_id)
            self.policy.require_identifier_holder(caller, owner, "submit_stake")
            entry = self.store.append_stake(owner, amount)

            self.metrics.record_submission(RecordKind.STAKE.value)
            self.events.emit(EventType.STAKE_SUBMITTED, index=entry.index)
            logger.info(
                "Stake submitted",
                extra={"event": "ledger.stake_submitted", "index": entry.index, "owner": short_handle(owner)},
            )
            return entry.index

    def submit_delegation(
        self, delegator_id: Any, delegatee_id: Any, weight: Ciphertext, caller: str | None = None
    ) -> int:
        """Record an encrypted (euint32) delegation and fold it into the delegatee aggregate."""
        with self._lock:
            delegator = normalize_identifier(delegator_id)
            delegatee = normalize_identifier(delegatee_id)
            self.policy.require_identifier_holder(caller, delegator, "submit_delegation")
            require_width(weight, EUINT32, "weight")

            # Engine errors surface here, before anything is appended
            total = self.aggregation.prepare(delegatee, weight)
            entry = self.store.append_delegation(delegator, delegatee, weight, self.clock())
            self.aggregation.commit(delegatee, total)

            self.metrics.record_submission(RecordKind.DELEGATION.value)
            self.metrics.aggregate_updates.inc()
            self.metrics.aggregates.set(len(self.aggregation.delegatees()))
            self.events.emit(EventType.DELEGATION_SUBMITTED, index=entry.index, delegatee_id=delegatee)
            logger.info(
                "Delegation submitted",
                extra={
                    "event": "ledger.delegation_submitted",
                    "index": entry.index,
                    "delegatee": short_handle(delegatee),
                },
            )
            return entry.index

    def submit_vote(self, voter_id: Any, proposal_id: int, choice: Ciphertext, caller: str | None = None) -> int:
        """Record an encrypted (euint32) vote on an existing proposal.

        Raises:
            InvalidProposalError: If ``proposal_id`` is 0 or above the proposal count
        """
        with self._lock:
            voter = normalize_identifier(voter_id)
            self.store.check_proposal(proposal_id)
            self.policy.require_identifier_holder(caller, voter, "submit_vote")
            entry = self.store.append_vote(voter, proposal_id, choice, self.clock())

            self.metrics.record_submission(RecordKind.VOTE.value)
            self.events.emit(EventType.VOTE_SUBMITTED, index=entry.index, proposal_id=proposal_id)
            logger.info(
                "Vote submitted",
                extra={"event": "ledger.vote_submitted", "index": entry.index, "proposal_id": proposal_id},
            )
            return entry.index

    def create_proposal(self, metadata: bytes | str) -> int:
        """Create a proposal carrying an opaque metadata blob and return its id."""
        if isinstance(metadata, str):
            metadata = metadata.encode("utf-8")
        if not isinstance(metadata, (bytes, bytearray)):
            raise ValidationError(f"Proposal metadata must be bytes, got {type(metadata).__name__}")

        with self._lock:
            proposal = self.store.append_proposal(bytes(metadata), self.clock())

            self.metrics.record_submission(RecordKind.PROPOSAL.value)
            self.events.emit(EventType.PROPOSAL_CREATED, proposal_id=proposal.id)
            logger.info(
                "Proposal created",
                extra={"event": "ledger.proposal_created", "proposal_id": proposal.id},
            )
            return proposal.id

    # ==================== Administration ====================

    def reset_weights(self, caller: str, delegatee_ids: Iterable[Any]) -> list[str]:
        """Return the named aggregates to the never-delegated state.

        Delegatees without an aggregate are skipped silently.

        Returns:
            Delegatee ids whose aggregate was cleared
        """
        with self._lock:
            self.policy.require_admin(caller, "reset_weights")
            targets = [normalize_identifier(delegatee_id) for delegatee_id in delegatee_ids]
            cleared = self.aggregation.reset(targets)

            self.metrics.aggregate_resets.inc(len(cleared))
            self.metrics.aggregates.set(len(self.aggregation.delegatees()))
            if cleared:
                self.events.emit(EventType.WEIGHTS_RESET, delegatee_ids=list(cleared))
            logger.warning(
                "Delegatee aggregates reset",
                extra={"event": "ledger.weights_reset", "requested": len(targets), "cleared": len(cleared)},
            )
            return cleared

    # ==================== Decryption ====================

    def request_validator_weight_decryption(self, delegatee_id: Any) -> int:
        """Ask the oracle to decrypt a delegatee's aggregate weight.

        Returns:
            The oracle-issued request id. The result arrives later as a
            DecryptionCompleted event.

        Raises:
            NoWeightError: If nothing was ever delegated to ``delegatee_id``
        """
        with self._lock:
            delegatee = normalize_identifier(delegatee_id)
            pending = self.decryption.request_validator_weight_decryption(delegatee, self.on_decryption_callback)
            return self._record_request(pending)

    def request_proposal_votes_decryption(self, proposal_id: int) -> int:
        """Ask the oracle to decrypt every vote on ``proposal_id``, in submission order.

        Raises:
            InvalidProposalError: If the proposal does not exist
            NoVotesError: If the proposal has no votes
        """
        with self._lock:
            pending = self.decryption.request_proposal_votes_decryption(proposal_id, self.on_decryption_callback)
            return self._record_request(pending)

    def _record_request(self, pending: PendingDecryption) -> int:
        self.metrics.decryption_requests.labels(kind=pending.kind.value).inc()
        self.metrics.pending_decryptions.set(len(self.decryption.pending_requests()))
        self.events.emit(
            EventType.DECRYPTION_REQUESTED,
            request_id=pending.request_id,
            purpose_tag=pending.purpose_tag,
        )
        return pending.request_id

    def on_decryption_callback(self, request_id: int, cleartexts: Sequence[int], proof: bytes) -> None:
        """Oracle callback target. Verifies the proof, then finalizes the request.

        Raises:
            UnknownRequestError: Never issued, or already finalized
            ProofInvalidError: Proof rejected; no state change and no event
        """
        with self._lock:
            try:
                pending = self.decryption.on_decryption_callback(request_id, cleartexts, proof)
            except UnknownRequestError:
                self.metrics.record_callback("unknown_request")
                raise
            except ProofInvalidError:
                self.metrics.record_callback("proof_invalid")
                raise

            self.metrics.record_callback("completed")
            self.metrics.pending_decryptions.set(len(self.decryption.pending_requests()))
            self.events.emit(
                EventType.DECRYPTION_COMPLETED,
                request_id=request_id,
                purpose_tag=pending.purpose_tag,
                cleartexts=list(pending.cleartexts),
            )

    # ==================== Ciphertext helpers ====================

    def add64(self, a: Ciphertext, b: Ciphertext) -> Ciphertext:
        return ops.add64(self.engine, a, b)

    def sum32(self, values: Sequence[Ciphertext]) -> Ciphertext:
        return ops.sum32(self.engine, values)

    # ==================== Reads ====================

    def get_stake(self, index: int) -> StakeEntry:
        with self._lock:
            return self.store.get_stake(index)

    def get_delegation(self, index: int) -> DelegationEntry:
        with self._lock:
            return self.store.get_delegation(index)

    def get_vote(self, index: int) -> VoteEntry:
        with self._lock:
            return self.store.get_vote(index)

    def get_proposal(self, proposal_id: int) -> Proposal:
        with self._lock:
            return self.store.get_proposal(proposal_id)

    def get_aggregate(self, delegatee_id: Any) -> Ciphertext | None:
        with self._lock:
            return self.aggregation.get(normalize_identifier(delegatee_id))

    def get_aggregate_handle(self, delegatee_id: Any) -> str | None:
        """Current aggregate handle, or None if the delegatee was never delegated to."""
        aggregate = self.get_aggregate(delegatee_id)
        return aggregate.handle if aggregate is not None else None

    def votes_for_proposal(self, proposal_id: int) -> list[VoteEntry]:
        with self._lock:
            self.store.check_proposal(proposal_id)
            return self.store.votes_for_proposal(proposal_id)

    def delegations_to(self, delegatee_id: Any) -> list[DelegationEntry]:
        with self._lock:
            return self.store.delegations_to(normalize_identifier(delegatee_id))

    def get_pending_request(self, request_id: int) -> PendingDecryption | None:
        with self._lock:
            return self.decryption.get_pending(request_id)

    def get_purpose_tag(self, request_id: int) -> str | None:
        with self._lock:
            return self.decryption.purpose_tag(request_id)

    def counters(self) -> dict[str, int]:
        with self._lock:
            return self.registry.snapshot()

    def stats(self) -> dict[str, int]:
        with self._lock:
            counts = self.registry.snapshot()
            return {
                "stakes": counts[RecordKind.STAKE.value],
                "delegations": counts[RecordKind.DELEGATION.value],
                "votes": counts[RecordKind.VOTE.value],
                "proposals": counts[RecordKind.PROPOSAL.value],
                "delegatees": len(self.aggregation.delegatees()),
                "pending_decryptions": len(self.decryption.pending_requests()),
                "completed_decryptions": self.decryption.completed_count,
            }

    def is_available(self) -> bool:
        """Liveness check used by clients before submitting."""
        return isinstance(self.engine, HomomorphicEngine) and isinstance(self.oracle, DecryptionOracle)

    def to_dict(self) -> dict[str, Any]:
        """Public ledger state. Ciphertexts appear as handles only."""
        with self._lock:
            data = self.store.to_dict()
            data["counters"] = self.registry.snapshot()
            data["aggregates"] = {
                delegatee: self.aggregation.get(delegatee).handle for delegatee in self.aggregation.delegatees()
            }
            data["pending_decryptions"] = [pending.to_dict() for pending in self.decryption.pending_requests()]
            return data
