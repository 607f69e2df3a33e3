"""
Encrypted record store.

Append-only storage for stakes, delegations, votes and proposals. Only the
plaintext linkage fields (identifiers, proposal ids) and ciphertext widths
can be checked; ciphertext contents are never inspected.

Two secondary indexes are maintained at insertion time:
- proposal id -> vote indices, in submission order
- delegatee id -> delegation indices, in submission order
"""

from __future__ import annotations

from typing import Any

from cipherstake.core.exceptions import CiphertextWidthError, InvalidProposalError, RecordNotFoundError
from cipherstake.fhe.types import EUINT32, EUINT64, Ciphertext
from cipherstake.governance.records import DelegationEntry, Proposal, StakeEntry, VoteEntry
from cipherstake.governance.registry import IdentifierRegistry, RecordKind


def require_width(ct: Ciphertext, width: int, field_name: str) -> None:
    if not isinstance(ct, Ciphertext):
        raise CiphertextWidthError(f"{field_name} must be a ciphertext, got {type(ct).__name__}")
    if ct.width != width:
        raise CiphertextWidthError(
            f"{field_name} must be a {width}-bit ciphertext, got {ct.width}-bit",
            details={"field": field_name, "expected": width, "actual": ct.width},
        )


class EncryptedRecordStore:
    """Append-only record storage. The ledger serializes all access."""

    def __init__(self, registry: IdentifierRegistry | None = None, index_votes: bool = True):
        self.registry = registry or IdentifierRegistry()
        self.index_votes = index_votes
        self._stakes: dict[int, StakeEntry] = {}
        self._delegations: dict[int, DelegationEntry] = {}
        self._votes: dict[int, VoteEntry] = {}
        self._proposals: dict[int, Proposal] = {}
        self._votes_by_proposal: dict[int, list[int]] = {}
        self._delegations_by_delegatee: dict[str, list[int]] = {}

    # ==================== Validation ====================

    def check_proposal(self, proposal_id: int) -> None:
        """Raise InvalidProposalError unless ``proposal_id`` is in [1, proposal count]."""
        if not self.registry.contains(RecordKind.PROPOSAL, proposal_id):
            raise InvalidProposalError(proposal_id, self.registry.count(RecordKind.PROPOSAL))

    # ==================== Appends ====================

    def append_stake(self, owner_id: str, amount: Ciphertext) -> StakeEntry:
        require_width(amount, EUINT64, "amount")
        index = self.registry.issue(RecordKind.STAKE)
        entry = StakeEntry(index=index, owner_id=owner_id, amount=amount)
        self._stakes[index] = entry
        return entry

    def append_delegation(
        self, delegator_id: str, delegatee_id: str, weight: Ciphertext, created_at: int
    ) -> DelegationEntry:
        require_width(weight, EUINT32, "weight")
        index = self.registry.issue(RecordKind.DELEGATION)
        entry = DelegationEntry(
            index=index,
            delegator_id=delegator_id,
            delegatee_id=delegatee_id,
            weight=weight,
            created_at=created_at,
        )
        self._delegations[index] = entry
        self._delegations_by_delegatee.setdefault(delegatee_id, []).append(index)
        return entry

    def append_vote(self, voter_id: str, proposal_id: int, choice: Ciphertext, created_at: int) -> VoteEntry:
        self.check_proposal(proposal_id)
        require_width(choice, EUINT32, "choice")
        index = self.registry.issue(RecordKind.VOTE)
        entry = VoteEntry(
            index=index,
            voter_id=voter_id,
            proposal_id=proposal_id,
            choice=choice,
            created_at=created_at,
        )
        self._votes[index] = entry
        self._votes_by_proposal.setdefault(proposal_id, []).append(index)
        return entry

    def append_proposal(self, metadata: bytes, created_at: int) -> Proposal:
        proposal_id = self.registry.issue(RecordKind.PROPOSAL)
        proposal = Proposal(id=proposal_id, metadata=bytes(metadata), created_at=created_at)
        self._proposals[proposal_id] = proposal
        return proposal

    # ==================== Reads ====================

    def get_stake(self, index: int) -> StakeEntry:
        return self._get(self._stakes, RecordKind.STAKE, index)

    def get_delegation(self, index: int) -> DelegationEntry:
        return self._get(self._delegations, RecordKind.DELEGATION, index)

    def get_vote(self, index: int) -> VoteEntry:
        return self._get(self._votes, RecordKind.VOTE, index)

    def get_proposal(self, proposal_id: int) -> Proposal:
        return self._get(self._proposals, RecordKind.PROPOSAL, proposal_id)

    def votes_for_proposal(self, proposal_id: int) -> list[VoteEntry]:
        """Votes on ``proposal_id`` in submission order."""
        if not self.index_votes:
            return self.scan_votes(proposal_id)
        return [self._votes[index] for index in self._votes_by_proposal.get(proposal_id, [])]

    def scan_votes(self, proposal_id: int) -> list[VoteEntry]:
        """Linear scan over the full vote history."""
        return [
            self._votes[index]
            for index in range(1, self.registry.count(RecordKind.VOTE) + 1)
            if self._votes[index].proposal_id == proposal_id
        ]

    def delegations_to(self, delegatee_id: str) -> list[DelegationEntry]:
        return [self._delegations[index] for index in self._delegations_by_delegatee.get(delegatee_id, [])]

    def to_dict(self) -> dict[str, Any]:
        return {
            "stakes": [entry.to_dict() for entry in self._stakes.values()],
            "delegations": [entry.to_dict() for entry in self._delegations.values()],
            "votes": [entry.to_dict() for entry in self._votes.values()],
            "proposals": [proposal.to_dict() for proposal in self._proposals.values()],
        }

    def _get(self, table: dict, kind: RecordKind, index: int):
        if not self.registry.contains(kind, index):
            raise RecordNotFoundError(
                f"No {kind.value} record with index {index}",
                details={"kind": kind.value, "index": index},
            )
        return table[index]
