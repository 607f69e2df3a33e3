"""Immutable ledger records. Encrypted fields are serialized as handles only."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from cipherstake.fhe.types import Ciphertext


@dataclass(frozen=True)
class StakeEntry:
    index: int
    owner_id: str
    amount: Ciphertext  # euint64

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "owner_id": self.owner_id,
            "amount_handle": self.amount.handle,
        }


@dataclass(frozen=True)
class DelegationEntry:
    index: int
    delegator_id: str
    delegatee_id: str
    weight: Ciphertext  # euint32
    created_at: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "delegator_id": self.delegator_id,
            "delegatee_id": self.delegatee_id,
            "weight_handle": self.weight.handle,
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class VoteEntry:
    index: int
    voter_id: str
    proposal_id: int
    choice: Ciphertext  # euint32
    created_at: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "voter_id": self.voter_id,
            "proposal_id": self.proposal_id,
            "choice_handle": self.choice.handle,
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class Proposal:
    id: int
    metadata: bytes
    created_at: int
    # Set at creation and never read by the ledger
    active: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "metadata": self.metadata.hex(),
            "created_at": self.created_at,
            "active": self.active,
        }
