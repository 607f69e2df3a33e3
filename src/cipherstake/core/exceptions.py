"""
Ledger exception hierarchy for CipherStake.

Provides typed exceptions for ledger operations so callers can tell a bad
argument apart from a missing precondition or a forged decryption result.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class LedgerError(Exception):
    """Base exception for all ledger errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        recoverable: Whether the operation can be retried unchanged
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable


# ==================== Validation Errors ====================


class ValidationError(LedgerError):
    """Raised synchronously when an argument is rejected. Nothing is mutated."""
    pass


class InvalidProposalError(ValidationError):
    """Raised when a proposal id is zero or above the proposal counter."""

    def __init__(self, proposal_id: int, proposal_count: int) -> None:
        super().__init__(
            f"Proposal {proposal_id} does not exist (proposal count: {proposal_count})",
            details={"proposal_id": proposal_id, "proposal_count": proposal_count},
        )
        self.proposal_id = proposal_id


# Name used by the contract ABI for the same condition.
ProposalMissingError = InvalidProposalError


class EmptyInputError(ValidationError):
    """Raised when a fold-sum receives no ciphertexts."""
    pass


class InvalidIdentifierError(ValidationError):
    """Raised when an identifier is not a non-zero 256-bit value."""
    pass


class CiphertextWidthError(ValidationError):
    """Raised when a ciphertext has the wrong bit width for an operation."""
    pass


class RecordNotFoundError(ValidationError):
    """Raised when a read accessor is given an index that was never issued."""
    pass


# ==================== State Errors ====================


class StateError(LedgerError):
    """Raised when a precondition on ledger state does not hold."""
    pass


class NoWeightError(StateError):
    """Raised when a delegatee has never received a delegation."""
    pass


class NoVotesError(StateError):
    """Raised when a proposal has no votes to decrypt."""
    pass


class UnknownRequestError(StateError):
    """Raised when a callback names a request id with no pending batch."""
    pass


# ==================== Proof Errors ====================


class ProofError(LedgerError):
    """Raised when a decryption result cannot be authenticated."""
    pass


class ProofInvalidError(ProofError):
    """Raised when a decryption proof does not match the submitted batch."""
    pass


# ==================== Authorization ====================


class AccessDeniedError(LedgerError):
    """Raised when a caller is not allowed to perform an operation."""
    pass


class ConfigurationError(LedgerError):
    """Raised when required configuration is missing or invalid."""
    pass


__all__ = [
    "LedgerError",
    "ValidationError",
    "InvalidProposalError",
    "ProposalMissingError",
    "EmptyInputError",
    "InvalidIdentifierError",
    "CiphertextWidthError",
    "RecordNotFoundError",
    "StateError",
    "NoWeightError",
    "NoVotesError",
    "UnknownRequestError",
    "ProofError",
    "ProofInvalidError",
    "AccessDeniedError",
    "ConfigurationError",
]
