"""
CipherStake - confidential delegated staking and governance ledger.

Stake amounts, delegation weights and vote choices live only as homomorphic
ciphertexts. Cleartext is produced solely by an external decryption oracle
and is trusted only after its proof verifies.
"""

__version__ = "0.3.0"
