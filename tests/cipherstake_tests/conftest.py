"""Shared fixtures for the CipherStake ledger tests."""

import pytest

ADMIN = "0xAdmin"


class FakeClock:
    """Settable clock returning whole seconds."""

    def __init__(self, now: int = 1_700_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int = 1) -> None:
        self.now += seconds


def ident(n: int) -> str:
    """Deterministic non-zero identifier for tests."""
    return "0x" + n.to_bytes(32, "big").hex()


@pytest.fixture(scope="session")
def engine():
    """One Paillier engine for the whole session; key generation is the slow part."""
    from cipherstake.fhe.paillier import PaillierEngine
    return PaillierEngine(key_bits=1024)


@pytest.fixture
def oracle(engine):
    from cipherstake.oracle.gateway import SigningDecryptionOracle
    return SigningDecryptionOracle(engine)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    from cipherstake.core.config import LedgerConfig
    return LedgerConfig(admin_addresses=[ADMIN], key_bits=1024)


@pytest.fixture
def ledger(engine, oracle, config, clock):
    from cipherstake.governance.ledger import ConfidentialLedger
    return ConfidentialLedger(engine, oracle, config=config, clock=clock)


@pytest.fixture(name="ident")
def ident_fixture():
    return ident
