"""
Property-based tests for ledger invariants.

- Aggregates equal the sum of delegated weights regardless of order
- Aggregates do not wrap at 32 bits
- Votes on nonexistent proposals never change the vote count
- Record indexes are dense and start at 1
"""

import pytest
from hypothesis import HealthCheck, given, settings, strategies as st
from hypothesis.stateful import RuleBasedStateMachine, initialize, invariant, rule

from cipherstake.core.config import LedgerConfig
from cipherstake.core.exceptions import InvalidProposalError
from cipherstake.fhe.paillier import PaillierEngine
from cipherstake.fhe.types import EUINT32, EUINT64
from cipherstake.governance.ledger import ConfidentialLedger
from cipherstake.oracle.gateway import SigningDecryptionOracle

pytestmark = pytest.mark.slow

weights = st.integers(min_value=0, max_value=2**32 - 1)
PROPERTY_SETTINGS = settings(
    max_examples=20,
    deadline=None,
    suppress_health_check=[HealthCheck.function_scoped_fixture],
)


def make_ledger(engine):
    config = LedgerConfig(admin_addresses=["0xAdmin"], key_bits=1024)
    return ConfidentialLedger(engine, SigningDecryptionOracle(engine), config=config)


class TestAggregationProperties:
    @PROPERTY_SETTINGS
    @given(values=st.lists(weights, min_size=1, max_size=5), data=st.data())
    def test_aggregate_is_order_independent(self, engine, values, data):
        """Property: any submission order yields the same decrypted aggregate."""
        order = data.draw(st.permutations(values))
        forward = make_ledger(engine)
        shuffled = make_ledger(engine)

        for delegator, weight in enumerate(values, start=1):
            forward.submit_delegation(delegator, 99, engine.encrypt(weight, EUINT32))
        for delegator, weight in enumerate(order, start=1):
            shuffled.submit_delegation(delegator, 99, engine.encrypt(weight, EUINT32))

        expected = sum(values) % 2**64
        assert engine.decrypt(forward.get_aggregate(99)) == expected
        assert engine.decrypt(shuffled.get_aggregate(99)) == expected
        assert forward.get_aggregate(99).width == EUINT64

    @PROPERTY_SETTINGS
    @given(values=st.lists(weights, min_size=1, max_size=5))
    def test_oracle_reports_exact_sum(self, engine, values):
        """Property: the decrypted validator weight is the exact 64-bit sum."""
        ledger = make_ledger(engine)
        for delegator, weight in enumerate(values, start=1):
            ledger.submit_delegation(delegator, 7, engine.encrypt(weight, EUINT32))

        request_id = ledger.request_validator_weight_decryption(7)
        assert ledger.oracle.fulfill(request_id) == [sum(values)]


class TestProposalProperties:
    @PROPERTY_SETTINGS
    @given(
        proposals=st.integers(min_value=0, max_value=4),
        proposal_id=st.integers(min_value=-3, max_value=20),
    )
    def test_votes_need_existing_proposal(self, engine, proposals, proposal_id):
        """Property: a vote is accepted iff 1 <= proposal_id <= proposal count."""
        ledger = make_ledger(engine)
        for n in range(proposals):
            ledger.create_proposal(f"proposal {n}")
        choice = engine.encrypt(1, EUINT32)

        if 1 <= proposal_id <= proposals:
            assert ledger.submit_vote(1, proposal_id, choice) == 1
            assert ledger.counters()["vote"] == 1
        else:
            with pytest.raises(InvalidProposalError):
                ledger.submit_vote(1, proposal_id, choice)
            assert ledger.counters()["vote"] == 0


class LedgerStateMachine(RuleBasedStateMachine):
    """Random interleavings of submissions keep counters and records consistent."""

    @initialize()
    def setup(self):
        # One engine for every run
        self.engine = _shared_engine()
        self.ledger = make_ledger(self.engine)
        self.expected_weight = {}
        self.proposals = 0
        self.votes = 0

    @rule(delegator=st.integers(1, 5), delegatee=st.integers(1, 3), weight=st.integers(0, 1000))
    def delegate(self, delegator, delegatee, weight):
        self.ledger.submit_delegation(delegator, delegatee, self.engine.encrypt(weight, EUINT32))
        self.expected_weight[delegatee] = self.expected_weight.get(delegatee, 0) + weight

    @rule()
    def propose(self):
        self.proposals += 1
        assert self.ledger.create_proposal(b"p") == self.proposals

    @rule(voter=st.integers(1, 5), proposal_id=st.integers(0, 4), choice=st.integers(0, 1))
    def vote(self, voter, proposal_id, choice):
        ciphertext = self.engine.encrypt(choice, EUINT32)
        if 1 <= proposal_id <= self.proposals:
            self.votes += 1
            assert self.ledger.submit_vote(voter, proposal_id, ciphertext) == self.votes
        else:
            with pytest.raises(InvalidProposalError):
                self.ledger.submit_vote(voter, proposal_id, ciphertext)

    @rule(delegatee=st.integers(1, 3))
    def reset(self, delegatee):
        self.ledger.reset_weights("0xAdmin", [delegatee])
        self.expected_weight.pop(delegatee, None)

    @invariant()
    def counters_match(self):
        counters = self.ledger.counters()
        assert counters["proposal"] == self.proposals
        assert counters["vote"] == self.votes

    @invariant()
    def aggregates_match(self):
        for delegatee in (1, 2, 3):
            aggregate = self.ledger.get_aggregate(delegatee)
            if delegatee in self.expected_weight:
                assert self.engine.decrypt(aggregate) == self.expected_weight[delegatee]
            else:
                assert aggregate is None


_ENGINE = []


def _shared_engine():
    if not _ENGINE:
        _ENGINE.append(PaillierEngine(key_bits=1024))
    return _ENGINE[0]


TestLedgerStateMachine = LedgerStateMachine.TestCase
TestLedgerStateMachine.settings = settings(max_examples=10, stateful_step_count=15, deadline=None)
