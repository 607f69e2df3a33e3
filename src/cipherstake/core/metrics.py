"""
Ledger metrics for CipherStake.

Prometheus counters and gauges for record submission, homomorphic
aggregation and the decryption request/callback protocol.
"""

from prometheus_client import CollectorRegistry, Counter, Gauge, generate_latest


class LedgerMetrics:
    """Metrics for ledger operations."""

    def __init__(self, registry=None):
        # Each ledger gets its own registry unless one is shared explicitly
        self.registry = registry if registry is not None else CollectorRegistry()

        self.records_submitted = Counter(
            'cipherstake_records_submitted_total',
            'Total number of records appended to the ledger',
            ['kind'],
            registry=self.registry
        )

        self.aggregate_updates = Counter(
            'cipherstake_aggregate_updates_total',
            'Total homomorphic additions into delegatee aggregates',
            registry=self.registry
        )

        self.aggregate_resets = Counter(
            'cipherstake_aggregate_resets_total',
            'Total delegatee aggregates cleared by administrators',
            registry=self.registry
        )

        self.aggregates = Gauge(
            'cipherstake_aggregates',
            'Number of delegatees with an initialized aggregate',
            registry=self.registry
        )

        self.decryption_requests = Counter(
            'cipherstake_decryption_requests_total',
            'Total decryption requests submitted to the oracle',
            ['kind'],
            registry=self.registry
        )

        self.decryption_callbacks = Counter(
            'cipherstake_decryption_callbacks_total',
            'Decryption callbacks by outcome',
            ['outcome'],
            registry=self.registry
        )

        self.pending_decryptions = Gauge(
            'cipherstake_pending_decryptions',
            'Decryption requests awaiting a verified callback',
            registry=self.registry
        )

    def record_submission(self, kind: str) -> None:
        self.records_submitted.labels(kind=kind).inc()

    def record_callback(self, outcome: str) -> None:
        self.decryption_callbacks.labels(outcome=outcome).inc()

    def export(self) -> bytes:
        """Render the registry in Prometheus text exposition format."""
        return generate_latest(self.registry)
