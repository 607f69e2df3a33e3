"""
Homomorphic aggregation of delegated weight.

Each delegatee has a running euint64 total equal to the homomorphic sum of
every euint32 weight delegated to it. The total is created lazily as an
encrypted zero on the first delegation, so "never delegated" (no entry) stays
distinguishable from "zero after delegations". Nothing here ever decrypts.
"""

from __future__ import annotations

import logging
from typing import Iterable

from cipherstake.core.logging_config import short_handle
from cipherstake.fhe.types import EUINT32, EUINT64, Ciphertext, HomomorphicEngine

logger = logging.getLogger(__name__)


class AggregationEngine:
    """Per-delegatee ciphertext totals. The ledger serializes all access."""

    def __init__(self, engine: HomomorphicEngine):
        self.engine = engine
        self._aggregates: dict[str, Ciphertext] = {}

    def get(self, delegatee_id: str) -> Ciphertext | None:
        return self._aggregates.get(delegatee_id)

    def delegatees(self) -> list[str]:
        return list(self._aggregates)

    def prepare(self, delegatee_id: str, weight: Ciphertext) -> Ciphertext:
        """Compute the updated total for ``delegatee_id`` without storing it."""
        current = self._aggregates.get(delegatee_id)
        if current is None:
            current = self.engine.zero(EUINT64)
        promoted = self.engine.promote(weight, EUINT32, EUINT64)
        return self.engine.add(current, promoted)

    def commit(self, delegatee_id: str, total: Ciphertext) -> None:
        self._aggregates[delegatee_id] = total
        logger.debug(
            "Aggregate updated",
            extra={
                "event": "aggregation.updated",
                "delegatee": short_handle(delegatee_id),
                "handle": short_handle(total.handle),
            },
        )

    def reset(self, delegatee_ids: Iterable[str]) -> list[str]:
        """Drop the named aggregates. Unknown delegatees are ignored.

        Returns:
            Delegatee ids that actually had an aggregate
        """
        cleared = []
        for delegatee_id in dict.fromkeys(delegatee_ids):
            if self._aggregates.pop(delegatee_id, None) is not None:
                cleared.append(delegatee_id)
        return cleared
