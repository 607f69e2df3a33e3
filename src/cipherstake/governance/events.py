"""
Audit events.

Events are the only externally observable completion signal for decryption
requests. Subscribers are notified synchronously after an operation commits.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

logger = logging.getLogger(__name__)


class EventType(Enum):
    STAKE_SUBMITTED = "StakeSubmitted"
    DELEGATION_SUBMITTED = "DelegationSubmitted"
    VOTE_SUBMITTED = "VoteSubmitted"
    PROPOSAL_CREATED = "ProposalCreated"
    WEIGHTS_RESET = "WeightsReset"
    DECRYPTION_REQUESTED = "DecryptionRequested"
    DECRYPTION_COMPLETED = "DecryptionCompleted"


@dataclass(frozen=True)
class LedgerEvent:
    """Represents an emitted ledger event."""

    sequence: int
    event_type: EventType
    payload: dict[str, Any]
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        return {
            "sequence": self.sequence,
            "event_type": self.event_type.value,
            "payload": dict(self.payload),
            "timestamp": self.timestamp,
        }


EventListener = Callable[[LedgerEvent], None]


class EventLog:
    """Append-only event log with synchronous subscribers."""

    def __init__(self, clock: Callable[[], float] | None = None):
        self._clock = clock or time.time
        self._events: list[LedgerEvent] = []
        self._listeners: list[EventListener] = []
        self._lock = threading.RLock()

    def subscribe(self, listener: EventListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def unsubscribe(self, listener: EventListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def emit(self, event_type: EventType, **payload: Any) -> LedgerEvent:
        with self._lock:
            event = LedgerEvent(
                sequence=len(self._events) + 1,
                event_type=event_type,
                payload=payload,
                timestamp=self._clock(),
            )
            self._events.append(event)
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(event)
            except Exception as exc:
                # Subscribers run after commit; failures are only logged
                logger.error(
                    "Event subscriber failed: %s",
                    exc,
                    exc_info=True,
                    extra={"event": "ledger.subscriber_failed", "event_type": event_type.value},
                )
        return event

    def events(self, event_type: EventType | None = None) -> list[LedgerEvent]:
        with self._lock:
            if event_type is None:
                return list(self._events)
            return [event for event in self._events if event.event_type is event_type]

    def last(self, event_type: EventType | None = None) -> LedgerEvent | None:
        matching = self.events(event_type)
        return matching[-1] if matching else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
