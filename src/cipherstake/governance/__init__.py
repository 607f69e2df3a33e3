"""Encrypted governance state: records, aggregation and decryption protocol."""

from cipherstake.governance.events import EventLog, EventType, LedgerEvent
from cipherstake.governance.ledger import ConfidentialLedger
from cipherstake.governance.registry import RecordKind, identifier_for, normalize_identifier

__all__ = [
    "ConfidentialLedger",
    "EventLog",
    "EventType",
    "LedgerEvent",
    "RecordKind",
    "identifier_for",
    "normalize_identifier",
]
