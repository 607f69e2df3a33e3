"""
Access policy for ledger operations.

- Aggregate resets are restricted to configured administrators. With no
  administrators the reset path is closed.
- Optionally, submissions must come from the holder of the identifier they
  are made for (``identifier_for(caller) == identifier``).
"""

from __future__ import annotations

import logging
from typing import Iterable

from cipherstake.core.exceptions import AccessDeniedError, InvalidIdentifierError
from cipherstake.core.logging_config import short_handle
from cipherstake.governance.registry import identifier_for

logger = logging.getLogger(__name__)


class AccessPolicy:
    def __init__(self, admin_addresses: Iterable[str] = (), enforce_identifier_holder: bool = False):
        self.admins = {addr.strip().lower() for addr in admin_addresses if addr and addr.strip()}
        self.enforce_identifier_holder = enforce_identifier_holder

    def is_admin(self, caller: str | None) -> bool:
        return bool(caller) and caller.strip().lower() in self.admins

    def require_admin(self, caller: str | None, action: str) -> None:
        if not self.is_admin(caller):
            logger.warning(
                "Unauthorized %s attempt",
                action,
                extra={"event": "access.denied", "action": action, "caller": short_handle(caller or "")},
            )
            raise AccessDeniedError(
                f"{action} requires a ledger administrator",
                details={"action": action},
            )

    def require_identifier_holder(self, caller: str | None, identifier: str, action: str) -> None:
        """No-op unless identifier-holder enforcement is on."""
        if not self.enforce_identifier_holder:
            return
        try:
            holder = identifier_for(caller) if caller else None
        except InvalidIdentifierError:
            holder = None
        if holder != identifier:
            logger.warning(
                "Caller does not hold identifier for %s",
                action,
                extra={"event": "access.not_holder", "action": action, "identifier": short_handle(identifier)},
            )
            raise AccessDeniedError(
                f"{action} must be submitted by the identifier holder",
                details={"action": action, "identifier": identifier},
            )
