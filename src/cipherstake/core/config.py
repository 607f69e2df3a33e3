"""
CipherStake ledger configuration

Supports testnet and mainnet with separate enforcement rules.

SECURITY NOTICE:
- Administrator addresses gate aggregate resets; mainnet refuses to start
  without them
- Values are read from CIPHERSTAKE_* environment variables
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from cipherstake.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "CIPHERSTAKE_"


class NetworkType(Enum):
    TESTNET = "testnet"
    MAINNET = "mainnet"


def _env(name: str, default: str = "") -> str:
    return os.getenv(ENV_PREFIX + name, default).strip()


def _env_flag(name: str, default: bool) -> bool:
    raw = _env(name)
    if not raw:
        return default
    if raw.lower() in ("1", "true", "yes", "on"):
        return True
    if raw.lower() in ("0", "false", "no", "off"):
        return False
    raise ConfigurationError(
        f"{ENV_PREFIX}{name} must be a boolean flag, got {raw!r}",
        details={"env_var": ENV_PREFIX + name},
    )


def _env_list(name: str) -> list[str]:
    return [item.strip().lower() for item in _env(name).split(",") if item.strip()]


@dataclass
class LedgerConfig:
    """Runtime settings for a ledger instance."""

    network: NetworkType = NetworkType.TESTNET
    admin_addresses: list[str] = field(default_factory=list)
    enforce_identifier_holder: bool = False
    fold_request_counter: bool = False
    index_votes: bool = True
    key_bits: int = 2048
    log_level: str = "INFO"
    log_file: str | None = None

    def __post_init__(self) -> None:
        self.admin_addresses = [addr.strip().lower() for addr in self.admin_addresses if addr.strip()]
        self.validate()

    def validate(self) -> None:
        """Check cross-field rules.

        Raises:
            ConfigurationError: If the configuration cannot be used
        """
        if self.key_bits < 1024 or self.key_bits % 256:
            raise ConfigurationError(
                f"key_bits must be a multiple of 256 and at least 1024, got {self.key_bits}",
                details={"key_bits": self.key_bits},
            )
        if self.log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ConfigurationError(f"Unknown log level {self.log_level!r}")

        if not self.admin_addresses:
            if self.network is NetworkType.MAINNET:
                raise ConfigurationError(
                    f"CRITICAL: {ENV_PREFIX}ADMIN_ADDRESSES required for mainnet. "
                    "Aggregate resets must be governance gated."
                )
            logger.warning(
                "Security: no ledger administrators configured, aggregate resets are disabled",
                extra={"event": "config.no_admins", "network": self.network.value},
            )

    @classmethod
    def from_env(cls, **overrides: Any) -> "LedgerConfig":
        """Build a configuration from CIPHERSTAKE_* environment variables.

        Keyword overrides that are not None take precedence over the matching
        variable, e.g. a command-line flag.
        """
        overrides = {key: value for key, value in overrides.items() if value is not None}
        network_raw = _env("NETWORK", NetworkType.TESTNET.value).lower()
        try:
            network = NetworkType(network_raw)
        except ValueError as exc:
            raise ConfigurationError(
                f"{ENV_PREFIX}NETWORK must be 'testnet' or 'mainnet', got {network_raw!r}"
            ) from exc

        key_bits = overrides.get("key_bits")
        if key_bits is None:
            key_bits_raw = _env("KEY_BITS", "2048")
            try:
                key_bits = int(key_bits_raw)
            except ValueError as exc:
                raise ConfigurationError(f"{ENV_PREFIX}KEY_BITS must be an integer, got {key_bits_raw!r}") from exc

        settings = dict(
            network=network,
            admin_addresses=_env_list("ADMIN_ADDRESSES"),
            enforce_identifier_holder=_env_flag("ENFORCE_IDENTIFIER_HOLDER", False),
            fold_request_counter=_env_flag("FOLD_REQUEST_COUNTER", False),
            index_votes=_env_flag("INDEX_VOTES", True),
            key_bits=key_bits,
            log_level=_env("LOG_LEVEL", "INFO").upper(),
            log_file=_env("LOG_FILE") or None,
        )
        settings.update(overrides)
        return cls(**settings)
