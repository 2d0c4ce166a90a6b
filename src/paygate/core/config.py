"""
Configuration management for paygate.

Handles loading configuration from environment variables and validation.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Any

from dotenv import load_dotenv

from paygate.core.exceptions import ConfigurationError
from paygate.core.types import is_zero_address, normalize_address


def _get_env_var(name: str, default: str | None = None, required: bool = False) -> str | None:
    """Get environment variable with optional default."""
    value = os.environ.get(name, default)
    if required and not value:
        raise ConfigurationError(f"Required environment variable {name} is not set")
    return value


def _split_list(value: str | None) -> tuple[str, ...]:
    if not value:
        return ()
    return tuple(item.strip() for item in value.split(",") if item.strip())


@dataclass(frozen=True)
class Config:
    """Ledger deployment configuration."""

    owner: str
    tax_address: str
    # Identity holding native custody inside the asset book
    ledger_address: str
    allowed_tokens: tuple[str, ...] = ()
    storage_backend: str = "memory"
    redis_url: str | None = None
    log_level: str = "INFO"
    lock_ttl: int = 30  # seconds before an orphaned ledger lock expires
    env: str = "development"

    def __post_init__(self) -> None:
        for name in ("owner", "tax_address", "ledger_address"):
            if is_zero_address(getattr(self, name)):
                raise ConfigurationError(f"{name} is required and must not be the zero address")
        for token in self.allowed_tokens:
            if is_zero_address(token):
                raise ConfigurationError("allowed_tokens must not contain the zero address")
        if self.lock_ttl <= 0:
            raise ConfigurationError("lock_ttl must be positive")

        # Normalize addresses on a frozen instance
        object.__setattr__(self, "owner", normalize_address(self.owner))
        object.__setattr__(self, "tax_address", normalize_address(self.tax_address))
        object.__setattr__(self, "ledger_address", normalize_address(self.ledger_address))
        object.__setattr__(
            self, "allowed_tokens", tuple(normalize_address(t) for t in self.allowed_tokens)
        )

    @classmethod
    def from_env(cls, env_file: str | None = None, **overrides: Any) -> Config:
        """
        Load configuration from environment variables.

        Args:
            env_file: Optional .env file loaded before reading the environment
            **overrides: Values that take precedence over the environment

        Environment:
            PAYGATE_OWNER, PAYGATE_TAX_ADDRESS, PAYGATE_LEDGER_ADDRESS (required)
            PAYGATE_ALLOWED_TOKENS (comma separated), PAYGATE_STORAGE_BACKEND,
            PAYGATE_REDIS_URL, PAYGATE_LOG_LEVEL, PAYGATE_LOCK_TTL, PAYGATE_ENV
        """
        if env_file:
            load_dotenv(env_file)

        owner = overrides.get("owner") or _get_env_var("PAYGATE_OWNER", required=True)
        tax_address = overrides.get("tax_address") or _get_env_var(
            "PAYGATE_TAX_ADDRESS", required=True
        )
        ledger_address = overrides.get("ledger_address") or _get_env_var(
            "PAYGATE_LEDGER_ADDRESS", required=True
        )

        allowed_tokens = overrides.get("allowed_tokens")
        if allowed_tokens is None:
            allowed_tokens = _split_list(_get_env_var("PAYGATE_ALLOWED_TOKENS"))

        lock_ttl = overrides.get("lock_ttl") or _get_env_var("PAYGATE_LOCK_TTL", default="30")
        try:
            lock_ttl = int(lock_ttl)  # type: ignore[arg-type]
        except ValueError:
            raise ConfigurationError(f"PAYGATE_LOCK_TTL must be an integer, got {lock_ttl!r}") from None

        return cls(
            owner=owner,  # type: ignore
            tax_address=tax_address,  # type: ignore
            ledger_address=ledger_address,  # type: ignore
            allowed_tokens=tuple(allowed_tokens),
            storage_backend=overrides.get("storage_backend")
            or _get_env_var("PAYGATE_STORAGE_BACKEND", default="memory"),  # type: ignore
            redis_url=overrides.get("redis_url") or _get_env_var("PAYGATE_REDIS_URL"),
            log_level=overrides.get("log_level")
            or _get_env_var("PAYGATE_LOG_LEVEL", default="INFO"),  # type: ignore
            lock_ttl=lock_ttl,
            env=overrides.get("env") or _get_env_var("PAYGATE_ENV", default="development"),  # type: ignore
        )

    def with_updates(self, **updates: Any) -> Config:
        """Create a new Config with updated values."""
        current = {f.name: getattr(self, f.name) for f in fields(self)}
        current.update(updates)
        return Config(**current)
