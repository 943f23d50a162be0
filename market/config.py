"""Market configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass

from market.constants import (
    FEE_BPS_BASE,
    ORACLE_CAPACITY,
    ORACLE_MIN_INTERVAL,
    PRICE_SCALE,
    TOMBSTONE_GRACE_BLOCKS,
)


@dataclass(frozen=True)
class MarketConfig:
    """Centralized configuration for a market instance.

    Holds the book and oracle parameters so tests can run a market with a
    smaller ring or a shorter grace window while production keeps the
    protocol defaults.

    Attributes:
        oracle_capacity: Samples kept per oracle pair (default: 120)
        oracle_min_interval: Time units required between samples (default: 30)
        tombstone_grace_blocks: Blocks before a tombstone may be purged (default: 10)
        price_scale: Oracle price scaling factor (default: 1e18)
        max_fee_bps: Highest fee rate the authority may set (default: 10,000)
        matching_enabled: Initial state of the matching engine
        buy_enabled: Initial state of direct buys
    """

    oracle_capacity: int = ORACLE_CAPACITY
    oracle_min_interval: int = ORACLE_MIN_INTERVAL
    tombstone_grace_blocks: int = TOMBSTONE_GRACE_BLOCKS
    price_scale: int = PRICE_SCALE
    max_fee_bps: int = FEE_BPS_BASE

    matching_enabled: bool = True
    buy_enabled: bool = True

    def __post_init__(self) -> None:
        if self.oracle_capacity < 2:
            raise ValueError(f"oracle_capacity must be at least 2, got {self.oracle_capacity}")
        if self.oracle_min_interval < 0:
            raise ValueError(
                f"oracle_min_interval must be non-negative, got {self.oracle_min_interval}"
            )
        if not 0 <= self.max_fee_bps <= FEE_BPS_BASE:
            raise ValueError(
                f"max_fee_bps must be within 0..{FEE_BPS_BASE}, got {self.max_fee_bps}"
            )

    @classmethod
    def from_env(cls) -> MarketConfig:
        """Build a configuration from MARKET_* environment variables.

        Unset variables fall back to the protocol defaults.
        """
        return cls(
            oracle_capacity=int(os.environ.get("MARKET_ORACLE_CAPACITY", str(ORACLE_CAPACITY))),
            oracle_min_interval=int(
                os.environ.get("MARKET_ORACLE_MIN_INTERVAL", str(ORACLE_MIN_INTERVAL))
            ),
            tombstone_grace_blocks=int(
                os.environ.get("MARKET_TOMBSTONE_GRACE_BLOCKS", str(TOMBSTONE_GRACE_BLOCKS))
            ),
            matching_enabled=_env_flag("MARKET_MATCHING_ENABLED", True),
            buy_enabled=_env_flag("MARKET_BUY_ENABLED", True),
        )


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.lower() in ("true", "1", "yes")


# Default configuration instance
DEFAULT_MARKET_CONFIG = MarketConfig()
