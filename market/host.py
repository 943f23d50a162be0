"""In-process host: block clock, asset registry and atomic calls.

The market runs as a sequence of externally ordered calls. Each call either
completes or leaves no trace: ``Chain.atomic`` snapshots every journaled
participant (the market, in-memory assets) on entry and restores them all if
the call raises. Calls nested inside an open unit join it.
"""

from __future__ import annotations

import functools
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Protocol, TypeVar, runtime_checkable

import structlog

from market.errors import UnknownAsset
from market.models.types import normalize_address

if TYPE_CHECKING:
    from market.assets import Asset

logger = structlog.get_logger()

F = TypeVar("F", bound=Callable[..., Any])


@runtime_checkable
class Journaled(Protocol):
    """State holder that can be captured and restored around a call."""

    def snapshot(self) -> Any:
        ...

    def restore(self, state: Any) -> None:
        ...


class Chain:
    """Block height, timestamp and the registry of assets by address.

    Block numbers start at 1 so that a tombstone block is never 0.

    Attributes:
        block_number: Current block height
        timestamp: Current time in seconds
    """

    def __init__(self, block_number: int = 1, timestamp: int = 0) -> None:
        if block_number < 1:
            raise ValueError(f"block_number must be at least 1, got {block_number}")
        self.block_number = block_number
        self.timestamp = timestamp
        self._assets: dict[str, Asset] = {}
        self._participants: list[Journaled] = []
        self._depth = 0

    # --- Clock ---

    def advance(self, *, blocks: int = 1, seconds: int = 0) -> None:
        """Move the clock forward."""
        if blocks < 0 or seconds < 0:
            raise ValueError("The clock only moves forward")
        self.block_number += blocks
        self.timestamp += seconds

    def mine(self, timestamp: int | None = None) -> int:
        """Open a new block, optionally at a wall-clock ``timestamp``.

        Returns:
            The new block number
        """
        self.block_number += 1
        if timestamp is not None:
            self.timestamp = max(self.timestamp, timestamp)
        return self.block_number

    # --- Assets ---

    def register_asset(self, asset: Asset) -> Asset:
        """Make ``asset`` resolvable by address and journal it if it can be."""
        address = normalize_address(asset.address)
        self._assets[address] = asset
        if isinstance(asset, Journaled):
            self.journal(asset)
        return asset

    def asset(self, address: str) -> Asset:
        """Resolve an asset by address.

        Raises:
            UnknownAsset: If no asset is registered at ``address``
        """
        found = self._assets.get(normalize_address(address))
        if found is None:
            raise UnknownAsset(f"No asset registered at {address}")
        return found

    def has_asset(self, address: str) -> bool:
        return normalize_address(address) in self._assets

    @property
    def assets(self) -> list[Asset]:
        return list(self._assets.values())

    # --- Atomicity ---

    def journal(self, participant: Journaled) -> None:
        if not any(p is participant for p in self._participants):
            self._participants.append(participant)

    @property
    def in_call(self) -> bool:
        return self._depth > 0

    @contextmanager
    def atomic(self) -> Iterator[None]:
        """Run the enclosed block as one all-or-nothing call."""
        if self._depth:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        saved = [(p, p.snapshot()) for p in self._participants]
        self._depth = 1
        try:
            yield
        except BaseException as exc:
            for participant, state in saved:
                participant.restore(state)
            logger.debug("call_reverted", error=type(exc).__name__, detail=str(exc))
            raise
        finally:
            self._depth = 0


def transaction(method: F) -> F:
    """Run a market entrypoint inside its chain's atomic unit."""

    @functools.wraps(method)
    def wrapper(self: Any, *args: Any, **kwargs: Any) -> Any:
        with self.chain.atomic():
            return method(self, *args, **kwargs)

    return wrapper  # type: ignore[return-value]
