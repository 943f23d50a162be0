"""Running TWAP/VWAP/AWAP price oracle.

Each pair keeps a fixed-capacity ring of observations. An observation stores
running sums rather than raw values:

    cumulative_price    sum of sampled prices (buy per sell, scaled by 1e18)
    cumulative_asset_a  sum of sold volume
    cumulative_asset_b  sum of bought volume

so the difference between any two observations, divided by the number of
samples between them (or by the volume difference), is a windowed average.
A new observation always builds on the latest one, which is why overwriting
the oldest slot of a full ring loses nothing.

Reads locate the observation closest to ``now - duration``. Once the ring
has wrapped, timestamps are sorted only within the two halves on either side
of the write cursor, so each half is searched separately.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from market.constants import AWAP_WEIGHT_BASE, ORACLE_CAPACITY, ORACLE_MIN_INTERVAL, PRICE_SCALE
from market.errors import OracleError
from market.fixed_point import isqrt
from market.models.offer import Pair
from market.safe_int import S

logger = structlog.get_logger()

__all__ = ["Observation", "PriceOracle", "binary_search"]


@dataclass(frozen=True)
class Observation:
    """One oracle sample with running sums up to and including it."""

    cumulative_price: int
    cumulative_asset_a: int
    cumulative_asset_b: int
    timestamp: int


_GENESIS = Observation(0, 0, 0, 0)


@dataclass
class _Ring:
    slots: list[Observation | None]
    cursor: int = 0  # next slot to write
    count: int = 0

    @property
    def capacity(self) -> int:
        return len(self.slots)

    @property
    def is_full(self) -> bool:
        return self.count == self.capacity

    @property
    def latest_index(self) -> int:
        return (self.cursor - 1) % self.capacity

    def position(self, index: int) -> int:
        """Age rank of a slot: 0 for the oldest observation."""
        oldest = self.cursor if self.is_full else 0
        return (index - oldest) % self.capacity

    def at(self, index: int) -> Observation:
        obs = self.slots[index]
        if obs is None:
            raise OracleError(f"Oracle slot {index} has not been written")
        return obs


def binary_search(slots: list[Observation | None], low: int, high: int, target: int) -> int:
    """Index in ``slots[low..high]`` whose timestamp is closest to ``target``.

    The range must be sorted by timestamp. Every probed midpoint is tracked
    as a candidate; the bisection always probes both the last timestamp below
    ``target`` and the first one above it, so the tracked candidate is the
    true arg-min. Ties resolve to the older slot.
    """
    best = low
    best_diff = abs(slots[low].timestamp - target)  # type: ignore[union-attr]
    while low <= high:
        mid = (low + high) // 2
        ts = slots[mid].timestamp  # type: ignore[union-attr]
        diff = abs(ts - target)
        if diff < best_diff or (diff == best_diff and mid < best):
            best, best_diff = mid, diff
        if ts < target:
            low = mid + 1
        elif ts > target:
            high = mid - 1
        else:
            return mid
    return best


@dataclass
class PriceOracle:
    """Per-pair observation rings.

    Attributes:
        capacity: Slots per pair ring (default: 120)
        min_interval: Time that must pass, strictly, between samples (default: 30)
        scale: Price scaling factor (default: 1e18)
    """

    capacity: int = ORACLE_CAPACITY
    min_interval: int = ORACLE_MIN_INTERVAL
    scale: int = PRICE_SCALE
    _rings: dict[Pair, _Ring] = field(default_factory=dict, repr=False)

    # --- Write path ---

    def record(self, pair: Pair, amount_a: int, amount_b: int, now: int) -> bool:
        """Append a sample for a fill of ``amount_a`` sold against ``amount_b``.

        Returns:
            True if a sample was written, False if the pair was sampled too
            recently or the fill is empty
        """
        if amount_a == 0:
            return False

        ring = self._rings.get(pair)
        if ring is None:
            ring = self._rings[pair] = _Ring(slots=[None] * self.capacity)

        latest = ring.at(ring.latest_index) if ring.count else None
        if latest is not None and now - latest.timestamp <= self.min_interval:
            return False

        base = latest or _GENESIS
        price = S(amount_b) * self.scale // amount_a
        ring.slots[ring.cursor] = Observation(
            cumulative_price=(S(base.cumulative_price) + price).value,
            cumulative_asset_a=(S(base.cumulative_asset_a) + amount_a).value,
            cumulative_asset_b=(S(base.cumulative_asset_b) + amount_b).value,
            timestamp=now,
        )
        ring.cursor = (ring.cursor + 1) % ring.capacity
        ring.count = min(ring.count + 1, ring.capacity)

        logger.debug(
            "oracle_sample",
            pair=pair,
            price=price.value,
            slot=ring.latest_index,
            count=ring.count,
        )
        return True

    # --- Read path ---

    def observations(self, pair: Pair) -> list[Observation]:
        """Observations of ``pair`` from oldest to newest."""
        ring = self._rings.get(pair)
        if ring is None:
            return []
        start = ring.cursor if ring.is_full else 0
        return [ring.at((start + i) % ring.capacity) for i in range(ring.count)]

    def find_index(self, pair: Pair, duration: int, now: int) -> int:
        """Slot of the observation closest to ``now - duration``.

        Raises:
            OracleError: If the pair has no observation
        """
        ring = self._ring(pair)
        target = now - duration

        if not ring.is_full:
            return binary_search(ring.slots, 0, ring.count - 1, target)

        older = binary_search(ring.slots, ring.cursor, ring.capacity - 1, target)
        if ring.cursor == 0:
            return older
        newer = binary_search(ring.slots, 0, ring.cursor - 1, target)

        if abs(ring.at(older).timestamp - target) <= abs(ring.at(newer).timestamp - target):
            return older
        return newer

    def get_twap(self, pair: Pair, duration: int, now: int) -> int:
        """Mean sampled price since the observation closest to ``now - duration``."""
        start, end, samples = self._window(pair, duration, now)
        return ((S(end.cumulative_price) - start.cumulative_price) // samples).value

    def get_vwap(self, pair: Pair, duration: int, now: int) -> int:
        """Volume-weighted price since the observation closest to ``now - duration``."""
        start, end, _ = self._window(pair, duration, now)
        volume_a = S(end.cumulative_asset_a) - start.cumulative_asset_a
        volume_b = S(end.cumulative_asset_b) - start.cumulative_asset_b
        return (volume_b * self.scale // volume_a).value

    def get_awap(self, pair: Pair, duration: int, weight: int, now: int) -> int:
        """Blend of TWAP and VWAP.

        ``weight`` runs from 0 (pure VWAP) to 100 (pure TWAP). In between, the
        result is the square root of the product of the weighted arithmetic
        and weighted harmonic means of the two prices; at 50 that is their
        geometric mean.

        Raises:
            ValueError: If weight is outside 0..100
        """
        if not 0 <= weight <= AWAP_WEIGHT_BASE:
            raise ValueError(f"weight must be within 0..{AWAP_WEIGHT_BASE}, got {weight}")

        twap = self.get_twap(pair, duration, now)
        vwap = self.get_vwap(pair, duration, now)
        if weight == AWAP_WEIGHT_BASE:
            return twap
        if weight == 0:
            return vwap

        rest = AWAP_WEIGHT_BASE - weight
        arithmetic = (S(twap) * weight + S(vwap) * rest) // AWAP_WEIGHT_BASE
        denominator = S(vwap) * weight + S(twap) * rest
        if denominator == 0:
            return 0
        harmonic = S(twap) * vwap * AWAP_WEIGHT_BASE // denominator
        return isqrt((arithmetic * harmonic).value)

    # --- Helpers ---

    def _ring(self, pair: Pair) -> _Ring:
        ring = self._rings.get(pair)
        if ring is None or ring.count == 0:
            raise OracleError(f"No observations for pair {pair}")
        return ring

    def _window(self, pair: Pair, duration: int, now: int) -> tuple[Observation, Observation, int]:
        """Start observation, latest observation and the samples between them.

        A window that collapses onto the latest observation falls back to the
        latest sample alone.
        """
        ring = self._ring(pair)
        end_index = ring.latest_index
        end = ring.at(end_index)
        start_index = self.find_index(pair, duration, now)
        samples = ring.position(end_index) - ring.position(start_index)
        if samples > 0:
            return ring.at(start_index), end, samples
        if ring.count > 1:
            return ring.at((end_index - 1) % ring.capacity), end, 1
        return _GENESIS, end, 1
