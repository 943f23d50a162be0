"""Wad/ray fixed-point helpers and integer square root.

Wad values carry 18 decimals, ray values 27. Products and quotients round
half up, the convention the market-order quotes are expressed in. All
intermediate arithmetic is checked through SafeInt.
"""

from __future__ import annotations

from market.safe_int import S

__all__ = [
    "WAD",
    "RAY",
    "SQRT_ITERATIONS",
    "wmul",
    "wdiv",
    "rmul",
    "rdiv",
    "isqrt",
]

WAD = 10**18
RAY = 10**27

# Newton steps from a power-of-two seed; enough for any uint256 input
SQRT_ITERATIONS = 7


def wmul(x: int, y: int) -> int:
    """Multiply two wads, rounding half up."""
    return ((S(x) * y + WAD // 2) // WAD).value


def wdiv(x: int, y: int) -> int:
    """Divide two wads, rounding half up."""
    return ((S(x) * WAD + y // 2) // y).value


def rmul(x: int, y: int) -> int:
    """Multiply two rays, rounding half up."""
    return ((S(x) * y + RAY // 2) // RAY).value


def rdiv(x: int, y: int) -> int:
    """Divide two rays, rounding half up."""
    return ((S(x) * RAY + y // 2) // y).value


def isqrt(n: int) -> int:
    """Floor of the square root of ``n`` via Newton's method.

    The seed ``2**ceil(bits/2)`` is never below the true root, so the
    iteration approaches from above and seven steps reach the floor (or one
    above it) for every 256-bit input. The last step rounds down.

    Args:
        n: Non-negative integer

    Returns:
        The largest integer ``r`` with ``r * r <= n``
    """
    if n < 0:
        raise ValueError(f"isqrt of negative value: {n}")
    S(n)  # bounds the input to uint256
    if n == 0:
        return 0

    z = 1 << ((n.bit_length() + 1) // 2)
    for _ in range(SQRT_ITERATIONS):
        z = (z + n // z) >> 1
    if n // z < z:
        z -= 1
    return z
