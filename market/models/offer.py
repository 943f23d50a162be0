"""Offer and rank-node records stored in the book arena."""

from __future__ import annotations

from dataclasses import dataclass

from market.constants import NULL_ID

# Ordered (sell asset, buy asset) key
Pair = tuple[str, str]


@dataclass
class Offer:
    """A standing request to sell ``pay_amt`` of ``pay_gem`` for ``buy_amt`` of ``buy_gem``.

    Amounts shrink in place on partial fills; the offer keeps its original
    price ratio up to integer rounding.

    Attributes:
        pay_amt: Remaining amount of the sell asset held in escrow
        pay_gem: Sell asset address
        buy_amt: Remaining amount of the buy asset the maker asks for
        buy_gem: Buy asset address
        owner: Maker address, refunded on cancellation
        timestamp: Creation time
    """

    pay_amt: int
    pay_gem: str
    buy_amt: int
    buy_gem: str
    owner: str
    timestamp: int

    @property
    def pair(self) -> Pair:
        return (self.pay_gem, self.buy_gem)


@dataclass
class RankNode:
    """Position of an offer in its pair's sorted list.

    ``next`` is the better neighbour (towards ``best``), ``prev`` the worse one.
    A node with a non-zero ``tombstone_block`` was unlinked at that block and
    keeps its stale pointers until purged.
    """

    pair: Pair
    next: int = NULL_ID
    prev: int = NULL_ID
    tombstone_block: int = 0

    @property
    def is_tombstoned(self) -> bool:
        return self.tombstone_block != 0
