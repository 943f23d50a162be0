"""Order-book arena and its sorted index."""

from market.book.index import (
    find,
    find_position,
    hide,
    insert_sorted,
    is_priced_lt_or_eq,
    is_ranked,
    locate,
    purge_tombstone,
    push_unsorted,
    unsort,
    unsorted_ids,
    walk,
)
from market.book.store import OfferStore

__all__ = [
    "OfferStore",
    "find",
    "find_position",
    "hide",
    "insert_sorted",
    "is_priced_lt_or_eq",
    "is_ranked",
    "locate",
    "purge_tombstone",
    "push_unsorted",
    "unsort",
    "unsorted_ids",
    "walk",
]
