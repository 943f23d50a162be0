"""Sorted order-book index.

Each ordered (sell, buy) pair keeps a doubly linked list of offers over the
store's rank nodes:

    best -> prev -> prev -> ... -> 0      (walking worse-ward)
    0 <- next <- next <- ... <- worst     (walking better-ward)

The best offer is the one asking the least of the buy asset per unit of the
sell asset. Offers at an identical price keep insertion order, older ones
closer to ``best``, so fills consume them first.

Removal is two-phase: ``unsort`` unlinks a node and tombstones it with the
current block while leaving its own pointers intact (a hint that names a
just-filled offer can still be walked from), and ``purge_tombstone`` drops
the node once it has aged past the grace window.

The staging list of unsorted offers is a separate singly linked list through
``store.near`` starting at ``store.head``.
"""

from __future__ import annotations

from collections.abc import Iterator

import structlog

from market.book.store import OfferStore
from market.constants import NULL_ID, TOMBSTONE_GRACE_BLOCKS
from market.errors import AlreadyRanked, IndexCorrupted, NotRanked, TombstoneNotPurgeable
from market.models.offer import RankNode
from market.safe_int import S

logger = structlog.get_logger()

__all__ = [
    "is_priced_lt_or_eq",
    "is_ranked",
    "find",
    "find_position",
    "locate",
    "insert_sorted",
    "unsort",
    "hide",
    "push_unsorted",
    "unsorted_ids",
    "purge_tombstone",
    "walk",
]


def is_priced_lt_or_eq(store: OfferStore, low: int, high: int) -> bool:
    """Return True if offer ``low`` asks at least as much as offer ``high``.

    Compares ``buy/pay`` ratios by cross-multiplication so no division
    rounding enters the ordering.
    """
    lo = store.get(low)
    hi = store.get(high)
    return S(lo.buy_amt) * hi.pay_amt >= S(hi.buy_amt) * lo.pay_amt


def is_ranked(store: OfferStore, offer_id: int) -> bool:
    """Return True if the offer has a neighbour pointer or heads its pair."""
    node = store.rank(offer_id)
    if node is not None:
        if node.next != NULL_ID or node.prev != NULL_ID:
            return True
        return store.best_of(node.pair) == offer_id
    offer = store.offers.get(offer_id)
    return offer is not None and store.best_of(offer.pair) == offer_id


def find(store: OfferStore, offer_id: int) -> int:
    """Scan from ``best`` for the better neighbour of ``offer_id``.

    Returns:
        The last offer still priced better than or equal to ``offer_id``,
        or 0 if ``offer_id`` beats the current best.
    """
    top = store.best_of(store.get(offer_id).pair)
    old_top = NULL_ID
    while top != NULL_ID and is_priced_lt_or_eq(store, offer_id, top):
        old_top = top
        top = store.prev_of(top)
    return old_top


def find_position(store: OfferStore, offer_id: int, pos: int) -> int:
    """Locate the better neighbour of ``offer_id`` starting from hint ``pos``.

    Inactive hints are skipped worse-ward through their stale pointers until
    an active node turns up; from there the walk goes worse-ward while the
    target is not better, or better-ward until a better node is found.
    """
    while pos != NULL_ID and not store.is_active(pos):
        pos = store.prev_of(pos)

    if pos == NULL_ID:
        return find(store, offer_id)

    if is_priced_lt_or_eq(store, offer_id, pos):
        old_pos = NULL_ID
        while pos != NULL_ID and is_priced_lt_or_eq(store, offer_id, pos):
            old_pos = pos
            pos = store.prev_of(pos)
        return old_pos

    while pos != NULL_ID and not is_priced_lt_or_eq(store, offer_id, pos):
        pos = store.next_of(pos)
    return pos


def _usable_hint(store: OfferStore, offer_id: int, pos: int) -> bool:
    if pos == NULL_ID:
        return False
    node = store.rank(pos)
    if node is None or node.pair != store.get(offer_id).pair:
        return False
    return is_ranked(store, pos)


def locate(store: OfferStore, offer_id: int, pos: int = NULL_ID) -> int:
    """Return the better neighbour for ``offer_id``, using ``pos`` when usable."""
    if _usable_hint(store, offer_id, pos):
        return find_position(store, offer_id, pos)
    return find(store, offer_id)


def insert_sorted(store: OfferStore, offer_id: int, pos: int = NULL_ID) -> int:
    """Link an active, unranked offer into its pair's sorted list.

    Args:
        store: Book arena
        offer_id: Offer to rank
        pos: Optional position hint (an id near the expected spot)

    Returns:
        The better neighbour the offer was linked under (0 if it became best)

    Raises:
        InactiveOffer: If the offer is not active
        AlreadyRanked: If the offer is already in the sorted list
    """
    offer = store.get(offer_id)
    if is_ranked(store, offer_id):
        raise AlreadyRanked(f"Offer {offer_id} is already sorted")

    pair = offer.pair
    pos = locate(store, offer_id, pos)
    node = RankNode(pair=pair)
    store.ranks[offer_id] = node

    if pos != NULL_ID:
        better = store.ranks[pos]
        prev_id = better.prev
        better.prev = offer_id
        node.next = pos
    else:
        prev_id = store.best_of(pair)
        store.best[pair] = offer_id

    if prev_id != NULL_ID:
        store.ranks[prev_id].next = offer_id
        node.prev = prev_id

    store.span[pair] = store.span_of(pair) + 1
    logger.debug("offer_sorted", id=offer_id, better=pos, worse=prev_id, span=store.span[pair])
    return pos


def unsort(store: OfferStore, offer_id: int, block: int) -> None:
    """Unlink a ranked offer and tombstone its node at ``block``.

    Raises:
        NotRanked: If the pair is empty or the offer is not a live node
        IndexCorrupted: If a neighbour does not point back at the offer
    """
    pair = store.get(offer_id).pair
    if store.span_of(pair) == 0:
        raise NotRanked(f"Pair {pair} has no sorted offers")

    node = store.rank(offer_id)
    if node is None or node.is_tombstoned or not is_ranked(store, offer_id):
        raise NotRanked(f"Offer {offer_id} is not sorted")

    if offer_id != store.best_of(pair):
        better = store.ranks[node.next]
        if better.prev != offer_id:
            raise IndexCorrupted(f"Offer {node.next} does not point back to {offer_id}")
        better.prev = node.prev
    else:
        store.best[pair] = node.prev

    if node.prev != NULL_ID:
        worse = store.ranks[node.prev]
        if worse.next != offer_id:
            raise IndexCorrupted(f"Offer {node.prev} does not point back to {offer_id}")
        worse.next = node.next

    store.span[pair] -= 1
    node.tombstone_block = block
    logger.debug("offer_unsorted", id=offer_id, block=block, span=store.span[pair])


def push_unsorted(store: OfferStore, offer_id: int) -> None:
    """Put an offer at the head of the staging list."""
    if store.head != NULL_ID:
        store.near[offer_id] = store.head
    store.head = offer_id


def hide(store: OfferStore, offer_id: int) -> bool:
    """Remove an offer from the staging list.

    Returns:
        True if the offer was found and removed, False otherwise

    Raises:
        AlreadyRanked: If the offer sits in the sorted index
    """
    if is_ranked(store, offer_id):
        raise AlreadyRanked(f"Offer {offer_id} is sorted, not staged")
    if offer_id == NULL_ID:
        return False

    if store.head == offer_id:
        store.head = store.near.pop(offer_id, NULL_ID)
        return True

    pre = uid = store.head
    while uid != NULL_ID and uid != offer_id:
        pre = uid
        uid = store.near.get(uid, NULL_ID)

    if uid != offer_id:
        return False

    following = store.near.pop(offer_id, NULL_ID)
    if following != NULL_ID:
        store.near[pre] = following
    else:
        store.near.pop(pre, None)
    return True


def unsorted_ids(store: OfferStore) -> Iterator[int]:
    """Yield staged offer ids from the head."""
    uid = store.head
    while uid != NULL_ID:
        yield uid
        uid = store.near.get(uid, NULL_ID)


def walk(store: OfferStore, pair: tuple[str, str]) -> Iterator[int]:
    """Yield sorted offer ids of ``pair`` from best to worst."""
    uid = store.best_of(pair)
    while uid != NULL_ID:
        yield uid
        uid = store.prev_of(uid)


def purge_tombstone(
    store: OfferStore,
    offer_id: int,
    block: int,
    grace: int = TOMBSTONE_GRACE_BLOCKS,
) -> None:
    """Drop a tombstoned node of an inactive offer older than ``grace`` blocks.

    Raises:
        TombstoneNotPurgeable: If the offer is active, the node is missing or
            live, or the tombstone is still within the grace window
    """
    node = store.rank(offer_id)
    if store.is_active(offer_id):
        raise TombstoneNotPurgeable(f"Offer {offer_id} is still active")
    if node is None or not node.is_tombstoned:
        raise TombstoneNotPurgeable(f"Offer {offer_id} has no tombstone")
    if not node.tombstone_block < block - grace:
        raise TombstoneNotPurgeable(
            f"Tombstone of {offer_id} from block {node.tombstone_block} is within {grace} blocks"
        )
    del store.ranks[offer_id]
    logger.debug("rank_purged", id=offer_id, tombstone_block=node.tombstone_block)
