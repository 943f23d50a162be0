"""Arena holding every offer and index node of a market.

All per-pair state (best pointer, span, dust floor) lives here rather than
in module globals; index operations receive the store explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from market.constants import NULL_ID
from market.errors import InactiveOffer
from market.models.offer import Offer, Pair, RankNode


@dataclass
class OfferStore:
    """Offers, rank nodes and per-pair heads keyed by integer id.

    Attributes:
        offers: Active offers; removed when filled or cancelled
        ranks: Rank nodes, including tombstoned ones awaiting purge
        best: Best offer id per ordered (sell, buy) pair
        span: Live sorted offers per ordered pair
        dust: Minimum sell amount per sell asset
        head: First id of the unsorted staging list
        near: Next-unsorted pointer per staged id
        last_offer_id: Highest id handed out so far
    """

    offers: dict[int, Offer] = field(default_factory=dict)
    ranks: dict[int, RankNode] = field(default_factory=dict)
    best: dict[Pair, int] = field(default_factory=dict)
    span: dict[Pair, int] = field(default_factory=dict)
    dust: dict[str, int] = field(default_factory=dict)
    head: int = NULL_ID
    near: dict[int, int] = field(default_factory=dict)
    last_offer_id: int = NULL_ID

    def next_id(self) -> int:
        """Allocate a fresh offer id; ids are never reused."""
        self.last_offer_id += 1
        return self.last_offer_id

    def is_active(self, offer_id: int) -> bool:
        return offer_id in self.offers

    def get(self, offer_id: int) -> Offer:
        """Return the active offer for ``offer_id``.

        Raises:
            InactiveOffer: If the id is not active
        """
        offer = self.offers.get(offer_id)
        if offer is None:
            raise InactiveOffer(f"Offer {offer_id} is not active")
        return offer

    def remove(self, offer_id: int) -> None:
        """Clear an offer's storage."""
        del self.offers[offer_id]

    def rank(self, offer_id: int) -> RankNode | None:
        return self.ranks.get(offer_id)

    def next_of(self, offer_id: int) -> int:
        node = self.ranks.get(offer_id)
        return node.next if node else NULL_ID

    def prev_of(self, offer_id: int) -> int:
        node = self.ranks.get(offer_id)
        return node.prev if node else NULL_ID

    def best_of(self, pair: Pair) -> int:
        return self.best.get(pair, NULL_ID)

    def span_of(self, pair: Pair) -> int:
        return self.span.get(pair, 0)

    def dust_of(self, asset: str) -> int:
        return self.dust.get(asset, 0)
