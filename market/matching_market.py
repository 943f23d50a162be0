"""Matching market: sorted book, matching engine and keeper entrypoints.

Offers posted with a position hint are matched immediately against the best
offers of the opposite pair; whatever remains rests in the sorted index at
the hinted (or computed) position. Offers posted without a hint are staged
on the unsorted list, tradeable by id but invisible to the matching walk,
until a keeper ranks them with ``insert``.

After each partial fill an offer whose remaining sell amount drops below
its asset's dust floor is cancelled on the spot, refunding the maker.

The outer entrypoints here assert the reentrancy flag is clear but do not
raise it; the foundational offer/buy/cancel paths they call do.
"""

from __future__ import annotations

import structlog

from market.book import index
from market.constants import NULL_ID
from market.errors import (
    AlreadyRanked,
    BelowDustLimit,
    BuyingDisabled,
    FillLimitExceeded,
    InactiveOffer,
    InsufficientDepth,
    InvalidAmount,
)
from market.events import (
    LogBuyEnabled,
    LogDelete,
    LogInsert,
    LogMatchingEnabled,
    LogMinSell,
    LogSortedOffer,
    LogUnsortedOffer,
)
from market.fixed_point import WAD, rdiv, rmul, wdiv
from market.host import transaction
from market.models.types import normalize_address
from market.safe_int import S
from market.simple_market import SimpleMarket

logger = structlog.get_logger()

# Extra precision for partial market-order fills expressed in ray math
_RAY_PAD = 10**9


class MatchingMarket(SimpleMarket):
    """Order book with price-sorted offers and on-demand matching."""

    # --- Flags ---

    @property
    def matching_enabled(self) -> bool:
        return self._state.matching_enabled

    @property
    def buy_enabled(self) -> bool:
        return self._state.buy_enabled

    # --- Offer creation ---

    @transaction
    def offer(
        self,
        caller: str,
        pay_amt: int,
        pay_gem: str,
        buy_amt: int,
        buy_gem: str,
        pos: int | None = None,
        rounding: bool = True,
    ) -> int:
        """Post an offer.

        With matching enabled and no ``pos``, the offer is staged unsorted for
        a keeper to rank. With a ``pos`` (0 meaning "compute it"), the offer
        is matched first and its residue sorted near ``pos``.

        Args:
            caller: Maker address
            pay_amt: Amount of ``pay_gem`` to sell
            pay_gem: Sell asset
            buy_amt: Amount of ``buy_gem`` asked for
            buy_gem: Buy asset
            pos: Position hint, or None to stage the offer
            rounding: Accept matches within the integer rounding tolerance

        Returns:
            The resting offer id, or 0 if fully matched or the residue was dust
        """
        self._require_unlocked()
        pay_gem = normalize_address(pay_gem)
        buy_gem = normalize_address(buy_gem)
        dust = self.store.dust_of(pay_gem)
        if pay_amt < dust:
            raise BelowDustLimit(f"Sell amount {pay_amt} is below the {dust} minimum")

        if not self.matching_enabled:
            return self._make_offer(caller, pay_amt, pay_gem, buy_amt, buy_gem)
        if pos is None:
            return self._offeru(caller, pay_amt, pay_gem, buy_amt, buy_gem)
        return self._matcho(caller, pay_amt, pay_gem, buy_amt, buy_gem, pos, rounding)

    def make(self, caller: str, pay_gem: str, buy_gem: str, pay_amt: int, buy_amt: int) -> int:
        return self.offer(caller, pay_amt, pay_gem, buy_amt, buy_gem)

    # --- Fills and cancellation ---

    @transaction
    def buy(self, caller: str, offer_id: int, quantity: int) -> bool:
        """Buy ``quantity`` of an offer, applying the dust policy afterwards."""
        self._require_can_buy(offer_id)
        self._require_unlocked()
        if self.matching_enabled:
            return self._buys(caller, offer_id, quantity)
        if quantity == self.store.get(offer_id).pay_amt:
            if index.is_ranked(self.store, offer_id):
                index.unsort(self.store, offer_id, self.chain.block_number)
            else:
                index.hide(self.store, offer_id)
        return self._fill(caller, offer_id, quantity)

    @transaction
    def cancel(self, caller: str, offer_id: int) -> bool:
        """Withdraw an offer, unlinking it from the index or the staging list."""
        self._require_can_cancel(caller, offer_id)
        self._require_unlocked()
        if index.is_ranked(self.store, offer_id):
            index.unsort(self.store, offer_id, self.chain.block_number)
        else:
            index.hide(self.store, offer_id)
        return self._cancel(caller, offer_id)

    # --- Keeper entrypoints ---

    @transaction
    def insert(self, caller: str, offer_id: int, pos: int = NULL_ID) -> bool:
        """Rank an unsorted active offer near ``pos``."""
        self._require_unlocked()
        if index.is_ranked(self.store, offer_id):
            raise AlreadyRanked(f"Offer {offer_id} is already sorted")
        if not self.is_active(offer_id):
            raise InactiveOffer(f"Offer {offer_id} is not active")
        index.hide(self.store, offer_id)
        self._sort(offer_id, pos)
        self.events.emit(LogInsert(keeper=normalize_address(caller), id=offer_id))
        return True

    @transaction
    def del_rank(self, caller: str, offer_id: int) -> bool:
        """Purge the tombstoned rank node of a filled or cancelled offer."""
        self._require_unlocked()
        index.purge_tombstone(
            self.store,
            offer_id,
            self.chain.block_number,
            self.config.tombstone_grace_blocks,
        )
        self.events.emit(LogDelete(keeper=normalize_address(caller), id=offer_id))
        return True

    # --- Administration ---

    @transaction
    def set_min_sell(self, caller: str, pay_gem: str, dust: int) -> None:
        """Set the dust floor for offers selling ``pay_gem``."""
        self._require_auth(caller)
        if dust < 0:
            raise InvalidAmount(f"Dust limit cannot be negative: {dust}")
        pay_gem = normalize_address(pay_gem)
        self.store.dust[pay_gem] = dust
        self.events.emit(LogMinSell(pay_gem=pay_gem, min_amount=dust))
        logger.info("min_sell_set", pay_gem=pay_gem, dust=dust)

    @transaction
    def set_buy_enabled(self, caller: str, enabled: bool) -> None:
        self._require_auth(caller)
        self._state.buy_enabled = enabled
        self.events.emit(LogBuyEnabled(is_enabled=enabled))
        logger.info("buy_enabled_set", enabled=enabled)

    @transaction
    def set_matching_enabled(self, caller: str, enabled: bool) -> None:
        self._require_auth(caller)
        self._state.matching_enabled = enabled
        self.events.emit(LogMatchingEnabled(is_enabled=enabled))
        logger.info("matching_enabled_set", enabled=enabled)

    # --- Book reads ---

    def get_min_sell(self, pay_gem: str) -> int:
        return self.store.dust_of(normalize_address(pay_gem))

    def get_best_offer(self, sell_gem: str, buy_gem: str) -> int:
        return self.store.best_of(self._pair(sell_gem, buy_gem))

    def get_worse_offer(self, offer_id: int) -> int:
        return self.store.prev_of(offer_id)

    def get_better_offer(self, offer_id: int) -> int:
        return self.store.next_of(offer_id)

    def get_offer_count(self, sell_gem: str, buy_gem: str) -> int:
        return self.store.span_of(self._pair(sell_gem, buy_gem))

    def get_first_unsorted_offer(self) -> int:
        return self.store.head

    def get_next_unsorted_offer(self, offer_id: int) -> int:
        return self.store.near.get(offer_id, NULL_ID)

    def is_offer_sorted(self, offer_id: int) -> bool:
        return index.is_ranked(self.store, offer_id)

    def get_sorted_offers(self, sell_gem: str, buy_gem: str) -> list[int]:
        """Offer ids of a pair from best to worst."""
        return list(index.walk(self.store, self._pair(sell_gem, buy_gem)))

    def get_unsorted_offers(self) -> list[int]:
        return list(index.unsorted_ids(self.store))

    # --- Market orders ---

    @transaction
    def sell_all_amount(
        self, caller: str, pay_gem: str, pay_amt: int, buy_gem: str, min_fill_amount: int
    ) -> int:
        """Sell ``pay_amt`` of ``pay_gem`` into the book at whatever prices it offers.

        Returns:
            Amount of ``buy_gem`` received

        Raises:
            InsufficientDepth: If the book empties before ``pay_amt`` is sold
            FillLimitExceeded: If less than ``min_fill_amount`` was received
        """
        self._require_unlocked()
        fill_amt = S(0)
        remaining = S(pay_amt)
        while remaining > 0:
            offer_id = self.get_best_offer(buy_gem, pay_gem)
            if offer_id == NULL_ID:
                raise InsufficientDepth(f"No offers left to sell {remaining} into")
            offer = self.store.get(offer_id)
            offer_pay, offer_buy = offer.pay_amt, offer.buy_amt

            # Less than one unit of the counter asset left
            if remaining * WAD < wdiv(offer_buy, offer_pay):
                break
            if remaining >= offer_buy:
                fill_amt += offer_pay
                remaining -= offer_buy
                self.take(caller, offer_id, offer_pay)
            else:
                baux = rmul(remaining.value * _RAY_PAD, rdiv(offer_pay, offer_buy)) // _RAY_PAD
                fill_amt += baux
                self.take(caller, offer_id, baux)
                remaining = S(0)

        if fill_amt < min_fill_amount:
            raise FillLimitExceeded(f"Filled {fill_amt}, below minimum {min_fill_amount}")
        logger.info("sell_all_filled", pay_gem=pay_gem, pay_amt=pay_amt, fill_amt=fill_amt.value)
        return fill_amt.value

    @transaction
    def buy_all_amount(
        self, caller: str, buy_gem: str, buy_amt: int, pay_gem: str, max_fill_amount: int
    ) -> int:
        """Buy ``buy_amt`` of ``buy_gem`` from the book, paying in ``pay_gem``.

        Returns:
            Amount of ``pay_gem`` paid

        Raises:
            InsufficientDepth: If the book empties before ``buy_amt`` is bought
            FillLimitExceeded: If more than ``max_fill_amount`` was paid
        """
        self._require_unlocked()
        fill_amt = S(0)
        remaining = S(buy_amt)
        while remaining > 0:
            offer_id = self.get_best_offer(buy_gem, pay_gem)
            if offer_id == NULL_ID:
                raise InsufficientDepth(f"No offers left to buy {remaining} from")
            offer = self.store.get(offer_id)
            offer_pay, offer_buy = offer.pay_amt, offer.buy_amt

            if remaining * WAD < wdiv(offer_pay, offer_buy):
                break
            if remaining >= offer_pay:
                fill_amt += offer_buy
                remaining -= offer_pay
                self.take(caller, offer_id, offer_pay)
            else:
                fill_amt += (
                    rmul(remaining.value * _RAY_PAD, rdiv(offer_buy, offer_pay)) // _RAY_PAD
                )
                self.take(caller, offer_id, remaining.value)
                remaining = S(0)

        if fill_amt > max_fill_amount:
            raise FillLimitExceeded(f"Paid {fill_amt}, above maximum {max_fill_amount}")
        logger.info("buy_all_filled", buy_gem=buy_gem, buy_amt=buy_amt, fill_amt=fill_amt.value)
        return fill_amt.value

    def get_buy_amount(self, buy_gem: str, pay_gem: str, pay_amt: int) -> int:
        """Quote how much ``buy_gem`` selling ``pay_amt`` of ``pay_gem`` would return."""
        offer_id = self.get_best_offer(buy_gem, pay_gem)
        if offer_id == NULL_ID:
            raise InsufficientDepth("No offers to quote against")
        offer = self.store.get(offer_id)
        fill_amt = S(0)
        remaining = S(pay_amt)
        while remaining > offer.buy_amt:
            fill_amt += offer.pay_amt
            remaining -= offer.buy_amt
            offer_id = self.get_worse_offer(offer_id)
            if offer_id == NULL_ID:
                raise InsufficientDepth(f"Book too shallow to sell {pay_amt}")
            offer = self.store.get(offer_id)
        fill_amt += rmul(remaining.value * _RAY_PAD, rdiv(offer.pay_amt, offer.buy_amt)) // _RAY_PAD
        return fill_amt.value

    def get_pay_amount(self, pay_gem: str, buy_gem: str, buy_amt: int) -> int:
        """Quote how much ``pay_gem`` buying ``buy_amt`` of ``buy_gem`` would cost."""
        offer_id = self.get_best_offer(buy_gem, pay_gem)
        if offer_id == NULL_ID:
            raise InsufficientDepth("No offers to quote against")
        offer = self.store.get(offer_id)
        fill_amt = S(0)
        remaining = S(buy_amt)
        while remaining > offer.pay_amt:
            fill_amt += offer.buy_amt
            remaining -= offer.pay_amt
            offer_id = self.get_worse_offer(offer_id)
            if offer_id == NULL_ID:
                raise InsufficientDepth(f"Book too shallow to buy {buy_amt}")
            offer = self.store.get(offer_id)
        fill_amt += rmul(remaining.value * _RAY_PAD, rdiv(offer.buy_amt, offer.pay_amt)) // _RAY_PAD
        return fill_amt.value

    # --- Internals ---

    def _buys(self, caller: str, offer_id: int, quantity: int) -> bool:
        if not self.buy_enabled:
            raise BuyingDisabled("Direct buys are disabled")

        offer = self.store.get(offer_id)
        if quantity == offer.pay_amt:
            if index.is_ranked(self.store, offer_id):
                index.unsort(self.store, offer_id, self.chain.block_number)
            else:
                index.hide(self.store, offer_id)

        if not self._fill(caller, offer_id, quantity):
            raise InvalidAmount(f"Buying {quantity} of offer {offer_id} moves nothing")

        if self.is_active(offer_id) and offer.pay_amt < self.store.dust_of(offer.pay_gem):
            logger.info("dust_offer_cancelled", id=offer_id, remaining=offer.pay_amt)
            self._state.dust_id = offer_id
            try:
                self.cancel(caller, offer_id)
            finally:
                self._state.dust_id = NULL_ID
        return True

    def _offeru(self, caller: str, pay_amt: int, pay_gem: str, buy_amt: int, buy_gem: str) -> int:
        offer_id = self._make_offer(caller, pay_amt, pay_gem, buy_amt, buy_gem)
        index.push_unsorted(self.store, offer_id)
        self.events.emit(LogUnsortedOffer(id=offer_id))
        return offer_id

    def _sort(self, offer_id: int, pos: int) -> None:
        index.insert_sorted(self.store, offer_id, pos)
        self.events.emit(LogSortedOffer(id=offer_id))

    def _matcho(
        self,
        caller: str,
        t_pay_amt: int,
        t_pay_gem: str,
        t_buy_amt: int,
        t_buy_gem: str,
        pos: int,
        rounding: bool,
    ) -> int:
        """Match a taker order against the opposite book, then rest its residue."""
        opposite = (t_buy_gem, t_pay_gem)
        while (maker_id := self.store.best_of(opposite)) != NULL_ID:
            maker = self.store.get(maker_id)
            m_buy_amt, m_pay_amt = maker.buy_amt, maker.pay_amt

            # Each amount may be one unit off its true value after integer
            # division on both sides; the tolerance admits those near-crosses.
            tolerance = m_buy_amt + t_buy_amt + t_pay_amt + m_pay_amt if rounding else 0
            if S(m_buy_amt) * t_buy_amt > S(t_pay_amt) * m_pay_amt + tolerance:
                break

            fill = min(m_pay_amt, t_buy_amt)
            self.buy(caller, maker_id, fill)
            t_buy_amt_old = t_buy_amt
            t_buy_amt = (S(t_buy_amt) - fill).value
            t_pay_amt = (S(t_buy_amt) * t_pay_amt // t_buy_amt_old).value
            logger.debug(
                "offer_matched",
                maker=maker_id,
                fill=fill,
                taker_pay_left=t_pay_amt,
                taker_buy_left=t_buy_amt,
            )

            if t_pay_amt == 0 or t_buy_amt == 0:
                break

        if t_buy_amt > 0 and t_pay_amt > 0 and t_pay_amt >= self.store.dust_of(t_pay_gem):
            offer_id = self._make_offer(caller, t_pay_amt, t_pay_gem, t_buy_amt, t_buy_gem)
            self._sort(offer_id, pos)
            return offer_id
        return NULL_ID


def create_default_market() -> MatchingMarket:
    """Create a market on a fresh chain from environment settings.

    MARKET_ADMIN lists comma-separated admin addresses. MARKET_ASSETS lists
    comma-separated ``address`` or ``address:SYMBOL`` entries registered as
    in-memory assets. Book and oracle parameters come from
    ``MarketConfig.from_env``.

    Returns:
        Configured MatchingMarket instance
    """
    import os

    from market.assets import InMemoryAsset
    from market.auth import AllowListAuthority
    from market.config import MarketConfig
    from market.host import Chain

    chain = Chain()
    for entry in filter(None, os.environ.get("MARKET_ASSETS", "").split(",")):
        address, _, symbol = entry.strip().partition(":")
        chain.register_asset(InMemoryAsset(address, symbol))

    admins = [a.strip() for a in os.environ.get("MARKET_ADMIN", "").split(",") if a.strip()]
    logger.info("default_market_created", admins=len(admins), assets=len(chain.assets))
    return MatchingMarket(
        chain,
        authority=AllowListAuthority(admins),
        config=MarketConfig.from_env(),
    )
