"""Foundational market layer: escrowed offers, fills and cancellations.

SimpleMarket knows nothing about price ordering. It holds the maker's sell
amount in escrow, lets any taker buy part or all of an active offer at the
offer's own ratio, charges the configured fee on the buy-side amount, feeds
fills into the price oracle and refunds the remainder on cancellation.

The ``offer``/``buy``/``cancel`` paths raise the reentrancy flag while they
run, so an asset callback that tries to re-enter the market fails and takes
the whole call down with it.
"""

from __future__ import annotations

import copy
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

import structlog

from market.assets import Asset
from market.auth import AllowListAuthority, Authority
from market.book.store import OfferStore
from market.config import DEFAULT_MARKET_CONFIG, MarketConfig
from market.constants import FEE_BPS_BASE, NULL_ID
from market.errors import (
    CancelNotPermitted,
    InactiveOffer,
    InvalidAmount,
    InvalidFee,
    MarketClosed,
    NotAuthorized,
    ReentrancyError,
    TransferFailed,
)
from market.events import (
    EventLog,
    LogBump,
    LogFee,
    LogFeeBps,
    LogFeeTo,
    LogItemUpdate,
    LogKill,
    LogMake,
    LogTake,
    LogTrade,
)
from market.host import Chain, transaction
from market.models.offer import Offer
from market.models.types import normalize_address
from market.oracle import Observation, PriceOracle
from market.safe_int import UINT128_MAX, S

logger = structlog.get_logger()

DEFAULT_MARKET_ADDRESS = "0x" + "0" * 36 + "b00c"


@dataclass
class MarketState:
    """Everything a call may mutate; captured whole for rollback."""

    store: OfferStore
    oracle: PriceOracle
    events: EventLog = field(default_factory=EventLog)
    locked: bool = False
    dust_id: int = NULL_ID
    fee_bps: int = 0
    fee_to: str | None = None
    matching_enabled: bool = True
    buy_enabled: bool = True


class SimpleMarket:
    """Escrowing offer book without price ordering.

    Attributes:
        chain: Host providing clock, assets and atomic calls
        authority: Gate for administrative setters
        config: Market parameters
        address: Address the market escrows funds under
    """

    def __init__(
        self,
        chain: Chain,
        authority: Authority | None = None,
        config: MarketConfig | None = None,
        address: str = DEFAULT_MARKET_ADDRESS,
    ) -> None:
        self.chain = chain
        self.authority = authority or AllowListAuthority()
        self.config = config or DEFAULT_MARKET_CONFIG
        self.address = normalize_address(address, validate=True)
        self._state = MarketState(
            store=OfferStore(),
            oracle=PriceOracle(
                capacity=self.config.oracle_capacity,
                min_interval=self.config.oracle_min_interval,
                scale=self.config.price_scale,
            ),
            matching_enabled=self.config.matching_enabled,
            buy_enabled=self.config.buy_enabled,
        )
        chain.journal(self)

    # --- Journaling ---

    def snapshot(self) -> MarketState:
        return copy.deepcopy(self._state)

    def restore(self, state: MarketState) -> None:
        self._state = state

    # --- State accessors ---

    @property
    def store(self) -> OfferStore:
        return self._state.store

    @property
    def oracle(self) -> PriceOracle:
        return self._state.oracle

    @property
    def events(self) -> EventLog:
        return self._state.events

    @property
    def locked(self) -> bool:
        return self._state.locked

    @property
    def fee_bps(self) -> int:
        return self._state.fee_bps

    @property
    def fee_to(self) -> str | None:
        return self._state.fee_to

    # --- Lifetime gate ---

    def is_closed(self) -> bool:
        """Whether the market stopped accepting offers and buys.

        Always False here; subclasses with an expiry override it.
        """
        return False

    # --- Reads ---

    def is_active(self, offer_id: int) -> bool:
        return self.store.is_active(offer_id)

    def get_offer(self, offer_id: int) -> tuple[int, str, int, str]:
        """Return ``(pay_amt, pay_gem, buy_amt, buy_gem)`` of an active offer."""
        offer = self.store.get(offer_id)
        return offer.pay_amt, offer.pay_gem, offer.buy_amt, offer.buy_gem

    def get_owner(self, offer_id: int) -> str:
        return self.store.get(offer_id).owner

    def offer_details(self, offer_id: int) -> Offer:
        """Copy of the full offer record."""
        return copy.copy(self.store.get(offer_id))

    @property
    def last_offer_id(self) -> int:
        return self.store.last_offer_id

    # --- Entrypoints ---

    @transaction
    def offer(self, caller: str, pay_amt: int, pay_gem: str, buy_amt: int, buy_gem: str) -> int:
        """Escrow ``pay_amt`` of ``pay_gem`` and post an offer for ``buy_amt`` of ``buy_gem``.

        Returns:
            The new offer id
        """
        return self._make_offer(caller, pay_amt, pay_gem, buy_amt, buy_gem)

    @transaction
    def buy(self, caller: str, offer_id: int, quantity: int) -> bool:
        """Buy ``quantity`` of an offer's sell asset at the offer's ratio.

        Returns:
            False if the fill rounds to nothing, True otherwise
        """
        return self._fill(caller, offer_id, quantity)

    @transaction
    def cancel(self, caller: str, offer_id: int) -> bool:
        """Withdraw an offer and refund its remaining escrow to the maker."""
        return self._cancel(caller, offer_id)

    def make(self, caller: str, pay_gem: str, buy_gem: str, pay_amt: int, buy_amt: int) -> int:
        return self.offer(caller, pay_amt, pay_gem, buy_amt, buy_gem)

    def take(self, caller: str, offer_id: int, max_take_amount: int) -> None:
        """Buy that must move funds.

        Raises:
            InvalidAmount: If the fill rounds to nothing
        """
        if not self.buy(caller, offer_id, max_take_amount):
            raise InvalidAmount(f"Taking {max_take_amount} of offer {offer_id} moves nothing")

    def kill(self, caller: str, offer_id: int) -> None:
        self.cancel(caller, offer_id)

    @transaction
    def bump(self, caller: str, offer_id: int) -> None:
        """Re-announce an active offer so indexers pick it up again."""
        self._require_can_buy(offer_id)
        offer = self.store.get(offer_id)
        self.events.emit(
            LogBump(
                id=offer_id,
                maker=offer.owner,
                pay_gem=offer.pay_gem,
                buy_gem=offer.buy_gem,
                pay_amt=offer.pay_amt,
                buy_amt=offer.buy_amt,
                timestamp=offer.timestamp,
            )
        )

    # --- Administration ---

    @transaction
    def set_fee_bps(self, caller: str, fee_bps: int) -> None:
        """Set the fee rate charged on the buy-side amount of each fill."""
        self._require_auth(caller)
        if not 0 <= fee_bps <= self.config.max_fee_bps:
            raise InvalidFee(f"fee_bps must be within 0..{self.config.max_fee_bps}, got {fee_bps}")
        self._state.fee_bps = fee_bps
        self.events.emit(LogFeeBps(fee_bps=fee_bps))
        logger.info("fee_rate_set", fee_bps=fee_bps)

    @transaction
    def set_fee_to(self, caller: str, recipient: str | None) -> None:
        """Set the address that receives fees."""
        self._require_auth(caller)
        self._state.fee_to = normalize_address(recipient, validate=True) if recipient else None
        self.events.emit(LogFeeTo(recipient=self._state.fee_to))
        logger.info("fee_recipient_set", recipient=self._state.fee_to)

    # --- Oracle reads ---

    def get_twap(self, pay_gem: str, buy_gem: str, duration: int) -> int:
        return self.oracle.get_twap(self._pair(pay_gem, buy_gem), duration, self.chain.timestamp)

    def get_vwap(self, pay_gem: str, buy_gem: str, duration: int) -> int:
        return self.oracle.get_vwap(self._pair(pay_gem, buy_gem), duration, self.chain.timestamp)

    def get_awap(self, pay_gem: str, buy_gem: str, duration: int, weight: int) -> int:
        return self.oracle.get_awap(
            self._pair(pay_gem, buy_gem), duration, weight, self.chain.timestamp
        )

    def get_observations(self, pay_gem: str, buy_gem: str) -> list[Observation]:
        return self.oracle.observations(self._pair(pay_gem, buy_gem))

    # --- Foundational operations ---

    def _make_offer(
        self, caller: str, pay_amt: int, pay_gem: str, buy_amt: int, buy_gem: str
    ) -> int:
        with self._synchronized():
            if self.is_closed():
                raise MarketClosed("Market is closed to new offers")
            _require_amount("pay_amt", pay_amt)
            _require_amount("buy_amt", buy_amt)
            pay_gem = normalize_address(pay_gem)
            buy_gem = normalize_address(buy_gem)
            if pay_gem == buy_gem:
                raise InvalidAmount(f"Offer sells and buys the same asset {pay_gem}")
            pay_asset = self.chain.asset(pay_gem)
            self.chain.asset(buy_gem)

            caller = normalize_address(caller)
            offer_id = self.store.next_id()
            offer = Offer(
                pay_amt=pay_amt,
                pay_gem=pay_gem,
                buy_amt=buy_amt,
                buy_gem=buy_gem,
                owner=caller,
                timestamp=self.chain.timestamp,
            )
            self.store.offers[offer_id] = offer
            self._pull(pay_asset, caller, self.address, pay_amt)

            self.events.emit(LogItemUpdate(id=offer_id))
            self.events.emit(
                LogMake(
                    id=offer_id,
                    maker=caller,
                    pay_gem=pay_gem,
                    buy_gem=buy_gem,
                    pay_amt=pay_amt,
                    buy_amt=buy_amt,
                    timestamp=offer.timestamp,
                )
            )
            logger.debug("offer_made", id=offer_id, maker=caller, pay_amt=pay_amt, buy_amt=buy_amt)
            return offer_id

    def _fill(self, caller: str, offer_id: int, quantity: int) -> bool:
        with self._synchronized():
            self._require_can_buy(offer_id)
            offer = self.store.get(offer_id)
            caller = normalize_address(caller)

            spend = (S(quantity) * offer.buy_amt // offer.pay_amt).to_uint128()
            if quantity > offer.pay_amt or spend > offer.buy_amt:
                raise InvalidAmount(
                    f"Buying {quantity} exceeds offer {offer_id} ({offer.pay_amt} available)"
                )
            if quantity == 0 or spend == 0:
                return False

            offer.pay_amt = (S(offer.pay_amt) - quantity).value
            offer.buy_amt = (S(offer.buy_amt) - spend).value

            buy_asset = self.chain.asset(offer.buy_gem)
            fee = (S(spend) * self.fee_bps // FEE_BPS_BASE).value
            if fee and self.fee_to is None:
                raise InvalidFee("Fee is set but no fee recipient is configured")

            self._pull(buy_asset, caller, offer.owner, spend - fee)
            if fee:
                self._pull(buy_asset, caller, self.fee_to, fee)
                self.events.emit(
                    LogFee(
                        id=offer_id,
                        payer=caller,
                        recipient=self.fee_to,
                        gem=offer.buy_gem,
                        amount=fee,
                    )
                )
            self._push(self.chain.asset(offer.pay_gem), caller, quantity)

            self.events.emit(LogItemUpdate(id=offer_id))
            self.events.emit(
                LogTake(
                    id=offer_id,
                    maker=offer.owner,
                    taker=caller,
                    pay_gem=offer.pay_gem,
                    buy_gem=offer.buy_gem,
                    take_amt=quantity,
                    give_amt=spend,
                    timestamp=self.chain.timestamp,
                )
            )
            self.events.emit(
                LogTrade(
                    pay_amt=quantity,
                    pay_gem=offer.pay_gem,
                    buy_amt=spend,
                    buy_gem=offer.buy_gem,
                )
            )
            self.oracle.record(offer.pair, quantity, spend, self.chain.timestamp)

            if offer.pay_amt == 0:
                self.store.remove(offer_id)

            logger.debug(
                "offer_taken",
                id=offer_id,
                taker=caller,
                quantity=quantity,
                spend=spend,
                fee=fee,
                remaining=offer.pay_amt,
            )
            return True

    def _cancel(self, caller: str, offer_id: int) -> bool:
        with self._synchronized():
            self._require_can_cancel(caller, offer_id)
            offer = self.store.get(offer_id)
            self.store.remove(offer_id)
            self._push(self.chain.asset(offer.pay_gem), offer.owner, offer.pay_amt)

            self.events.emit(LogItemUpdate(id=offer_id))
            self.events.emit(
                LogKill(
                    id=offer_id,
                    maker=offer.owner,
                    pay_gem=offer.pay_gem,
                    buy_gem=offer.buy_gem,
                    pay_amt=offer.pay_amt,
                    buy_amt=offer.buy_amt,
                    timestamp=self.chain.timestamp,
                )
            )
            logger.debug("offer_cancelled", id=offer_id, refund=offer.pay_amt, owner=offer.owner)
            return True

    # --- Guards ---

    @contextmanager
    def _synchronized(self) -> Iterator[None]:
        self._require_unlocked()
        self._state.locked = True
        try:
            yield
        finally:
            self._state.locked = False

    def _require_unlocked(self) -> None:
        if self._state.locked:
            raise ReentrancyError("Reentrancy attempt")

    def _require_can_buy(self, offer_id: int) -> None:
        if not self.is_active(offer_id):
            raise InactiveOffer(f"Offer {offer_id} is not active")
        if self.is_closed():
            raise MarketClosed("Market is closed to buys")

    def _require_can_cancel(self, caller: str, offer_id: int) -> None:
        if not self.is_active(offer_id):
            raise InactiveOffer(f"Offer {offer_id} is not active")
        if normalize_address(caller) == self.store.get(offer_id).owner:
            return
        if self.is_closed() or offer_id == self._state.dust_id:
            return
        raise CancelNotPermitted(f"{caller} may not cancel offer {offer_id}")

    def _require_auth(self, caller: str) -> None:
        if not self.authority.is_authorized(caller):
            raise NotAuthorized(f"{caller} is not authorized")

    # --- Transfers ---

    def _pull(self, asset: Asset, owner: str, recipient: str, amount: int) -> None:
        if not asset.transfer_from(self.address, owner, recipient, amount):
            raise TransferFailed(f"transfer_from of {amount} from {owner} failed")

    def _push(self, asset: Asset, recipient: str, amount: int) -> None:
        if not asset.transfer(self.address, recipient, amount):
            raise TransferFailed(f"transfer of {amount} to {recipient} failed")

    @staticmethod
    def _pair(pay_gem: str, buy_gem: str) -> tuple[str, str]:
        return normalize_address(pay_gem), normalize_address(buy_gem)


def _require_amount(name: str, amount: int) -> None:
    if not isinstance(amount, int) or isinstance(amount, bool):
        raise InvalidAmount(f"{name} must be an integer, got {type(amount).__name__}")
    if amount <= 0:
        raise InvalidAmount(f"{name} must be positive, got {amount}")
    if amount > UINT128_MAX:
        raise InvalidAmount(f"{name} exceeds uint128: {amount}")
