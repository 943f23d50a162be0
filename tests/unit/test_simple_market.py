"""Tests for the foundational escrow market."""

import pytest

from market.errors import (
    AssetError,
    CancelNotPermitted,
    InactiveOffer,
    InvalidAmount,
    InvalidFee,
    MarketClosed,
    NotAuthorized,
    UnknownAsset,
)
from market.events import LogBump, LogFeeBps, LogKill, LogMake, LogTake, LogTrade
from market.oracle import Observation
from market.safe_int import UINT128_MAX
from market.simple_market import SimpleMarket
from tests.helpers import (
    ADMIN,
    ALICE,
    BOB,
    DAI,
    DEFAULT_BALANCE,
    FEE_SINK,
    ONE,
    WETH,
    balance,
    make_chain,
    make_market,
)


class ExpiringMarket(SimpleMarket):
    """Market whose lifetime gate can be flipped by tests."""

    closed = False

    def is_closed(self) -> bool:
        return self.closed


class TestOffer:
    """Tests for offer creation and escrow."""

    def test_offer_escrows_sell_amount(self, simple_market):
        """Posting an offer moves the sell amount into the market."""
        offer_id = simple_market.offer(ALICE, 10 * ONE, WETH, 20 * ONE, DAI)
        assert offer_id == 1
        assert simple_market.get_offer(offer_id) == (10 * ONE, WETH, 20 * ONE, DAI)
        assert simple_market.get_owner(offer_id) == ALICE
        assert balance(simple_market, WETH, ALICE) == DEFAULT_BALANCE - 10 * ONE
        assert balance(simple_market, WETH, simple_market.address) == 10 * ONE

    def test_offer_emits_make(self, simple_market):
        """LogMake carries the offer terms."""
        offer_id = simple_market.offer(ALICE, 10, WETH, 20, DAI)
        (event,) = simple_market.events.of_type(LogMake)
        assert event.id == offer_id
        assert (event.maker, event.pay_amt, event.buy_amt) == (ALICE, 10, 20)

    def test_ids_increase(self, simple_market):
        """Offer ids are handed out sequentially."""
        first = simple_market.offer(ALICE, 10, WETH, 20, DAI)
        second = simple_market.make(BOB, DAI, WETH, 20, 10)
        assert (first, second) == (1, 2)
        assert simple_market.last_offer_id == 2
        assert simple_market.get_offer(second) == (20, DAI, 10, WETH)

    @pytest.mark.parametrize(
        "pay_amt,buy_amt",
        [(0, 10), (10, 0), (UINT128_MAX + 1, 10), (10, UINT128_MAX + 1)],
    )
    def test_rejects_bad_amounts(self, simple_market, pay_amt, buy_amt):
        """Amounts must be positive and fit 128 bits."""
        with pytest.raises(InvalidAmount):
            simple_market.offer(ALICE, pay_amt, WETH, buy_amt, DAI)

    def test_rejects_same_asset(self, simple_market):
        """An offer must exchange two different assets."""
        with pytest.raises(InvalidAmount):
            simple_market.offer(ALICE, 10, WETH, 10, WETH)

    def test_rejects_unknown_asset(self, simple_market):
        """Both assets must be registered on the chain."""
        with pytest.raises(UnknownAsset):
            simple_market.offer(ALICE, 10, WETH, 10, "0x" + "12" * 20)

    def test_rejects_unfunded_maker(self, simple_market):
        """The maker must hold the sell amount; nothing is stored on failure."""
        with pytest.raises(AssetError):
            simple_market.offer(ALICE, DEFAULT_BALANCE + 1, WETH, 10, DAI)
        assert simple_market.last_offer_id == 0
        assert len(simple_market.events) == 0


class TestBuy:
    """Tests for fills at the offer's own ratio."""

    def test_partial_fill(self, simple_market):
        """A partial buy shrinks both sides proportionally."""
        offer_id = simple_market.offer(ALICE, 10 * ONE, WETH, 20 * ONE, DAI)
        assert simple_market.buy(BOB, offer_id, 4 * ONE)
        assert simple_market.get_offer(offer_id) == (6 * ONE, WETH, 12 * ONE, DAI)
        assert balance(simple_market, WETH, BOB) == DEFAULT_BALANCE + 4 * ONE
        assert balance(simple_market, DAI, BOB) == DEFAULT_BALANCE - 8 * ONE
        assert balance(simple_market, DAI, ALICE) == DEFAULT_BALANCE + 8 * ONE

    def test_full_fill_deletes_offer(self, simple_market):
        """Buying the whole offer removes it."""
        offer_id = simple_market.offer(ALICE, 10, WETH, 20, DAI)
        simple_market.buy(BOB, offer_id, 10)
        assert not simple_market.is_active(offer_id)
        with pytest.raises(InactiveOffer):
            simple_market.get_offer(offer_id)

    def test_fill_emits_take_and_trade(self, simple_market):
        """Fills are announced to indexers."""
        offer_id = simple_market.offer(ALICE, 10, WETH, 20, DAI)
        simple_market.buy(BOB, offer_id, 5)
        (take,) = simple_market.events.of_type(LogTake)
        assert (take.taker, take.take_amt, take.give_amt) == (BOB, 5, 10)
        (trade,) = simple_market.events.of_type(LogTrade)
        assert (trade.pay_gem, trade.pay_amt, trade.buy_gem, trade.buy_amt) == (WETH, 5, DAI, 10)

    def test_fill_feeds_oracle(self, simple_market):
        """The first fill of a pair is sampled at the fill's price."""
        offer_id = simple_market.offer(ALICE, 10, WETH, 20, DAI)
        simple_market.buy(BOB, offer_id, 5)
        now = simple_market.chain.timestamp
        assert simple_market.get_observations(WETH, DAI) == [Observation(2 * ONE, 5, 10, now)]
        assert simple_market.get_twap(WETH, DAI, 3600) == 2 * ONE

    def test_overbuy_rejected(self, simple_market):
        """Buying more than the offer holds fails."""
        offer_id = simple_market.offer(ALICE, 10, WETH, 20, DAI)
        with pytest.raises(InvalidAmount):
            simple_market.buy(BOB, offer_id, 11)

    def test_zero_fill_returns_false(self, simple_market):
        """A fill that rounds to nothing is a no-op returning False."""
        offer_id = simple_market.offer(ALICE, 100, WETH, 1, DAI)
        assert simple_market.buy(BOB, offer_id, 0) is False
        assert simple_market.buy(BOB, offer_id, 50) is False
        assert simple_market.get_offer(offer_id) == (100, WETH, 1, DAI)

    def test_take_requires_movement(self, simple_market):
        """take turns a no-op fill into an error."""
        offer_id = simple_market.offer(ALICE, 100, WETH, 1, DAI)
        with pytest.raises(InvalidAmount):
            simple_market.take(BOB, offer_id, 50)
        simple_market.take(BOB, offer_id, 100)
        assert not simple_market.is_active(offer_id)

    def test_buy_inactive_rejected(self, simple_market):
        """Unknown offers cannot be bought."""
        with pytest.raises(InactiveOffer):
            simple_market.buy(BOB, 42, 1)


class TestCancel:
    """Tests for cancellation permissions and refunds."""

    def test_round_trip_restores_balance(self, simple_market):
        """Offer then cancel returns the maker's exact balance."""
        before = balance(simple_market, WETH, ALICE)
        offer_id = simple_market.offer(ALICE, 7 * ONE, WETH, 3 * ONE, DAI)
        assert simple_market.cancel(ALICE, offer_id)
        assert balance(simple_market, WETH, ALICE) == before
        assert balance(simple_market, WETH, simple_market.address) == 0

    def test_cancel_refunds_remainder(self, simple_market):
        """After a partial fill, only the remainder is refunded."""
        offer_id = simple_market.offer(ALICE, 10, WETH, 20, DAI)
        simple_market.buy(BOB, offer_id, 4)
        simple_market.kill(ALICE, offer_id)
        assert balance(simple_market, WETH, ALICE) == DEFAULT_BALANCE - 4
        (kill,) = simple_market.events.of_type(LogKill)
        assert kill.pay_amt == 6

    def test_non_owner_cannot_cancel(self, simple_market):
        """Only the maker may cancel an open market's offer."""
        offer_id = simple_market.offer(ALICE, 10, WETH, 20, DAI)
        with pytest.raises(CancelNotPermitted):
            simple_market.cancel(BOB, offer_id)
        assert simple_market.is_active(offer_id)

    def test_cancel_twice_fails(self, simple_market):
        """A cancelled offer is inactive."""
        offer_id = simple_market.offer(ALICE, 10, WETH, 20, DAI)
        simple_market.cancel(ALICE, offer_id)
        with pytest.raises(InactiveOffer):
            simple_market.cancel(ALICE, offer_id)

    def test_bump_reannounces(self, simple_market):
        """bump emits the offer's current terms."""
        offer_id = simple_market.offer(ALICE, 10, WETH, 20, DAI)
        simple_market.bump(BOB, offer_id)
        (event,) = simple_market.events.of_type(LogBump)
        assert (event.id, event.pay_amt, event.buy_amt) == (offer_id, 10, 20)


class TestLifetimeGate:
    """Tests for the closed-market behaviour."""

    @pytest.fixture
    def expiring(self) -> ExpiringMarket:
        market = make_market(ExpiringMarket, chain=make_chain())
        assert isinstance(market, ExpiringMarket)
        return market

    def test_closed_market_rejects_offers_and_buys(self, expiring):
        """No offers or buys once closed."""
        offer_id = expiring.offer(ALICE, 10, WETH, 20, DAI)
        expiring.closed = True
        with pytest.raises(MarketClosed):
            expiring.offer(ALICE, 10, WETH, 20, DAI)
        with pytest.raises(MarketClosed):
            expiring.buy(BOB, offer_id, 1)

    def test_anyone_may_cancel_when_closed(self, expiring):
        """After close, any caller can return an offer's escrow to its maker."""
        offer_id = expiring.offer(ALICE, 10, WETH, 20, DAI)
        expiring.closed = True
        expiring.cancel(BOB, offer_id)
        assert balance(expiring, WETH, ALICE) == DEFAULT_BALANCE


class TestFees:
    """Tests for fee administration and charging."""

    def test_setters_require_authority(self, simple_market):
        """Only authorized callers change the fee."""
        with pytest.raises(NotAuthorized):
            simple_market.set_fee_bps(ALICE, 10)
        with pytest.raises(NotAuthorized):
            simple_market.set_fee_to(ALICE, FEE_SINK)

    def test_fee_rate_bounds(self, simple_market):
        """The fee rate must be within 0..10,000 bps."""
        with pytest.raises(InvalidFee):
            simple_market.set_fee_bps(ADMIN, 10_001)
        simple_market.set_fee_bps(ADMIN, 10_000)
        assert simple_market.fee_bps == 10_000
        (event,) = simple_market.events.of_type(LogFeeBps)
        assert event.fee_bps == 10_000

    def test_fee_without_recipient_fails(self, simple_market):
        """A positive fee with no recipient aborts the fill."""
        offer_id = simple_market.offer(ALICE, 10 * ONE, WETH, 20 * ONE, DAI)
        simple_market.set_fee_bps(ADMIN, 30)
        with pytest.raises(InvalidFee):
            simple_market.buy(BOB, offer_id, ONE)
        assert simple_market.get_offer(offer_id) == (10 * ONE, WETH, 20 * ONE, DAI)

    def test_fee_split(self, simple_market):
        """The maker receives the buy-side amount less the fee."""
        simple_market.set_fee_to(ADMIN, FEE_SINK)
        simple_market.set_fee_bps(ADMIN, 100)
        offer_id = simple_market.offer(ALICE, 10 * ONE, WETH, 20 * ONE, DAI)
        simple_market.buy(BOB, offer_id, 10 * ONE)
        assert balance(simple_market, DAI, FEE_SINK) == 20 * ONE // 100
        assert balance(simple_market, DAI, ALICE) == DEFAULT_BALANCE + 20 * ONE - 20 * ONE // 100
        assert balance(simple_market, DAI, BOB) == DEFAULT_BALANCE - 20 * ONE
