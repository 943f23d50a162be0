"""Pytest configuration and fixtures."""

import pytest

from market.host import Chain
from market.matching_market import MatchingMarket
from market.simple_market import SimpleMarket
from tests.helpers import ADMIN, FEE_SINK, make_chain, make_market


@pytest.fixture
def chain() -> Chain:
    """Fresh chain with WETH, DAI and MKR registered."""
    return make_chain()


@pytest.fixture
def market(chain: Chain) -> MatchingMarket:
    """Matching market with ALICE, BOB and CAROL funded and approved."""
    built = make_market(MatchingMarket, chain=chain)
    assert isinstance(built, MatchingMarket)
    return built


@pytest.fixture
def simple_market(chain: Chain) -> SimpleMarket:
    """Foundational market without price ordering."""
    return make_market(SimpleMarket, chain=chain)


@pytest.fixture
def fee_market(market: MatchingMarket) -> MatchingMarket:
    """Matching market charging 30 bps to FEE_SINK."""
    market.set_fee_to(ADMIN, FEE_SINK)
    market.set_fee_bps(ADMIN, 30)
    return market
