"""Matching market: sorted offer book, matching engine and price oracle."""

from market.config import DEFAULT_MARKET_CONFIG, MarketConfig
from market.host import Chain
from market.matching_market import MatchingMarket, create_default_market
from market.simple_market import SimpleMarket

__version__ = "0.1.0"
__all__ = [
    "Chain",
    "DEFAULT_MARKET_CONFIG",
    "MarketConfig",
    "MatchingMarket",
    "SimpleMarket",
    "create_default_market",
    "__version__",
]
