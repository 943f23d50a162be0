"""Test helpers module for shared test utilities.

This module consolidates common test utilities to reduce duplication:
- constants: Asset and account addresses and common amounts
- factories: Market factories and book consistency checks
"""

from tests.helpers.constants import (
    ADMIN,
    ALICE,
    BOB,
    CAROL,
    DAI,
    DEFAULT_BALANCE,
    FEE_SINK,
    KEEPER,
    MKR,
    ONE,
    START_TIME,
    TRADERS,
    WETH,
)
from tests.helpers.factories import balance, check_book, fund, make_chain, make_market

__all__ = [
    # Constants
    "WETH",
    "DAI",
    "MKR",
    "ALICE",
    "BOB",
    "CAROL",
    "KEEPER",
    "ADMIN",
    "FEE_SINK",
    "ONE",
    "DEFAULT_BALANCE",
    "START_TIME",
    "TRADERS",
    # Factories
    "make_chain",
    "make_market",
    "fund",
    "balance",
    "check_book",
]
