"""Shared asset and account constants for tests.

All addresses are lowercase for consistency with normalize_address().

Usage:
    from tests.helpers import WETH, DAI, ALICE
    # or
    from tests.helpers.constants import WETH, DAI
"""

# =============================================================================
# Assets
# =============================================================================

WETH = "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2"  # Wrapped Ether
DAI = "0x6b175474e89094c44da98b954eedeac495271d0f"  # Dai Stablecoin
MKR = "0x9f8f72aa9304c8b593d555f12ef6589cc3a579a2"  # Maker

ASSET_SYMBOLS = {
    WETH: "WETH",
    DAI: "DAI",
    MKR: "MKR",
}

# =============================================================================
# Accounts
# =============================================================================

ALICE = "0x00000000000000000000000000000000000a11ce"
BOB = "0x0000000000000000000000000000000000000b0b"
CAROL = "0x00000000000000000000000000000000000ca201"
KEEPER = "0x000000000000000000000000000000000000beef"
ADMIN = "0x000000000000000000000000000000000000ad01"
FEE_SINK = "0x000000000000000000000000000000000000fee5"

TRADERS = (ALICE, BOB, CAROL)

# =============================================================================
# Amounts
# =============================================================================

ONE = 10**18
DEFAULT_BALANCE = 1_000_000 * ONE
START_TIME = 1_700_000_000
