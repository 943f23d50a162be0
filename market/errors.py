"""Error types raised by the market.

Every error aborts the whole call; the host rolls back the call's effects.
Arithmetic failures surface as market.safe_int.SafeIntError instead.
"""


class MarketError(Exception):
    """Base class for market precondition failures."""

    pass


class InactiveOffer(MarketError):
    """Offer id does not refer to an active offer."""

    pass


class NotAuthorized(MarketError):
    """Caller failed the authority check for an administrative call."""

    pass


class CancelNotPermitted(MarketError):
    """Caller may not cancel this offer."""

    pass


class ReentrancyError(MarketError):
    """A market entrypoint was re-entered from within a call."""

    pass


class InvalidAmount(MarketError):
    """Zero, oversized, or inconsistent amounts."""

    pass


class BelowDustLimit(MarketError):
    """Sell amount is below the configured minimum for its asset."""

    pass


class BuyingDisabled(MarketError):
    """Direct buys are switched off."""

    pass


class MarketClosed(MarketError):
    """The market no longer accepts offers or buys."""

    pass


class AlreadyRanked(MarketError):
    """Offer is already present in the sorted index."""

    pass


class NotRanked(MarketError):
    """Offer is not present in the sorted index."""

    pass


class IndexCorrupted(MarketError):
    """Neighbour pointers disagree with the node being unlinked."""

    pass


class TombstoneNotPurgeable(MarketError):
    """Rank node is missing, live, or still inside its grace window."""

    pass


class TransferFailed(MarketError):
    """An asset transfer returned False."""

    pass


class InsufficientDepth(MarketError):
    """The book ran out of offers before the order was filled."""

    pass


class FillLimitExceeded(MarketError):
    """A market order filled outside the caller's limit."""

    pass


class InvalidFee(MarketError):
    """Fee rate or fee recipient is not acceptable."""

    pass


class OracleError(MarketError):
    """The oracle has no observation to answer a read."""

    pass


class AssetError(MarketError):
    """Asset ledger rejected a transfer (balance or allowance)."""

    pass


class UnknownAsset(MarketError):
    """No asset is registered at the given address."""

    pass
