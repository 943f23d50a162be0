"""Records and wire models for the matching market."""

from market.models.api import (
    BookView,
    BuyRequest,
    ErrorResponse,
    FeeRequest,
    FlagRequest,
    InsertRequest,
    MinSellRequest,
    OfferCreated,
    OfferRequest,
    OfferView,
    OperationResult,
    OracleView,
    UnsortedView,
)
from market.models.offer import Offer, Pair, RankNode
from market.models.types import Address, Amount, is_valid_address, normalize_address

__all__ = [
    # Types
    "Address",
    "Amount",
    "is_valid_address",
    "normalize_address",
    # Book records
    "Offer",
    "Pair",
    "RankNode",
    # API models
    "BookView",
    "BuyRequest",
    "ErrorResponse",
    "FeeRequest",
    "FlagRequest",
    "InsertRequest",
    "MinSellRequest",
    "OfferCreated",
    "OfferRequest",
    "OfferView",
    "OperationResult",
    "OracleView",
    "UnsortedView",
]
