"""API endpoints for the matching market.

Handlers are coroutines so that calls reach the in-process market one at a
time on the event loop. Every state-changing request opens a new block at
the current wall-clock time before it runs.
"""

import time
from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Path, Query

from market.constants import AWAP_WEIGHT_BASE
from market.errors import InactiveOffer
from market.matching_market import MatchingMarket, create_default_market
from market.models.api import (
    BookView,
    BuyRequest,
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

logger = structlog.get_logger()

router = APIRouter()

ADDRESS_PATTERN = r"^0x[a-fA-F0-9]{40}$"

Caller = Annotated[str, Header(alias="X-Caller", pattern=ADDRESS_PATTERN)]
AssetPath = Annotated[str, Path(pattern=ADDRESS_PATTERN)]

_default_market: MatchingMarket | None = None


def get_market() -> MatchingMarket:
    """Dependency provider for the market instance.

    Override this in tests to inject a prepared market:
        app.dependency_overrides[get_market] = lambda: market

    Returns:
        The market to serve requests from.
    """
    global _default_market
    if _default_market is None:
        _default_market = create_default_market()
    return _default_market


MarketDep = Annotated[MatchingMarket, Depends(get_market)]


def _open_block(market: MatchingMarket) -> None:
    market.chain.mine(int(time.time()))


def _offer_view(market: MatchingMarket, offer_id: int) -> OfferView:
    offer = market.offer_details(offer_id)
    return OfferView(
        id=offer_id,
        owner=offer.owner,
        pay_amt=str(offer.pay_amt),
        pay_gem=offer.pay_gem,
        buy_amt=str(offer.buy_amt),
        buy_gem=offer.buy_gem,
        timestamp=offer.timestamp,
        sorted=market.is_offer_sorted(offer_id),
    )


# --- Offers ---


@router.post("/offers", response_model=OfferCreated)
async def create_offer(request: OfferRequest, caller: Caller, market: MarketDep) -> OfferCreated:
    """Post an offer, matching it first when a position hint is given."""
    _open_block(market)
    offer_id = market.offer(
        caller,
        int(request.pay_amt),
        request.pay_gem,
        int(request.buy_amt),
        request.buy_gem,
        pos=request.pos,
        rounding=request.rounding,
    )
    logger.info("offer_posted", id=offer_id, caller=caller, pos=request.pos)
    return OfferCreated(id=offer_id, sorted=bool(offer_id) and market.is_offer_sorted(offer_id))


@router.get("/offers/{offer_id}", response_model=OfferView)
async def read_offer(offer_id: int, market: MarketDep) -> OfferView:
    """Return an active offer.

    Raises:
        HTTPException: 404 if the offer is not active
    """
    try:
        return _offer_view(market, offer_id)
    except InactiveOffer as err:
        raise HTTPException(status_code=404, detail=str(err)) from err


@router.post("/offers/{offer_id}/buy", response_model=OperationResult)
async def buy_offer(
    offer_id: int, request: BuyRequest, caller: Caller, market: MarketDep
) -> OperationResult:
    """Buy part or all of an offer."""
    _open_block(market)
    ok = market.buy(caller, offer_id, int(request.quantity))
    logger.info("offer_bought", id=offer_id, caller=caller, quantity=request.quantity, ok=ok)
    return OperationResult(ok=ok)


@router.delete("/offers/{offer_id}", response_model=OperationResult)
async def cancel_offer(offer_id: int, caller: Caller, market: MarketDep) -> OperationResult:
    """Cancel an offer and refund its escrow."""
    _open_block(market)
    ok = market.cancel(caller, offer_id)
    logger.info("offer_cancelled", id=offer_id, caller=caller)
    return OperationResult(ok=ok)


# --- Keepers ---


@router.post("/offers/{offer_id}/insert", response_model=OperationResult)
async def insert_offer(
    offer_id: int, request: InsertRequest, caller: Caller, market: MarketDep
) -> OperationResult:
    """Rank a staged offer."""
    _open_block(market)
    ok = market.insert(caller, offer_id, request.pos)
    return OperationResult(ok=ok)


@router.delete("/ranks/{offer_id}", response_model=OperationResult)
async def delete_rank(offer_id: int, caller: Caller, market: MarketDep) -> OperationResult:
    """Purge the stale rank node of a closed offer."""
    _open_block(market)
    ok = market.del_rank(caller, offer_id)
    return OperationResult(ok=ok)


# --- Book reads ---


@router.get("/books/{pay_gem}/{buy_gem}", response_model=BookView)
async def read_book(pay_gem: AssetPath, buy_gem: AssetPath, market: MarketDep) -> BookView:
    """Sorted offers selling ``pay_gem`` for ``buy_gem``, best first."""
    ids = market.get_sorted_offers(pay_gem, buy_gem)
    return BookView(
        pay_gem=pay_gem.lower(),
        buy_gem=buy_gem.lower(),
        best=market.get_best_offer(pay_gem, buy_gem),
        count=market.get_offer_count(pay_gem, buy_gem),
        offers=[_offer_view(market, offer_id) for offer_id in ids],
    )


@router.get("/unsorted", response_model=UnsortedView)
async def read_unsorted(market: MarketDep) -> UnsortedView:
    return UnsortedView(ids=market.get_unsorted_offers())


@router.get("/oracle/{pay_gem}/{buy_gem}", response_model=OracleView)
async def read_oracle(
    pay_gem: AssetPath,
    buy_gem: AssetPath,
    market: MarketDep,
    duration: Annotated[int, Query(ge=0)] = 3600,
    weight: Annotated[int, Query(ge=0, le=AWAP_WEIGHT_BASE)] = 50,
) -> OracleView:
    """Windowed average prices of fills against ``pay_gem``/``buy_gem`` offers."""
    return OracleView(
        twap=str(market.get_twap(pay_gem, buy_gem, duration)),
        vwap=str(market.get_vwap(pay_gem, buy_gem, duration)),
        awap=str(market.get_awap(pay_gem, buy_gem, duration, weight)),
        duration=duration,
        weight=weight,
    )


# --- Administration ---


@router.put("/admin/min-sell", response_model=OperationResult)
async def set_min_sell(
    request: MinSellRequest, caller: Caller, market: MarketDep
) -> OperationResult:
    _open_block(market)
    market.set_min_sell(caller, request.pay_gem, int(request.dust))
    return OperationResult()


@router.put("/admin/fee", response_model=OperationResult)
async def set_fee(request: FeeRequest, caller: Caller, market: MarketDep) -> OperationResult:
    """Update the fee recipient and/or rate; the recipient is applied first."""
    _open_block(market)
    with market.chain.atomic():
        if request.fee_to is not None:
            market.set_fee_to(caller, request.fee_to)
        if request.fee_bps is not None:
            market.set_fee_bps(caller, request.fee_bps)
    return OperationResult()


@router.put("/admin/matching", response_model=OperationResult)
async def set_matching(request: FlagRequest, caller: Caller, market: MarketDep) -> OperationResult:
    _open_block(market)
    market.set_matching_enabled(caller, request.enabled)
    return OperationResult()


@router.put("/admin/buying", response_model=OperationResult)
async def set_buying(request: FlagRequest, caller: Caller, market: MarketDep) -> OperationResult:
    _open_block(market)
    market.set_buy_enabled(caller, request.enabled)
    return OperationResult()
