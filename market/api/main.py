"""FastAPI application for the matching market.

Note: Authentication is not implemented here. The X-Caller header is trusted
as the caller's address and must be established by the layer in front of
this service.
"""

import logging
import os

import structlog
import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from market import __version__
from market.api.endpoints import get_market, router
from market.errors import CancelNotPermitted, InactiveOffer, MarketError, NotAuthorized
from market.matching_market import MatchingMarket
from market.models.api import ErrorResponse
from market.safe_int import SafeIntError

# Configuration from environment variables with sensible defaults
HOST = os.environ.get("MARKET_HOST", "0.0.0.0")
PORT = int(os.environ.get("MARKET_PORT", "8000"))
DEBUG = os.environ.get("MARKET_DEBUG", "false").lower() in ("true", "1", "yes")

# Maximum request body size (64 KB)
MAX_REQUEST_SIZE = 64 * 1024

logger = structlog.get_logger()

app = FastAPI(
    title="Matching Market",
    description="Sorted order book with on-demand matching and a TWAP/VWAP oracle",
    version=__version__,
)


@app.middleware("http")
async def limit_request_size(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Reject requests with body larger than MAX_REQUEST_SIZE."""
    content_length = request.headers.get("content-length")
    if content_length and int(content_length) > MAX_REQUEST_SIZE:
        return JSONResponse(status_code=413, content={"detail": "Request too large"})
    return await call_next(request)


def _status_for(error: MarketError) -> int:
    if isinstance(error, (NotAuthorized, CancelNotPermitted)):
        return 403
    if isinstance(error, InactiveOffer):
        return 404
    return 400


@app.exception_handler(MarketError)
async def market_error_handler(request: Request, exc: MarketError) -> JSONResponse:
    """Rejected market calls; state was rolled back before this runs."""
    status = _status_for(exc)
    logger.info(
        "call_rejected",
        path=request.url.path,
        error=type(exc).__name__,
        detail=str(exc),
        status=status,
    )
    body = ErrorResponse(detail=str(exc), error=type(exc).__name__)
    return JSONResponse(status_code=status, content=body.model_dump())


@app.exception_handler(SafeIntError)
async def arithmetic_error_handler(request: Request, exc: SafeIntError) -> JSONResponse:
    logger.info("call_rejected", path=request.url.path, error=type(exc).__name__, detail=str(exc))
    body = ErrorResponse(detail=str(exc), error=type(exc).__name__)
    return JSONResponse(status_code=400, content=body.model_dump())


app.include_router(
    router,
    responses={code: {"model": ErrorResponse} for code in (400, 403, 404)},
)


@app.get("/health")
async def health(market: MatchingMarket = Depends(get_market)) -> dict[str, object]:
    """Health check endpoint."""
    return {
        "status": "ok",
        "last_offer_id": market.last_offer_id,
        "block_number": market.chain.block_number,
        "matching_enabled": market.matching_enabled,
    }


def configure_logging(debug: bool = DEBUG) -> None:
    """Configure structlog processors for the server process."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.DEBUG if debug else logging.INFO
        ),
    )


def run() -> None:
    """Run the market API server.

    Configuration via environment variables:
    - MARKET_HOST: Host to bind to (default: 0.0.0.0)
    - MARKET_PORT: Port to bind to (default: 8000)
    - MARKET_DEBUG: Enable debug logging and reload mode (default: false)
    - MARKET_ADMIN: Comma-separated admin addresses
    - MARKET_ASSETS: Comma-separated asset addresses to register
    """
    configure_logging()
    uvicorn.run(
        "market.api.main:app",
        host=HOST,
        port=PORT,
        reload=DEBUG,
    )


if __name__ == "__main__":
    run()
