"""Pydantic request/response models for the market HTTP API.

Amounts travel as decimal strings; field names are camelCase on the wire and
snake_case in Python.
"""

from pydantic import BaseModel, Field

from market.models.types import Address, Amount


class OfferRequest(BaseModel):
    """Body of ``POST /offers``.

    Without ``pos`` the offer is staged unsorted when matching is enabled.
    With ``pos`` (0 to let the market search) it is matched immediately.
    """

    pay_amt: Amount = Field(alias="payAmt", description="Amount of the sell asset")
    pay_gem: Address = Field(alias="payGem", description="Sell asset address")
    buy_amt: Amount = Field(alias="buyAmt", description="Amount of the buy asset asked for")
    buy_gem: Address = Field(alias="buyGem", description="Buy asset address")
    pos: int | None = Field(default=None, ge=0, description="Position hint")
    rounding: bool = Field(default=True, description="Accept near-crossing matches")

    model_config = {"populate_by_name": True}


class OfferCreated(BaseModel):
    """Result of posting an offer; ``id`` is 0 when nothing rests on the book."""

    id: int
    sorted: bool = False


class OfferView(BaseModel):
    """An active offer as returned by ``GET /offers/{id}``."""

    id: int
    owner: Address
    pay_amt: Amount = Field(alias="payAmt")
    pay_gem: Address = Field(alias="payGem")
    buy_amt: Amount = Field(alias="buyAmt")
    buy_gem: Address = Field(alias="buyGem")
    timestamp: int
    sorted: bool

    model_config = {"populate_by_name": True}


class BuyRequest(BaseModel):
    """Body of ``POST /offers/{id}/buy``."""

    quantity: Amount = Field(description="Amount of the offer's sell asset to buy")


class InsertRequest(BaseModel):
    """Body of ``POST /offers/{id}/insert``."""

    pos: int = Field(default=0, ge=0, description="Position hint, 0 to search from best")


class OperationResult(BaseModel):
    """Outcome of a state-changing call."""

    ok: bool = True


class BookView(BaseModel):
    """Sorted side of one ordered pair, best first."""

    pay_gem: Address = Field(alias="payGem")
    buy_gem: Address = Field(alias="buyGem")
    best: int
    count: int
    offers: list[OfferView] = Field(default_factory=list)

    model_config = {"populate_by_name": True}


class UnsortedView(BaseModel):
    """Staged offer ids from the head of the list."""

    ids: list[int] = Field(default_factory=list)


class OracleView(BaseModel):
    """Windowed prices of a pair, scaled by 1e18."""

    twap: Amount
    vwap: Amount
    awap: Amount
    duration: int
    weight: int


class MinSellRequest(BaseModel):
    """Body of ``PUT /admin/min-sell``."""

    pay_gem: Address = Field(alias="payGem")
    dust: Amount

    model_config = {"populate_by_name": True}


class FeeRequest(BaseModel):
    """Body of ``PUT /admin/fee``. Omitted fields are left unchanged."""

    fee_bps: int | None = Field(default=None, alias="feeBps", ge=0)
    fee_to: Address | None = Field(default=None, alias="feeTo")

    model_config = {"populate_by_name": True}


class FlagRequest(BaseModel):
    """Body of ``PUT /admin/matching`` and ``PUT /admin/buying``."""

    enabled: bool


class ErrorResponse(BaseModel):
    """Body returned for rejected calls."""

    detail: str
    error: str
