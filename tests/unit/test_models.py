"""Tests for address/amount types and API models."""

import pytest
from pydantic import ValidationError

from market.models import (
    FeeRequest,
    OfferRequest,
    OfferView,
    is_valid_address,
    normalize_address,
)
from market.models.types import validate_amount
from market.safe_int import UINT128_MAX
from tests.helpers import ALICE, DAI, WETH


class TestAddresses:
    """Tests for address helpers."""

    def test_normalize_lowercases_and_prefixes(self):
        """Addresses are lowercased and gain a 0x prefix."""
        assert normalize_address("0xC02AAA39B223FE8D0A0E5C4F27EAD9083C756CC2") == WETH
        assert normalize_address(WETH[2:]) == WETH

    def test_normalize_validates_on_request(self):
        """validate=True rejects malformed addresses."""
        with pytest.raises(ValueError):
            normalize_address("0x1234", validate=True)

    @pytest.mark.parametrize(
        "address,valid",
        [(WETH, True), ("0x1234", False), ("c02aaa39b223fe8d0a0e5c4f27ead9083c756cc2", False)],
    )
    def test_is_valid_address(self, address, valid):
        """Only 0x-prefixed 20-byte hex strings are valid."""
        assert is_valid_address(address) is valid


class TestAmounts:
    """Tests for uint128 decimal amounts."""

    def test_accepts_int_and_string(self):
        """Both ints and decimal strings are accepted."""
        assert validate_amount(5) == "5"
        assert validate_amount("42") == "42"
        assert validate_amount(str(UINT128_MAX)) == str(UINT128_MAX)

    @pytest.mark.parametrize("value", [-1, UINT128_MAX + 1, "1.5", "abc", True, 1.0])
    def test_rejects_invalid(self, value):
        """Negative, oversized, fractional and non-numeric values fail."""
        with pytest.raises(ValueError):
            validate_amount(value)


class TestApiModels:
    """Tests for wire models."""

    def test_offer_request_camel_case(self):
        """Requests use camelCase on the wire."""
        request = OfferRequest.model_validate(
            {"payAmt": "10", "payGem": WETH, "buyAmt": 20, "buyGem": DAI, "pos": 0}
        )
        assert request.pay_amt == "10"
        assert request.buy_amt == "20"
        assert request.pos == 0
        assert request.rounding is True

    def test_offer_request_defaults_to_staged(self):
        """Without pos the request stages the offer."""
        request = OfferRequest.model_validate(
            {"payAmt": "10", "payGem": WETH, "buyAmt": "20", "buyGem": DAI}
        )
        assert request.pos is None

    def test_offer_request_rejects_bad_input(self):
        """Invalid addresses and amounts fail validation."""
        with pytest.raises(ValidationError):
            OfferRequest.model_validate(
                {"payAmt": "-1", "payGem": WETH, "buyAmt": "20", "buyGem": DAI}
            )
        with pytest.raises(ValidationError):
            OfferRequest.model_validate(
                {"payAmt": "1", "payGem": "0x12", "buyAmt": "20", "buyGem": DAI}
            )

    def test_offer_view_serializes_by_alias(self):
        """Views dump camelCase keys."""
        view = OfferView(
            id=1,
            owner=ALICE,
            pay_amt="10",
            pay_gem=WETH,
            buy_amt="20",
            buy_gem=DAI,
            timestamp=0,
            sorted=True,
        )
        dumped = view.model_dump(by_alias=True)
        assert dumped["payAmt"] == "10"
        assert dumped["buyGem"] == DAI

    def test_fee_request_partial(self):
        """Fee updates may set either field alone."""
        assert FeeRequest.model_validate({"feeBps": 30}).fee_to is None
        with pytest.raises(ValidationError):
            FeeRequest.model_validate({"feeBps": -1})
