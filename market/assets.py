"""Asset transfer collaborators.

The market only needs two capabilities from an asset: moving its own
holdings (``transfer``) and pulling funds a holder approved
(``transfer_from``). Either may return False or raise; the market treats
both as a hard failure of the whole call.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

import structlog

from market.errors import AssetError
from market.models.types import normalize_address

logger = structlog.get_logger()


@runtime_checkable
class Asset(Protocol):
    """Interface the market consumes from a fungible asset."""

    address: str

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        """Move ``amount`` from ``sender``'s own balance to ``recipient``."""
        ...

    def transfer_from(self, spender: str, owner: str, recipient: str, amount: int) -> bool:
        """Move ``amount`` from ``owner`` to ``recipient`` using ``spender``'s allowance."""
        ...


class InMemoryAsset:
    """Balance/allowance ledger for one asset held in process memory.

    Supports snapshot/restore so a Chain can roll it back with the market.
    Allowances of ``UNLIMITED`` are never decremented.

    Attributes:
        address: Asset address
        symbol: Display symbol
    """

    UNLIMITED = 2**256 - 1

    def __init__(self, address: str, symbol: str = "") -> None:
        self.address = normalize_address(address, validate=True)
        self.symbol = symbol
        self._balances: dict[str, int] = {}
        self._allowances: dict[tuple[str, str], int] = {}

    def __repr__(self) -> str:
        return f"InMemoryAsset({self.symbol or self.address})"

    # --- Ledger ---

    def balance_of(self, holder: str) -> int:
        return self._balances.get(normalize_address(holder), 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((normalize_address(owner), normalize_address(spender)), 0)

    @property
    def total_supply(self) -> int:
        return sum(self._balances.values())

    def mint(self, holder: str, amount: int) -> None:
        if amount < 0:
            raise AssetError(f"Cannot mint negative amount {amount}")
        holder = normalize_address(holder)
        self._balances[holder] = self._balances.get(holder, 0) + amount

    def approve(self, owner: str, spender: str, amount: int = UNLIMITED) -> bool:
        if amount < 0:
            raise AssetError(f"Cannot approve negative amount {amount}")
        self._allowances[(normalize_address(owner), normalize_address(spender))] = amount
        return True

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        self._move(normalize_address(sender), normalize_address(recipient), amount)
        return True

    def transfer_from(self, spender: str, owner: str, recipient: str, amount: int) -> bool:
        owner = normalize_address(owner)
        spender = normalize_address(spender)
        if owner != spender:
            allowed = self._allowances.get((owner, spender), 0)
            if allowed < amount:
                raise AssetError(
                    f"{self.symbol or self.address}: allowance {allowed} of {spender} "
                    f"below {amount}"
                )
            if allowed != self.UNLIMITED:
                self._allowances[(owner, spender)] = allowed - amount
        self._move(owner, normalize_address(recipient), amount)
        return True

    def _move(self, sender: str, recipient: str, amount: int) -> None:
        if amount < 0:
            raise AssetError(f"Cannot transfer negative amount {amount}")
        balance = self._balances.get(sender, 0)
        if balance < amount:
            raise AssetError(
                f"{self.symbol or self.address}: balance {balance} of {sender} below {amount}"
            )
        self._balances[sender] = balance - amount
        self._balances[recipient] = self._balances.get(recipient, 0) + amount
        logger.debug(
            "asset_transfer",
            asset=self.symbol or self.address,
            sender=sender,
            recipient=recipient,
            amount=amount,
        )

    # --- Journaling ---

    def snapshot(self) -> tuple[dict[str, int], dict[tuple[str, str], int]]:
        return dict(self._balances), dict(self._allowances)

    def restore(self, state: tuple[dict[str, int], dict[tuple[str, str], int]]) -> None:
        self._balances, self._allowances = dict(state[0]), dict(state[1])
