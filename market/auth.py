"""Authorization collaborators for administrative market calls."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from market.models.types import normalize_address


class Authority(Protocol):
    """Capability check consulted before administrative mutations."""

    def is_authorized(self, caller: str) -> bool:
        ...


class AllowListAuthority:
    """Authorizes a fixed set of admin addresses."""

    def __init__(self, admins: Iterable[str] = ()) -> None:
        self._admins = {normalize_address(a) for a in admins}

    def grant(self, admin: str) -> None:
        self._admins.add(normalize_address(admin))

    def revoke(self, admin: str) -> None:
        self._admins.discard(normalize_address(admin))

    def is_authorized(self, caller: str) -> bool:
        return normalize_address(caller) in self._admins
