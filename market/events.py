"""Append-only audit events emitted by market calls.

Events are produced for indexers; nothing in the market reads them back.
The log is part of the market's journaled state, so a reverted call drops
the events it emitted.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import asdict, dataclass, field
from typing import TypeVar

import structlog

logger = structlog.get_logger()

E = TypeVar("E", bound="Event")


@dataclass(frozen=True)
class Event:
    """Base class for audit events."""

    @property
    def name(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict[str, object]:
        return {"kind": self.name, **asdict(self)}


# --- Offer lifecycle ---


@dataclass(frozen=True)
class LogMake(Event):
    id: int
    maker: str
    pay_gem: str
    buy_gem: str
    pay_amt: int
    buy_amt: int
    timestamp: int


@dataclass(frozen=True)
class LogBump(Event):
    id: int
    maker: str
    pay_gem: str
    buy_gem: str
    pay_amt: int
    buy_amt: int
    timestamp: int


@dataclass(frozen=True)
class LogTake(Event):
    id: int
    maker: str
    taker: str
    pay_gem: str
    buy_gem: str
    take_amt: int
    give_amt: int
    timestamp: int


@dataclass(frozen=True)
class LogKill(Event):
    id: int
    maker: str
    pay_gem: str
    buy_gem: str
    pay_amt: int
    buy_amt: int
    timestamp: int


@dataclass(frozen=True)
class LogItemUpdate(Event):
    id: int


@dataclass(frozen=True)
class LogTrade(Event):
    pay_amt: int
    pay_gem: str
    buy_amt: int
    buy_gem: str


@dataclass(frozen=True)
class LogFee(Event):
    id: int
    payer: str
    recipient: str
    gem: str
    amount: int


# --- Index maintenance ---


@dataclass(frozen=True)
class LogSortedOffer(Event):
    id: int


@dataclass(frozen=True)
class LogUnsortedOffer(Event):
    id: int


@dataclass(frozen=True)
class LogInsert(Event):
    keeper: str
    id: int


@dataclass(frozen=True)
class LogDelete(Event):
    keeper: str
    id: int


# --- Administration ---


@dataclass(frozen=True)
class LogMinSell(Event):
    pay_gem: str
    min_amount: int


@dataclass(frozen=True)
class LogMatchingEnabled(Event):
    is_enabled: bool


@dataclass(frozen=True)
class LogBuyEnabled(Event):
    is_enabled: bool


@dataclass(frozen=True)
class LogFeeBps(Event):
    fee_bps: int


@dataclass(frozen=True)
class LogFeeTo(Event):
    recipient: str | None


@dataclass
class EventLog:
    """Ordered list of emitted events."""

    events: list[Event] = field(default_factory=list)

    def emit(self, event: Event) -> None:
        self.events.append(event)
        logger.debug("market_event", **event.to_dict())

    def of_type(self, kind: type[E]) -> list[E]:
        return [e for e in self.events if isinstance(e, kind)]

    def __iter__(self) -> Iterator[Event]:
        return iter(self.events)

    def __len__(self) -> int:
        return len(self.events)
