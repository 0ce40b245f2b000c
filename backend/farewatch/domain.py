"""Core value types shared by the trigger engine, stores and providers."""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Literal

TripType = Literal["oneway", "roundtrip"]
Cabin = Literal["ECONOMY", "PREMIUM_ECONOMY", "BUSINESS", "FIRST"]

CABINS: tuple[str, ...] = ("ECONOMY", "PREMIUM_ECONOMY", "BUSINESS", "FIRST")
TRIP_TYPES: tuple[str, ...] = ("oneway", "roundtrip")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Action(str, Enum):
    NOTIFY = "NOTIFY"
    NOOP = "NOOP"


class Reason(str, Enum):
    ABOVE_TARGET_PRICE = "above_target_price"
    FIRST_TIME_BELOW_TARGET = "first_time_below_target"
    SIGNIFICANT_PRICE_DROP = "significant_price_drop"
    BELOW_TARGET_NOT_SIGNIFICANT = "below_target_but_not_significant_drop"
    RATE_LIMITED = "rate_limited"
    PROVIDER_ERROR = "provider_error"
    NO_RESULTS = "no_results"


@dataclass
class Watch:
    """A persisted subscription to fare changes on a route/date window."""

    id: str
    origin: str
    destination: str
    start: date
    end: date
    target_usd: float
    user_id: str = "anon"
    trip_type: TripType = "roundtrip"
    flex_days: int = 0
    cabin: Cabin = "ECONOMY"
    max_stops: int = 1
    adults: int = 1
    currency: str = "USD"
    active: bool = True
    last_best_usd: float | None = None
    last_notified_usd: float | None = None
    email: str | None = None
    provider: str = "amadeus"
    last_provider: str | None = None
    last_source_link: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    version: int = 1

    @property
    def route(self) -> str:
        return f"{self.origin} -> {self.destination}"


@dataclass(frozen=True)
class DateCombination:
    depart: date
    return_date: date | None = None

    @property
    def is_roundtrip(self) -> bool:
        return self.return_date is not None

    def to_dict(self) -> dict:
        return {
            "depart": self.depart.isoformat(),
            "return": self.return_date.isoformat() if self.return_date else None,
        }


@dataclass
class NormalizedOffer:
    """One fare returned by a search provider, reduced to what the engine needs."""

    total_price: float
    currency: str
    carrier_code: str
    stops_outbound: int
    stops_return: int | None = None
    booking_payload: Any = None  # opaque, passed through to the link builder


@dataclass(frozen=True)
class FareSearchRequest:
    origin: str
    destination: str
    depart: date
    return_date: date | None
    cabin: str
    adults: int
    currency: str

    def cache_key(self) -> str:
        ret = self.return_date.isoformat() if self.return_date else "-"
        return (
            f"fares:{self.origin}:{self.destination}:{self.depart.isoformat()}:{ret}"
            f":{self.cabin}:{self.adults}:{self.currency}"
        )


@dataclass(frozen=True)
class Decision:
    action: Action
    reason: Reason


@dataclass
class TriggerOutcome:
    """Result of one trigger run for a single watch."""

    action: Action
    reason: Reason
    watch: Watch
    searched_combinations: int = 0
    best_offer: NormalizedOffer | None = None
    dates_used: DateCombination | None = None
    booking_link: str | None = None
    notification_sent: bool = False
    email_reason: str | None = None  # why no email went out, when none did
