"""
Booking deep links per carrier.

Each builder returns a pre-filled search URL on the airline's own site.
Carriers without a builder fall back to a Google Flights search for the
same route and dates.

Usage:
    url = booking_link_builder.build(offer, "JFK", "LAX", DateCombination(date(2026, 3, 1)))
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from urllib.parse import urlencode

from farewatch.domain import DateCombination, NormalizedOffer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingQuery:
    origin: str
    destination: str
    depart: str  # YYYY-MM-DD
    return_date: str  # "" for one-way
    adults: int = 1


def _url(base: str, params: dict) -> str:
    return f"{base}?{urlencode(params)}"


# =====================================================================
# INDIVIDUAL CARRIER BUILDERS
# =====================================================================

def _aa(q: BookingQuery) -> str:
    return _url("https://www.aa.com/booking/search", {
        "from": q.origin, "to": q.destination,
        "departDate": q.depart, "returnDate": q.return_date,
        "passengers": q.adults, "cabin": "economy",
    })


def _ua(q: BookingQuery) -> str:
    return _url("https://www.united.com/en/us/fsr/choose-flights", {
        "f": q.origin, "t": q.destination,
        "d": q.depart, "r": q.return_date,
        "px": q.adults, "cm": "econ",
    })


def _dl(q: BookingQuery) -> str:
    return _url("https://www.delta.com/shop/ow/search", {
        "originAirportCode": q.origin, "destinationAirportCode": q.destination,
        "departureDate": q.depart, "returnDate": q.return_date,
        "passengerCount": q.adults, "serviceClass": "COACH",
    })


def _wn(q: BookingQuery) -> str:
    return _url("https://www.southwest.com/air/booking/select.html", {
        "originAirport": q.origin, "destinationAirport": q.destination,
        "departureDate": q.depart, "returnDate": q.return_date,
        "adultPassengersCount": q.adults,
    })


def _b6(q: BookingQuery) -> str:
    return _url("https://www.jetblue.com/booking/flights", {
        "from": q.origin, "to": q.destination,
        "depart": q.depart, "return": q.return_date,
        "passengers": q.adults,
    })


def _as(q: BookingQuery) -> str:
    return _url("https://www.alaskaair.com/booking/reservation/search", {
        "from": q.origin, "to": q.destination,
        "departureDate": q.depart, "returnDate": q.return_date,
        "numAdults": q.adults,
    })


def _nk(q: BookingQuery) -> str:
    return _url("https://www.spirit.com/BookFlight", {
        "OrigCity": q.origin, "DestCity": q.destination,
        "DeptDate": q.depart, "RetDate": q.return_date,
        "Adults": q.adults,
    })


def _f9(q: BookingQuery) -> str:
    return _url("https://www.flyfrontier.com/flight/select", {
        "departureCity": q.origin, "arrivalCity": q.destination,
        "departureDate": q.depart, "returnDate": q.return_date,
        "adults": q.adults,
    })


def _google_flights(q: BookingQuery, airline: str | None = None) -> str:
    tfs = f"f.{q.origin}.{q.destination}.{q.depart}"
    if q.return_date:
        tfs += f"*f.{q.destination}.{q.origin}.{q.return_date}"
    params = {"f": "0", "gl": "us", "hl": "en", "curr": "USD", "tfs": tfs}
    if airline:
        params["airline"] = airline
    return _url("https://www.google.com/travel/flights", params)


def _tk(q: BookingQuery) -> str:
    return _google_flights(q, airline="TK")


CARRIER_LINK_BUILDERS: dict[str, Callable[[BookingQuery], str]] = {
    "AA": _aa,
    "UA": _ua,
    "DL": _dl,
    "WN": _wn,
    "B6": _b6,
    "AS": _as,
    "NK": _nk,
    "F9": _f9,
    "TK": _tk,
}


class BookingLinkBuilder:
    """Maps a selected offer to a human-followable booking URL. Never raises."""

    def __init__(self, builders: dict[str, Callable[[BookingQuery], str]] | None = None):
        self.builders = builders if builders is not None else CARRIER_LINK_BUILDERS

    def build(
        self,
        offer: NormalizedOffer,
        origin: str,
        destination: str,
        dates: DateCombination,
        adults: int = 1,
    ) -> str:
        query = BookingQuery(
            origin=origin,
            destination=destination,
            depart=dates.depart.isoformat(),
            return_date=dates.return_date.isoformat() if dates.return_date else "",
            adults=max(1, adults),
        )
        builder = self.builders.get((offer.carrier_code or "").upper())
        if builder is not None:
            try:
                return builder(query)
            except Exception as e:
                logger.warning(f"Booking link builder for {offer.carrier_code} failed: {e}")
        return _google_flights(query)


def build_app_deep_link(
    app_base_url: str,
    watch_id: str,
    origin: str,
    destination: str,
    offer: NormalizedOffer,
    dates: DateCombination,
    adults: int = 1,
    cabin: str = "ECONOMY",
) -> str:
    """Link back into the web app's booking page, pre-filled with the found flight."""
    params = {
        "origin": origin,
        "destination": destination,
        "depart": dates.depart.isoformat(),
    }
    if dates.return_date:
        params["return"] = dates.return_date.isoformat()
    params.update({
        "price": f"{offer.total_price:.2f}",
        "currency": offer.currency,
        "carrier": offer.carrier_code,
        "adults": adults,
        "cabin": cabin,
        "watchId": watch_id,
    })
    return _url(f"{app_base_url.rstrip('/')}/book", params)


booking_link_builder = BookingLinkBuilder()
