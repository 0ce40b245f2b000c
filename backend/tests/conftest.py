"""Shared fixtures: watch/offer factories, a scripted fare provider and a recording notifier."""

from datetime import date, timedelta

import pytest

from farewatch.domain import FareSearchRequest, NormalizedOffer, Watch
from farewatch.exceptions import NotificationDeliveryError
from farewatch.services.booking_links import BookingLinkBuilder
from farewatch.services.fare_search_orchestrator import FareSearchOrchestrator
from farewatch.services.notifier import NotificationResult
from farewatch.services.providers import ProviderRegistry
from farewatch.services.watch_store import InMemoryWatchStore
from farewatch.services.watch_trigger_service import WatchTriggerService

TODAY = date(2026, 3, 1)


class ScriptedProvider:
    """
    Fake fare provider. The n-th search returns ``responses[n]``: a list of
    offers, or an exception instance to raise. Searches past the end of the
    script return no offers.
    """

    name = "scripted"

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.calls: list[FareSearchRequest] = []

    async def search(self, request: FareSearchRequest) -> list[NormalizedOffer]:
        index = len(self.calls)
        self.calls.append(request)
        if index >= len(self.responses):
            return []
        response = self.responses[index]
        if isinstance(response, BaseException):
            raise response
        return response


class RecordingNotifier:
    def __init__(self, fail: bool = False, delivered: bool = True):
        self.fail = fail
        self.delivered = delivered
        self.sent: list[dict] = []

    async def send(self, to: str, subject: str, html: str, text: str) -> NotificationResult:
        if self.fail:
            raise NotificationDeliveryError("SendGrid API error: 503")
        self.sent.append({"to": to, "subject": subject, "html": html, "text": text})
        return NotificationResult(
            delivered=self.delivered,
            message_id=f"test_{len(self.sent)}",
            provider_name="test" if self.delivered else "disabled",
        )

    async def close(self):
        pass


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def make_watch(today: date):
    """Factory fixture for Watch instances not tied to any store."""

    def _make(**overrides) -> Watch:
        fields = {
            "id": "watch_test",
            "origin": "JFK",
            "destination": "LAX",
            "start": today + timedelta(days=30),
            "end": today + timedelta(days=30),
            "target_usd": 500.0,
            "trip_type": "oneway",
            "email": "traveler@example.com",
        }
        fields.update(overrides)
        return Watch(**fields)

    return _make


@pytest.fixture
def make_offer():
    def _make(price: float, carrier: str = "AA", stops_out: int = 0, stops_back: int | None = None) -> NormalizedOffer:
        return NormalizedOffer(
            total_price=price,
            currency="USD",
            carrier_code=carrier,
            stops_outbound=stops_out,
            stops_return=stops_back,
            booking_payload={"id": f"{carrier}-{price}"},
        )

    return _make


@pytest.fixture
def store() -> InMemoryWatchStore:
    return InMemoryWatchStore()


@pytest.fixture
def create_watch(store: InMemoryWatchStore, today: date):
    """Factory fixture that persists a watch in the in-memory store."""

    async def _create(**overrides) -> Watch:
        fields = {
            "origin": "JFK",
            "destination": "LAX",
            "start": today + timedelta(days=30),
            "end": today + timedelta(days=30),
            "target_usd": 500.0,
            "trip_type": "oneway",
            "email": "traveler@example.com",
            "provider": "scripted",
        }
        fields.update(overrides)
        return await store.create(fields)

    return _create


@pytest.fixture
def provider() -> ScriptedProvider:
    return ScriptedProvider()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def trigger_service(store, provider, notifier, today) -> WatchTriggerService:
    return WatchTriggerService(
        store=store,
        providers=ProviderRegistry({provider.name: provider}, default=provider.name),
        orchestrator=FareSearchOrchestrator(call_timeout=1.0),
        link_builder=BookingLinkBuilder(),
        notifier=notifier,
        app_base_url="https://app.example.com",
        sweep_pause_seconds=0,
        today=lambda: today,
    )
