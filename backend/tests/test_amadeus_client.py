from datetime import date, datetime, timedelta, timezone

import httpx
import pytest

from farewatch.domain import FareSearchRequest
from farewatch.exceptions import ProviderError, RateLimitError
from farewatch.services.amadeus_client import AmadeusClient, TokenCache
from farewatch.services.cache_service import SearchResultCache

BASE_URL = "https://test.api.amadeus.com"

REQUEST = FareSearchRequest(
    origin="JFK",
    destination="LAX",
    depart=date(2026, 4, 1),
    return_date=date(2026, 4, 8),
    cabin="ECONOMY",
    adults=1,
    currency="USD",
)


def _offer(total: str, carrier: str = "AA", out_segments: int = 1, back_segments: int = 1) -> dict:
    def segments(n):
        return [{"carrierCode": carrier, "number": str(100 + i)} for i in range(n)]

    return {
        "id": f"{carrier}-{total}",
        "price": {"currency": "USD", "total": total, "grandTotal": total},
        "itineraries": [
            {"segments": segments(out_segments)},
            {"segments": segments(back_segments)},
        ],
    }


class DictCache:
    def __init__(self):
        self.data = {}

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value, ttl=None):
        self.data[key] = value
        return True


class FakeAmadeus:
    """Routes token and flight-offer requests; counts calls per endpoint."""

    def __init__(self, offers=None, search_status: int = 200, token_status: int = 200):
        self.offers = offers if offers is not None else [_offer("320.50")]
        self.search_status = search_status
        self.token_status = token_status
        self.token_calls = 0
        self.search_calls = 0
        self.last_params = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v1/security/oauth2/token":
            self.token_calls += 1
            if self.token_status != 200:
                return httpx.Response(self.token_status)
            return httpx.Response(200, json={"access_token": f"tok{self.token_calls}", "expires_in": 1799})
        self.search_calls += 1
        self.last_params = dict(request.url.params)
        if self.search_status != 200:
            return httpx.Response(self.search_status, json={"errors": []})
        return httpx.Response(200, json={"data": self.offers})


def _client(fake: FakeAmadeus, cache=None) -> AmadeusClient:
    http = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(fake))
    return AmadeusClient(
        client_id="id",
        client_secret="secret",
        cache=cache or SearchResultCache(""),
        base_url=BASE_URL,
        http_client=http,
    )


async def test_search_parses_offers():
    fake = FakeAmadeus(offers=[_offer("320.50", "DL", out_segments=2, back_segments=1)])
    client = _client(fake)

    offers = await client.search(REQUEST)

    assert len(offers) == 1
    offer = offers[0]
    assert offer.total_price == 320.50
    assert offer.carrier_code == "DL"
    assert offer.stops_outbound == 1
    assert offer.stops_return == 0
    assert offer.booking_payload["id"] == "DL-320.50"
    assert fake.last_params["originLocationCode"] == "JFK"
    assert fake.last_params["returnDate"] == "2026-04-08"
    assert fake.last_params["travelClass"] == "ECONOMY"
    assert fake.last_params["max"] == "20"


async def test_token_is_reused_until_expiry():
    fake = FakeAmadeus()
    client = _client(fake)

    await client.search(REQUEST)
    await client.search(REQUEST)

    assert fake.token_calls == 1
    assert fake.search_calls == 2


async def test_results_are_served_from_cache():
    fake = FakeAmadeus()
    client = _client(fake, cache=DictCache())

    first = await client.search(REQUEST)
    second = await client.search(REQUEST)

    assert fake.search_calls == 1
    assert second == first


async def test_429_is_rate_limit():
    client = _client(FakeAmadeus(search_status=429))

    with pytest.raises(RateLimitError):
        await client.search(REQUEST)


async def test_5xx_is_provider_error():
    client = _client(FakeAmadeus(search_status=503))

    with pytest.raises(ProviderError):
        await client.search(REQUEST)


async def test_token_rate_limit_is_rate_limit():
    client = _client(FakeAmadeus(token_status=429))

    with pytest.raises(RateLimitError):
        await client.search(REQUEST)


async def test_connection_failure_is_provider_error(monkeypatch):
    async def no_sleep(_):
        return None

    monkeypatch.setattr("farewatch.services.amadeus_client.asyncio.sleep", no_sleep)

    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    http = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(refuse))
    client = AmadeusClient("id", "secret", SearchResultCache(""), base_url=BASE_URL, http_client=http)

    with pytest.raises(ProviderError):
        await client.search(REQUEST)


async def test_unparseable_offers_are_skipped():
    broken = {"id": "x", "price": {}, "itineraries": [{"segments": [{"carrierCode": "AA"}]}]}
    client = _client(FakeAmadeus(offers=[broken, _offer("199.99")]))

    offers = await client.search(REQUEST)

    assert [o.total_price for o in offers] == [199.99]


async def test_mock_mode_without_credentials():
    client = AmadeusClient("", "", SearchResultCache(""))

    first = await client.search(REQUEST)
    second = await client.search(REQUEST)

    assert 3 <= len(first) <= 8
    assert [o.total_price for o in first] == [o.total_price for o in second]
    assert first == sorted(first, key=lambda o: o.total_price)


def test_token_cache_refreshes_early():
    now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    cache = TokenCache()
    cache.store("abc", expires_in=1799, now=now)

    assert cache.valid(now + timedelta(seconds=1738))
    assert not cache.valid(now + timedelta(seconds=1739))

    cache.clear()
    assert not cache.valid(now)
