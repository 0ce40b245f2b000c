"""Amadeus API client — fare search provider with OAuth2 token and result caching."""

import asyncio
import hashlib
import logging
import random
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone

import httpx

from farewatch.domain import FareSearchRequest, NormalizedOffer
from farewatch.exceptions import ProviderError, RateLimitError
from farewatch.services.cache_service import SearchResultCache

logger = logging.getLogger(__name__)

TOKEN_SAFETY_MARGIN_SECONDS = 60


@dataclass
class TokenCache:
    """OAuth2 access token plus the moment it stops being usable."""

    token: str | None = None
    expires_at: datetime | None = None

    def valid(self, now: datetime | None = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return bool(self.token) and self.expires_at is not None and now < self.expires_at

    def store(self, token: str, expires_in: int, now: datetime | None = None):
        now = now or datetime.now(timezone.utc)
        self.token = token
        self.expires_at = now + timedelta(seconds=max(0, expires_in - TOKEN_SAFETY_MARGIN_SECONDS))

    def clear(self):
        self.token = None
        self.expires_at = None


class AmadeusClient:
    """Adapter for the Amadeus Self-Service flight offers API."""

    name = "amadeus"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        cache: SearchResultCache,
        base_url: str = "https://test.api.amadeus.com",
        max_results: int = 20,
        timeout: float = 20.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._client_id = client_id
        self._client_secret = client_secret
        self._base_url = base_url
        self._max_results = max_results
        self._timeout = timeout
        self._client = http_client
        self.cache = cache
        self.token_cache = TokenCache()
        self._use_mock = not client_id

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
            )
        return self._client

    async def _ensure_token(self) -> str:
        """Get or refresh the OAuth2 token."""
        if self.token_cache.valid():
            return self.token_cache.token

        client = await self._get_client()
        for attempt in range(3):
            try:
                resp = await client.post(
                    "/v1/security/oauth2/token",
                    data={
                        "grant_type": "client_credentials",
                        "client_id": self._client_id,
                        "client_secret": self._client_secret,
                    },
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                )
            except httpx.RequestError as e:
                if attempt < 2:
                    await asyncio.sleep(2 ** attempt)
                    continue
                self.token_cache.clear()
                raise ProviderError(f"Unable to reach Amadeus for a token: {e}") from e

            if resp.status_code == 429:
                self.token_cache.clear()
                raise RateLimitError("Amadeus token request rate limited")
            if resp.status_code >= 500:
                self.token_cache.clear()
                raise ProviderError(f"Amadeus token endpoint error: {resp.status_code}")
            resp.raise_for_status()

            data = resp.json()
            if "access_token" not in data:
                raise ProviderError("Amadeus token response missing access_token")
            self.token_cache.store(data["access_token"], int(data.get("expires_in", 1799)))
            logger.info("Amadeus token refreshed")
            return self.token_cache.token

        raise ProviderError("Amadeus token refresh exhausted retries")

    async def search(self, request: FareSearchRequest) -> list[NormalizedOffer]:
        """Search offers for one date combination."""
        if self._use_mock:
            return self._generate_mock_offers(request)

        cache_key = request.cache_key()
        cached = await self.cache.get(cache_key)
        if cached is not None:
            logger.debug(f"Search cache hit: {cache_key}")
            return [NormalizedOffer(**o) for o in cached]

        params = {
            "originLocationCode": request.origin,
            "destinationLocationCode": request.destination,
            "departureDate": request.depart.isoformat(),
            "adults": request.adults,
            "travelClass": request.cabin,
            "currencyCode": request.currency,
            "max": self._max_results,
        }
        if request.return_date:
            params["returnDate"] = request.return_date.isoformat()

        resp = await self._get_offers(params)
        if resp.status_code == 401:
            # Token revoked early; refresh once
            self.token_cache.clear()
            resp = await self._get_offers(params)

        if resp.status_code == 429:
            raise RateLimitError(f"Amadeus search rate limited for {cache_key}")
        if resp.status_code >= 500:
            raise ProviderError(f"Amadeus search error: {resp.status_code}")
        resp.raise_for_status()

        data = resp.json().get("data")
        if not isinstance(data, list):
            logger.warning(f"Unexpected Amadeus response shape for {cache_key}")
            return []

        offers = []
        for raw in data:
            offer = self._parse_offer(raw, request.currency)
            if offer is not None:
                offers.append(offer)

        await self.cache.set(cache_key, [asdict(o) for o in offers])
        logger.info(f"Amadeus search {cache_key}: {len(offers)} offers")
        return offers

    async def _get_offers(self, params: dict) -> httpx.Response:
        token = await self._ensure_token()
        client = await self._get_client()
        try:
            return await client.get(
                "/v2/shopping/flight-offers",
                params=params,
                headers={"Authorization": f"Bearer {token}", "Accept": "application/json"},
            )
        except httpx.TimeoutException as e:
            raise ProviderError("Amadeus search timed out") from e
        except httpx.RequestError as e:
            raise ProviderError(f"Amadeus request error: {e}") from e

    @staticmethod
    def _parse_offer(offer: dict, default_currency: str) -> NormalizedOffer | None:
        """Parse Amadeus offer JSON into a NormalizedOffer."""
        price = offer.get("price", {})
        itineraries = offer.get("itineraries") or []
        if not itineraries:
            return None
        outbound = itineraries[0].get("segments") or []
        if not outbound:
            return None

        try:
            total = float(price.get("grandTotal") or price.get("total"))
        except (TypeError, ValueError):
            logger.warning(f"Skipping Amadeus offer {offer.get('id')} without a usable price")
            return None

        stops_return = None
        if len(itineraries) > 1:
            stops_return = max(0, len(itineraries[1].get("segments") or []) - 1)

        return NormalizedOffer(
            total_price=total,
            currency=price.get("currency", default_currency),
            carrier_code=outbound[0].get("carrierCode", "UNKNOWN"),
            stops_outbound=max(0, len(outbound) - 1),
            stops_return=stops_return,
            booking_payload=offer,
        )

    # --- Mock data generation for demo mode ---

    def _generate_mock_offers(self, request: FareSearchRequest) -> list[NormalizedOffer]:
        """Deterministic mock offers for demo/development (no credentials configured)."""
        seed_str = request.cache_key()
        seed = int(hashlib.md5(seed_str.encode()).hexdigest()[:8], 16)
        rng = random.Random(seed)

        base = self._estimate_base_price(request.origin, request.destination, request.cabin)
        if request.return_date:
            base *= 1.8
        airlines = ["AA", "DL", "UA", "B6", "AS", "WN", "TK", "BA"]

        offers = []
        for _ in range(rng.randint(3, 8)):
            carrier = rng.choice(airlines)
            stops_out = rng.choices([0, 1, 2], weights=[60, 30, 10])[0]
            stops_back = rng.choices([0, 1, 2], weights=[60, 30, 10])[0] if request.return_date else None
            total = round(base * rng.uniform(0.8, 1.8) * request.adults, 2)
            offers.append(NormalizedOffer(
                total_price=total,
                currency=request.currency,
                carrier_code=carrier,
                stops_outbound=stops_out,
                stops_return=stops_back,
                booking_payload={
                    "source": "mock",
                    "carrier": carrier,
                    "flight_number": f"{carrier}{rng.randint(100, 9999)}",
                },
            ))
        return sorted(offers, key=lambda o: o.total_price)

    @staticmethod
    def _estimate_base_price(origin: str, destination: str, cabin: str) -> float:
        """Rough one-way base price by route characteristics."""
        route_key = f"{origin}-{destination}"
        if any(a in route_key for a in ["LHR", "CDG", "FRA", "AMS", "IST"]):
            base = 450
        elif any(a in route_key for a in ["NRT", "HND", "ICN", "SIN"]):
            base = 650
        else:
            base = 180

        cabin_multiplier = {
            "ECONOMY": 1.0, "PREMIUM_ECONOMY": 1.8,
            "BUSINESS": 3.5, "FIRST": 6.0,
        }.get(cabin, 1.0)

        return base * cabin_multiplier

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None
