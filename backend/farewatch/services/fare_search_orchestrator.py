"""Fare search orchestrator — sequential best-offer reduction over date combinations."""

import asyncio
import logging
import math
from dataclasses import dataclass

from farewatch.domain import DateCombination, FareSearchRequest, NormalizedOffer, Watch
from farewatch.exceptions import ProviderError, RateLimitError
from farewatch.services.providers import FareSearchProvider

logger = logging.getLogger(__name__)


@dataclass
class FareSearchResult:
    best_offer: NormalizedOffer | None = None
    best_dates: DateCombination | None = None
    rate_limited: bool = False
    provider_errored: bool = False
    attempted: int = 0  # combinations actually sent to the provider


def is_admissible(offer: NormalizedOffer, max_stops: int) -> bool:
    """An offer is admissible when neither direction exceeds the stop limit."""
    if offer.stops_outbound > max_stops:
        return False
    if offer.stops_return is not None and offer.stops_return > max_stops:
        return False
    return True


def build_search_request(watch: Watch, combo: DateCombination) -> FareSearchRequest:
    return FareSearchRequest(
        origin=watch.origin,
        destination=watch.destination,
        depart=combo.depart,
        return_date=combo.return_date,
        cabin=watch.cabin,
        adults=watch.adults,
        currency=watch.currency,
    )


class FareSearchOrchestrator:
    """
    Searches each combination in order, one at a time, keeping the cheapest
    admissible offer seen so far.

    Combinations are never fanned out: the provider is rate limited and a
    ``RateLimitError`` must stop the remaining searches. Ties keep the
    earlier combination.
    """

    def __init__(self, call_timeout: float | None = 20.0):
        self.call_timeout = call_timeout

    async def search(
        self,
        watch: Watch,
        combinations: list[DateCombination],
        provider: FareSearchProvider,
    ) -> FareSearchResult:
        result = FareSearchResult()
        best_price = math.inf

        for combo in combinations:
            request = build_search_request(watch, combo)
            result.attempted += 1
            try:
                offers = await self._call(provider, request)
            except RateLimitError as e:
                logger.warning(
                    f"Rate limited searching {watch.id} on {combo.depart}; "
                    f"skipping {len(combinations) - result.attempted} remaining combinations: {e}"
                )
                result.rate_limited = True
                break
            except ProviderError as e:
                logger.warning(f"Provider error for {watch.id} on {combo.depart}: {e}")
                result.provider_errored = True
                continue
            except Exception as e:
                logger.error(f"Search failed for {watch.id} on {combo.depart}: {e!r}")
                continue

            for offer in offers:
                if not is_admissible(offer, watch.max_stops):
                    continue
                if offer.total_price < best_price:
                    best_price = offer.total_price
                    result.best_offer = offer
                    result.best_dates = combo

        if result.best_offer:
            logger.info(
                f"Best offer for {watch.id}: {result.best_offer.total_price:.2f} "
                f"{result.best_offer.currency} ({result.best_offer.carrier_code}) "
                f"after {result.attempted}/{len(combinations)} searches"
            )
        return result

    async def _call(self, provider: FareSearchProvider, request: FareSearchRequest) -> list[NormalizedOffer]:
        if self.call_timeout is None:
            return await provider.search(request)
        return await asyncio.wait_for(provider.search(request), timeout=self.call_timeout)
