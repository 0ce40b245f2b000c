"""Fare-search provider interface and the registry that resolves watch.provider."""

import logging
from typing import Protocol

from farewatch.domain import FareSearchRequest, NormalizedOffer

logger = logging.getLogger(__name__)


class FareSearchProvider(Protocol):
    """
    Anything that can price one date combination.

    Implementations raise ``RateLimitError`` when the account quota is spent
    and ``ProviderError`` for transient per-request failures. Auth and caching
    are the provider's own business.
    """

    name: str

    async def search(self, request: FareSearchRequest) -> list[NormalizedOffer]: ...


class ProviderRegistry:
    """Maps provider ids to instances, falling back to a default."""

    def __init__(self, providers: dict[str, FareSearchProvider], default: str):
        if default not in providers:
            raise ValueError(f"Default provider '{default}' is not registered")
        self._providers = dict(providers)
        self._default = default

    def resolve(self, provider_id: str | None) -> FareSearchProvider:
        if provider_id and provider_id in self._providers:
            return self._providers[provider_id]
        if provider_id:
            logger.warning(f"Unknown provider '{provider_id}', using '{self._default}'")
        return self._providers[self._default]
