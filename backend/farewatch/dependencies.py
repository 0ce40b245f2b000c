"""Service wiring — each collaborator is built once per process from settings."""

import logging
from functools import lru_cache

from farewatch.config import settings
from farewatch.services.amadeus_client import AmadeusClient
from farewatch.services.booking_links import booking_link_builder
from farewatch.services.cache_service import SearchResultCache
from farewatch.services.fare_search_orchestrator import FareSearchOrchestrator
from farewatch.services.notifier import EmailNotifier
from farewatch.services.providers import ProviderRegistry
from farewatch.services.watch_store import InMemoryWatchStore, SqlWatchStore, WatchStore
from farewatch.services.watch_trigger_service import WatchTriggerService

logger = logging.getLogger(__name__)


@lru_cache
def get_search_cache() -> SearchResultCache:
    return SearchResultCache(settings.redis_url, ttl=settings.search_cache_ttl_seconds)


@lru_cache
def get_amadeus_client() -> AmadeusClient:
    client = AmadeusClient(
        client_id=settings.amadeus_client_id,
        client_secret=settings.amadeus_client_secret,
        cache=get_search_cache(),
        base_url=settings.amadeus_base_url,
        max_results=settings.amadeus_max_results,
        timeout=settings.search_call_timeout_seconds,
    )
    if not settings.amadeus_client_id:
        logger.warning("AMADEUS_CLIENT_ID not set, fare search running on mock data")
    return client


@lru_cache
def get_notifier() -> EmailNotifier:
    return EmailNotifier(
        sendgrid_api_key=settings.sendgrid_api_key,
        mailgun_api_key=settings.mailgun_api_key,
        mailgun_domain=settings.mailgun_domain,
        from_email=settings.notify_from_email,
        from_name=settings.notify_from_name,
    )


@lru_cache
def get_watch_store() -> WatchStore:
    if settings.watch_store == "database":
        from farewatch.database import async_session_factory
        return SqlWatchStore(async_session_factory)
    return InMemoryWatchStore()


@lru_cache
def get_trigger_service() -> WatchTriggerService:
    amadeus = get_amadeus_client()
    return WatchTriggerService(
        store=get_watch_store(),
        providers=ProviderRegistry({amadeus.name: amadeus}, default=settings.default_provider),
        orchestrator=FareSearchOrchestrator(call_timeout=settings.search_call_timeout_seconds),
        link_builder=booking_link_builder,
        notifier=get_notifier(),
        app_base_url=settings.app_base_url,
        default_email=settings.notify_default_email,
        sweep_pause_seconds=settings.sweep_pause_seconds,
    )


async def shutdown_services():
    """Close HTTP clients and the Redis connection if they were ever built."""
    if get_amadeus_client.cache_info().currsize:
        await get_amadeus_client().close()
    if get_notifier.cache_info().currsize:
        await get_notifier().close()
    if get_search_cache.cache_info().currsize:
        await get_search_cache().close()
