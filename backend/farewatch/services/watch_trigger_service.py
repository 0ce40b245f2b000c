"""Watch trigger service — one evaluation cycle per watch, plus the sweep over all active watches."""

import asyncio
import logging
import time
from collections.abc import Callable
from datetime import date

from farewatch.domain import Action, DateCombination, NormalizedOffer, Reason, TriggerOutcome, Watch, utcnow
from farewatch.exceptions import InactiveWatchError, WatchNotFoundError
from farewatch.services.booking_links import BookingLinkBuilder, build_app_deep_link
from farewatch.services.date_combinations import generate_date_combinations
from farewatch.services.email_templates import render_fare_email
from farewatch.services.fare_search_orchestrator import FareSearchOrchestrator
from farewatch.services.notification_decision import decide
from farewatch.services.notifier import EmailNotifier
from farewatch.services.providers import ProviderRegistry
from farewatch.services.watch_store import WatchStore

logger = logging.getLogger(__name__)

SWEEP_RESULT_LIMIT = 10


class WatchTriggerService:
    """
    Runs the trigger sequence for a watch.

    Runs for the same watch id are serialized inside the process, and every
    write carries the version read at the start of the run, so a concurrent
    writer elsewhere surfaces as ``WatchConflictError`` instead of a lost
    update to ``last_notified_usd``.
    """

    def __init__(
        self,
        store: WatchStore,
        providers: ProviderRegistry,
        orchestrator: FareSearchOrchestrator,
        link_builder: BookingLinkBuilder,
        notifier: EmailNotifier,
        app_base_url: str = "http://localhost:3000",
        default_email: str = "",
        sweep_pause_seconds: float = 0.5,
        today: Callable[[], date] = date.today,
    ):
        self.store = store
        self.providers = providers
        self.orchestrator = orchestrator
        self.link_builder = link_builder
        self.notifier = notifier
        self.app_base_url = app_base_url
        self.default_email = default_email
        self.sweep_pause_seconds = sweep_pause_seconds
        self._today = today
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    async def trigger(self, watch_id: str) -> TriggerOutcome:
        lock = self._locks.setdefault(watch_id, asyncio.Lock())
        self._waiters[watch_id] = self._waiters.get(watch_id, 0) + 1
        try:
            async with lock:
                return await self._run(watch_id)
        finally:
            self._waiters[watch_id] -= 1
            if not self._waiters[watch_id]:
                del self._waiters[watch_id]
                del self._locks[watch_id]

    async def _run(self, watch_id: str) -> TriggerOutcome:
        watch = await self.store.get(watch_id)
        if watch is None:
            raise WatchNotFoundError(watch_id)
        if not watch.active:
            raise InactiveWatchError(watch_id)

        combinations = generate_date_combinations(
            watch.start, watch.end, watch.flex_days, watch.trip_type, today=self._today(),
        )
        if not combinations:
            logger.info(f"Watch {watch.id}: window too narrow for any {watch.trip_type} combination")
            return TriggerOutcome(Action.NOOP, Reason.NO_RESULTS, watch)

        provider = self.providers.resolve(watch.provider)
        logger.info(
            f"Triggering {watch.id} ({watch.route}) via {provider.name}: "
            f"{len(combinations)} combinations"
        )
        result = await self.orchestrator.search(watch, combinations, provider)

        if result.best_offer is None:
            if result.rate_limited:
                reason = Reason.RATE_LIMITED
            elif result.provider_errored:
                reason = Reason.PROVIDER_ERROR
            else:
                reason = Reason.NO_RESULTS
            logger.info(f"Watch {watch.id}: NOOP/{reason.value}")
            return TriggerOutcome(
                Action.NOOP, reason, watch, searched_combinations=result.attempted,
            )

        best = result.best_offer
        dates = result.best_dates
        source_link = self.link_builder.build(
            best, watch.origin, watch.destination, dates, adults=watch.adults,
        )
        watch = await self.store.update(
            watch.id,
            {
                "last_best_usd": best.total_price,
                "last_provider": provider.name,
                "last_source_link": source_link,
            },
            expected_version=watch.version,
        )

        decision = decide(watch, best.total_price)
        outcome = TriggerOutcome(
            decision.action,
            decision.reason,
            watch,
            searched_combinations=result.attempted,
            best_offer=best,
            dates_used=dates,
            booking_link=build_app_deep_link(
                self.app_base_url, watch.id, watch.origin, watch.destination,
                best, dates, adults=watch.adults, cabin=watch.cabin,
            ),
        )

        if decision.action == Action.NOTIFY:
            outcome.watch = await self.store.update(
                watch.id,
                {"last_notified_usd": best.total_price},
                expected_version=watch.version,
            )
            outcome.notification_sent, outcome.email_reason = await self._notify(
                outcome.watch, best, dates, outcome.booking_link,
            )

        logger.info(
            f"Watch {watch.id}: {decision.action.value}/{decision.reason.value} "
            f"at {best.total_price:.2f} {best.currency} (target {watch.target_usd:.2f})"
        )
        return outcome

    async def _notify(
        self, watch: Watch, offer: NormalizedOffer, dates: DateCombination, link: str,
    ) -> tuple[bool, str | None]:
        """Send the fare alert. Returns (sent, reason-not-sent); never raises."""
        recipient = watch.email or self.default_email
        if not recipient:
            logger.warning(f"Watch {watch.id} fired but has no email recipient")
            return False, "no_recipient"

        email = render_fare_email(
            origin=watch.origin,
            destination=watch.destination,
            depart=dates.depart,
            return_date=dates.return_date,
            total=offer.total_price,
            currency=offer.currency,
            carrier=offer.carrier_code,
            stops_out=offer.stops_outbound,
            stops_back=offer.stops_return,
            link=link,
            target_price=watch.target_usd,
        )
        try:
            sent = await self.notifier.send(recipient, email.subject, email.html, email.text)
        except Exception as e:
            logger.error(f"Email delivery failed for watch {watch.id}: {e}")
            return False, "delivery_failed"

        if not sent.delivered:
            return False, "email_disabled"
        return True, None

    async def run_all_active(self) -> dict:
        """Trigger every active watch in turn. One watch failing never stops the sweep."""
        started = time.monotonic()
        started_at = utcnow()
        watches = await self.store.list_active()
        logger.info(f"Starting watch sweep: {len(watches)} active watches")

        notified = noop = errors = 0
        results = []
        for i, watch in enumerate(watches):
            if i and self.sweep_pause_seconds:
                await asyncio.sleep(self.sweep_pause_seconds)
            entry = {"watchId": watch.id, "route": f"{watch.origin} → {watch.destination}"}
            try:
                outcome = await self.trigger(watch.id)
            except Exception as e:
                errors += 1
                logger.exception(f"Sweep failed for watch {watch.id}")
                entry.update(success=False, error=str(e))
            else:
                if outcome.action == Action.NOTIFY:
                    notified += 1
                else:
                    noop += 1
                entry.update(
                    success=True,
                    action=outcome.action.value,
                    reason=outcome.reason.value,
                    currentPrice=outcome.best_offer.total_price if outcome.best_offer else None,
                )
            results.append(entry)

        summary = {"total": len(watches), "notified": notified, "noop": noop, "errors": errors}
        duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(f"Sweep completed in {duration_ms}ms: {summary}")
        return {
            "success": True,
            "summary": summary,
            "timestamp": started_at.isoformat(),
            "duration": duration_ms,
            "results": results[:SWEEP_RESULT_LIMIT],
        }


def outcome_to_payload(outcome: TriggerOutcome) -> dict:
    """Wire shape of a trigger outcome."""
    watch = outcome.watch
    payload = {
        "action": outcome.action.value,
        "reason": outcome.reason.value,
    }
    if outcome.best_offer is not None and outcome.dates_used is not None:
        offer = outcome.best_offer
        payload["best"] = {
            "total": offer.total_price,
            "currency": offer.currency,
            "carrier": offer.carrier_code,
            "stopsOut": offer.stops_outbound,
            "stopsBack": offer.stops_return,
            "dates": outcome.dates_used.to_dict(),
            "link": outcome.booking_link,
        }
    email = {"sent": outcome.notification_sent}
    if not outcome.notification_sent and outcome.action == Action.NOTIFY:
        email["reason"] = outcome.email_reason
    elif outcome.action == Action.NOOP:
        email["reason"] = "no_notification_needed"
    payload["email"] = email
    payload.update({
        "watchId": watch.id,
        "targetUsd": watch.target_usd,
        "lastNotifiedUsd": watch.last_notified_usd,
        "searchedCombinations": outcome.searched_combinations,
    })
    return payload
