"""Notification decision — hysteresis on the last notified price."""

from farewatch.domain import Action, Decision, Reason, Watch

SIGNIFICANT_DROP = 25.0  # currency units below the last notified price


def decide(watch: Watch, best_price: float) -> Decision:
    """
    Classify a best price as NOTIFY or NOOP.

    A watch that has never notified fires as soon as the price reaches the
    target. After that it only fires again once the price has fallen at least
    ``SIGNIFICANT_DROP`` below the last notified price. The caller must persist
    ``last_notified_usd = best_price`` whenever this returns NOTIFY.
    """
    if best_price > watch.target_usd:
        return Decision(Action.NOOP, Reason.ABOVE_TARGET_PRICE)

    if watch.last_notified_usd is None:
        return Decision(Action.NOTIFY, Reason.FIRST_TIME_BELOW_TARGET)

    if best_price <= watch.last_notified_usd - SIGNIFICANT_DROP:
        return Decision(Action.NOTIFY, Reason.SIGNIFICANT_PRICE_DROP)

    return Decision(Action.NOOP, Reason.BELOW_TARGET_NOT_SIGNIFICANT)
