"""Domain errors raised by the watch trigger engine and its collaborators."""


class FareWatchError(Exception):
    """Base class for all FareWatch errors."""


class WatchNotFoundError(FareWatchError):
    def __init__(self, watch_id: str):
        super().__init__(f"Watch not found: {watch_id}")
        self.watch_id = watch_id


class InactiveWatchError(FareWatchError):
    def __init__(self, watch_id: str):
        super().__init__(f"Watch is not active: {watch_id}")
        self.watch_id = watch_id


class WatchConflictError(FareWatchError):
    """The watch was modified by someone else since it was read."""

    def __init__(self, watch_id: str, expected_version: int, actual_version: int | None = None):
        super().__init__(
            f"Watch {watch_id} changed concurrently "
            f"(expected version {expected_version}, found {actual_version})"
        )
        self.watch_id = watch_id
        self.expected_version = expected_version
        self.actual_version = actual_version


class RateLimitError(FareWatchError):
    """Upstream fare-search quota is exhausted for this cycle."""


class ProviderError(FareWatchError):
    """Transient upstream failure scoped to a single search request."""


class NotificationDeliveryError(FareWatchError):
    """The email provider rejected or failed to deliver a message."""
