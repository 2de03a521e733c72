"""Exceptions raised by the arrival engine."""


class NextArrivalError(Exception):
    """Base class for engine errors."""


class UnknownModeError(NextArrivalError, ValueError):
    """Raised when a mode key has no configuration."""


class StaticDataUnavailable(NextArrivalError):
    """A static GTFS file could not be fetched or parsed."""

    def __init__(self, mode: str, message: str):
        super().__init__(f"Static data for {mode} unavailable: {message}")
        self.mode = mode


class FeedUnavailable(NextArrivalError):
    """No live data could be obtained from a realtime feed."""

    def __init__(self, url: str, message: str):
        super().__init__(f"Feed {url} unavailable: {message}")
        self.url = url


class FeedFetchError(FeedUnavailable):
    """Network failure or non-success HTTP response."""


class FeedDecodeError(FeedUnavailable):
    """The feed payload is not a valid GTFS-Realtime message."""
