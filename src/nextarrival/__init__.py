"""NextArrival - Real-time MTA subway and commuter rail arrival engine."""

__version__ = "0.1.0"

from .models import Stop, Route, Trip, Arrival, SubwayArrivals, RailArrivals
from .errors import (
    NextArrivalError,
    UnknownModeError,
    StaticDataUnavailable,
    FeedUnavailable,
    FeedFetchError,
    FeedDecodeError,
)
from .modes import SUBWAY, LIRR, MNRR, ModeConfig
from .static_data import StaticDatasetCache
from .feed import FeedClient
from .engine import ArrivalEngine

__all__ = [
    "ArrivalEngine",
    "StaticDatasetCache",
    "FeedClient",
    "ModeConfig",
    "SUBWAY",
    "LIRR",
    "MNRR",
    "Stop",
    "Route",
    "Trip",
    "Arrival",
    "SubwayArrivals",
    "RailArrivals",
    "NextArrivalError",
    "UnknownModeError",
    "StaticDataUnavailable",
    "FeedUnavailable",
    "FeedFetchError",
    "FeedDecodeError",
]
