"""Data models for the arrival engine."""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple


def strip_direction_suffix(stop_id: str, suffixes: Iterable[str]) -> str:
    """Return the stop ID without its platform-direction suffix, if any."""
    for suffix in suffixes:
        if stop_id.upper().endswith(suffix) and len(stop_id) > len(suffix):
            return stop_id[: -len(suffix)]
    return stop_id


@dataclass
class Stop:
    """A stop or station from stops.txt."""
    stop_id: str
    name: str
    latitude: float
    longitude: float
    location_type: str = ""
    parent_station: Optional[str] = None

    @property
    def is_platform(self) -> bool:
        return self.location_type in ("", "0")


@dataclass
class Route:
    """A route from routes.txt with display colors."""
    route_id: str
    short_name: str
    long_name: str
    color: str
    text_color: str
    route_type: str = ""
    acronym: Optional[str] = None  # Rail only, from static lookup table

    @property
    def display_name(self) -> str:
        return self.short_name or self.long_name or self.route_id


@dataclass
class Trip:
    """A scheduled trip from trips.txt."""
    trip_id: str
    route_id: str
    service_id: str = ""
    headsign: Optional[str] = None
    direction_id: Optional[int] = None


@dataclass
class StopTimeRecord:
    """A row of stop_times.txt. Only used to build the route/stop index."""
    trip_id: str
    stop_id: str
    stop_sequence: int
    arrival_time: str = ""
    departure_time: str = ""


@dataclass
class StaticDataset:
    """Typed static collections for one mode."""
    mode: str
    stops: Dict[str, Stop]
    routes: Dict[str, Route]
    trips: Dict[str, Trip]


@dataclass
class StopTimeUpdate:
    """A decoded realtime stop-time prediction."""
    stop_id: str
    arrival_time: int  # Unix timestamp
    departure_time: int  # Unix timestamp
    stop_sequence: Optional[int] = None
    track: Optional[str] = None


@dataclass
class TripUpdate:
    """A decoded realtime trip update."""
    route_id: str
    trip_id: str
    direction_id: Optional[int] = None
    headsign: Optional[str] = None
    status: Optional[str] = None
    stop_time_updates: List[StopTimeUpdate] = field(default_factory=list)


@dataclass
class Arrival:
    """A resolved arrival at a stop."""
    route_id: str
    trip_id: str
    stop_id: str  # Matched live stop ID, may carry a platform suffix
    arrival_time: int  # Unix timestamp
    departure_time: int  # Unix timestamp
    destination: str
    track: Optional[str] = None
    status: Optional[str] = None
    direction: Optional[str] = None  # "N"/"S" for subway, None for rail

    def minutes_away(self, now: float) -> int:
        return math.floor((self.arrival_time - now) / 60)


@dataclass
class SubwayArrivals:
    """Subway arrivals for a stop, split by platform direction."""
    stop_id: str
    northbound: List[Arrival]
    southbound: List[Arrival]
    last_updated: datetime
    failed_routes: List[str] = field(default_factory=list)


@dataclass
class RailArrivals:
    """Commuter rail arrivals for a stop, grouped by destination."""
    stop_id: str
    by_destination: Dict[str, List[Arrival]]
    last_updated: datetime
    failed_routes: List[str] = field(default_factory=list)

    @property
    def arrivals(self) -> List[Arrival]:
        return sorted(
            (a for group in self.by_destination.values() for a in group),
            key=lambda a: a.arrival_time,
        )

    def destinations(self) -> Tuple[str, ...]:
        return tuple(self.by_destination.keys())
