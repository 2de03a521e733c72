"""Lazily loaded, per-mode static GTFS data (stops, routes, trips)."""

import logging
import os
import zipfile
from typing import Dict, Iterable, List, Optional

import requests

from .cache import SingleFlight
from .errors import StaticDataUnavailable
from .modes import (
    DEFAULT_MODES,
    DEFAULT_ROUTE_COLOR,
    DEFAULT_ROUTE_TEXT_COLOR,
    ModeConfig,
    get_mode,
    gtfs_dir_from_env,
)
from .models import Route, StaticDataset, Stop, Trip
from .sources import DirectorySource, GTFSSource, ZipSource
from .tabular import Record, iter_records

logger = logging.getLogger(__name__)

STATIC_FILES = ("stops.txt", "routes.txt", "trips.txt")

# Errors a source may raise while reading files
SOURCE_ERRORS = (
    OSError,
    KeyError,
    UnicodeDecodeError,
    zipfile.BadZipFile,
    requests.RequestException,
)


def _hex_color(value: str, default: str) -> str:
    value = (value or "").strip().lstrip("#")
    return f"#{value}" if value else default


def _optional(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


def build_stops(records: Iterable[Record]) -> Dict[str, Stop]:
    """Create Stop objects from stops.txt records, skipping unusable rows."""
    stops: Dict[str, Stop] = {}
    for row in records:
        stop_id = row.get("stop_id", "").strip()
        if not stop_id:
            continue
        try:
            latitude = float(row.get("stop_lat") or 0.0)
            longitude = float(row.get("stop_lon") or 0.0)
        except ValueError:
            logger.warning(f"Skipping stop {stop_id} with bad coordinates")
            continue
        stops[stop_id] = Stop(
            stop_id=stop_id,
            name=row.get("stop_name", "").strip(),
            latitude=latitude,
            longitude=longitude,
            location_type=row.get("location_type", "").strip(),
            parent_station=_optional(row.get("parent_station")),
        )
    return stops


def build_routes(records: Iterable[Record], acronyms: Optional[Dict[str, str]] = None) -> Dict[str, Route]:
    """Create Route objects, prefixing colors with '#' and attaching acronyms."""
    acronyms = acronyms or {}
    routes: Dict[str, Route] = {}
    for row in records:
        route_id = row.get("route_id", "").strip()
        if not route_id:
            continue
        routes[route_id] = Route(
            route_id=route_id,
            short_name=row.get("route_short_name", "").strip(),
            long_name=row.get("route_long_name", "").strip(),
            color=_hex_color(row.get("route_color", ""), DEFAULT_ROUTE_COLOR),
            text_color=_hex_color(row.get("route_text_color", ""), DEFAULT_ROUTE_TEXT_COLOR),
            route_type=row.get("route_type", "").strip(),
            acronym=acronyms.get(route_id),
        )
    return routes


def build_trips(records: Iterable[Record]) -> Dict[str, Trip]:
    """Create Trip objects from trips.txt records."""
    trips: Dict[str, Trip] = {}
    for row in records:
        trip_id = row.get("trip_id", "").strip()
        if not trip_id:
            continue
        direction = row.get("direction_id", "").strip()
        trips[trip_id] = Trip(
            trip_id=trip_id,
            route_id=row.get("route_id", "").strip(),
            service_id=row.get("service_id", "").strip(),
            headsign=_optional(row.get("trip_headsign")),
            direction_id=int(direction) if direction.isdigit() else None,
        )
    return trips


class StaticDatasetCache:
    """
    Per-mode cache of static GTFS collections.

    Each mode is loaded on first access and kept for the lifetime of the
    cache. Concurrent first callers share a single load.
    """

    def __init__(
        self,
        modes: Optional[Dict[str, ModeConfig]] = None,
        sources: Optional[Dict[str, GTFSSource]] = None,
        gtfs_dir: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the cache.

        Args:
            modes: Mode configurations by key. Defaults to subway, LIRR and Metro-North.
            sources: Explicit GTFS source per mode key.
            gtfs_dir: Directory with one sub-directory per mode. Falls back to
                the NEXTARRIVAL_GTFS_DIR environment variable, then the MTA zip URLs.
            session: requests session used for downloads.
        """
        self.modes = modes or DEFAULT_MODES
        self._sources: Dict[str, GTFSSource] = dict(sources or {})
        self._created_sources: List[GTFSSource] = []
        self._gtfs_dir = gtfs_dir or gtfs_dir_from_env()
        self._session = session
        self._datasets: SingleFlight[StaticDataset] = SingleFlight("static-datasets")

    def source_for(self, mode: str) -> GTFSSource:
        """Return (and remember) the GTFS source for a mode."""
        if mode not in self._sources:
            config = get_mode(self.modes, mode)
            if self._gtfs_dir:
                self._sources[mode] = DirectorySource(os.path.join(self._gtfs_dir, mode))
            else:
                self._sources[mode] = ZipSource(config.static_url, session=self._session)
            self._created_sources.append(self._sources[mode])
        return self._sources[mode]

    def get(self, mode: str) -> StaticDataset:
        """
        Get the static dataset for a mode, loading it on first use.

        Raises:
            UnknownModeError: If the mode is not configured.
            StaticDataUnavailable: If a file could not be read.
        """
        config = get_mode(self.modes, mode)
        return self._datasets.get(mode, lambda: self._load(config))

    def is_loaded(self, mode: str) -> bool:
        return self._datasets.is_loaded(mode)

    def _load(self, config: ModeConfig) -> StaticDataset:
        source = self.source_for(config.key)
        logger.info(f"Loading {config.key} static data from {source!r}")
        try:
            files = source.read_files(STATIC_FILES)
        except SOURCE_ERRORS as e:
            logger.error(f"Failed to load {config.key} static data: {e}")
            raise StaticDataUnavailable(config.key, str(e)) from e

        dataset = StaticDataset(
            mode=config.key,
            stops=build_stops(iter_records(files["stops.txt"])),
            routes=build_routes(iter_records(files["routes.txt"]), config.acronyms),
            trips=build_trips(iter_records(files["trips.txt"])),
        )
        logger.info(
            f"Loaded {len(dataset.stops)} stops, {len(dataset.routes)} routes "
            f"and {len(dataset.trips)} trips for {config.key}"
        )
        return dataset

    def close(self) -> None:
        """Close the sources this cache created. Loaded datasets are kept."""
        for source in self._created_sources:
            source.close()
        logger.debug(f"Closed {len(self._created_sources)} static data sources")

    def get_stop(self, mode: str, stop_id: str) -> Optional[Stop]:
        """Get a stop by ID, or None if unknown."""
        return self.get(mode).stops.get(stop_id)

    def search_stops(self, mode: str, query: str) -> List[Stop]:
        """Find platform-level stops whose name contains the query (case-insensitive)."""
        query_lower = query.lower()
        return [
            stop
            for stop in self.get(mode).stops.values()
            if stop.is_platform and query_lower in stop.name.lower()
        ]

    def parent_stations(self, mode: str) -> List[Stop]:
        """Get stops flagged as parent stations (location_type 1)."""
        return [stop for stop in self.get(mode).stops.values() if stop.location_type == "1"]

    def platforms_for_station(self, mode: str, parent_id: str) -> List[Stop]:
        """Get all platform stops of a parent station."""
        return [stop for stop in self.get(mode).stops.values() if stop.parent_station == parent_id]
