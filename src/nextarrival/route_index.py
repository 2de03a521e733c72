"""Route <-> stop index derived from trips.txt and stop_times.txt."""

import logging
from typing import Dict, Iterable, List, Mapping, Sequence, Tuple

from .cache import SingleFlight
from .errors import StaticDataUnavailable
from .modes import get_mode
from .models import Stop, StopTimeRecord, Trip, strip_direction_suffix
from .static_data import SOURCE_ERRORS, StaticDatasetCache
from .tabular import Record, iter_records

logger = logging.getLogger(__name__)


def stop_time_records(records: Iterable[Record]) -> Iterable[StopTimeRecord]:
    """Turn stop_times.txt records into StopTimeRecord objects."""
    for row in records:
        trip_id = row.get("trip_id", "").strip()
        stop_id = row.get("stop_id", "").strip()
        if not trip_id or not stop_id:
            continue
        sequence = row.get("stop_sequence", "").strip()
        yield StopTimeRecord(
            trip_id=trip_id,
            stop_id=stop_id,
            stop_sequence=int(sequence) if sequence.isdigit() else 0,
            arrival_time=row.get("arrival_time", "").strip(),
            departure_time=row.get("departure_time", "").strip(),
        )


class RouteStopIndex:
    """
    Which stops each route serves, and the inverse.

    Reflects scheduled connectivity only. Immutable once built.
    """

    def __init__(self, stops_by_route: Mapping[str, Sequence[str]]):
        self._stops_by_route: Dict[str, Tuple[str, ...]] = {
            route_id: tuple(stop_ids) for route_id, stop_ids in stops_by_route.items()
        }
        inverse: Dict[str, List[str]] = {}
        for route_id, stop_ids in self._stops_by_route.items():
            for stop_id in stop_ids:
                inverse.setdefault(stop_id, []).append(route_id)
        self._routes_by_stop = {stop_id: tuple(routes) for stop_id, routes in inverse.items()}

    @property
    def route_ids(self) -> Tuple[str, ...]:
        return tuple(self._stops_by_route.keys())

    def stop_ids_for_route(self, route_id: str) -> Tuple[str, ...]:
        """Stop IDs on a route in first-seen order, platform suffixes intact."""
        return self._stops_by_route.get(route_id, ())

    def stops_for_route(self, route_id: str, stops: Mapping[str, Stop]) -> List[Stop]:
        """
        Stops served by a route, one entry per station.

        Platforms sharing a parent station collapse to the first one
        encountered. Stop IDs missing from stops.txt are skipped.
        """
        result: List[Stop] = []
        seen_parents = set()
        for stop_id in self.stop_ids_for_route(route_id):
            stop = stops.get(stop_id)
            if stop is None:
                continue
            parent = stop.parent_station or stop.stop_id
            if parent in seen_parents:
                continue
            seen_parents.add(parent)
            result.append(stop)
        return result

    def routes_for_stop(self, stop_id: str, suffixes: Sequence[str] = ()) -> List[str]:
        """
        Routes serving a stop.

        With platform suffixes (subway), every platform of the same base
        stop counts, so "127", "127N" and "127S" give the same answer.
        """
        candidates = [stop_id]
        if suffixes:
            base_id = strip_direction_suffix(stop_id, suffixes)
            candidates.append(base_id)
            candidates.extend(f"{base_id}{suffix}" for suffix in suffixes)

        routes: Dict[str, None] = {}
        for candidate in candidates:
            for route_id in self._routes_by_stop.get(candidate, ()):
                routes[route_id] = None
        return [route_id for route_id in self._stops_by_route if route_id in routes]

    def __len__(self) -> int:
        return len(self._stops_by_route)


def build_route_index(trips: Mapping[str, Trip], stop_times: Iterable[StopTimeRecord]) -> RouteStopIndex:
    """
    Join stop times to routes through their trips in a single pass.

    Stop times whose trip is unknown are skipped.
    """
    trip_to_route = {trip_id: trip.route_id for trip_id, trip in trips.items()}
    stops_by_route: Dict[str, Dict[str, None]] = {}
    dangling = 0

    for record in stop_times:
        route_id = trip_to_route.get(record.trip_id)
        if not route_id:
            dangling += 1
            continue
        stops_by_route.setdefault(route_id, {})[record.stop_id] = None

    if dangling:
        logger.debug(f"Skipped {dangling} stop times with unknown trips")
    return RouteStopIndex(stops_by_route)


class RouteIndexCache:
    """Builds each mode's RouteStopIndex at most once."""

    def __init__(self, static_cache: StaticDatasetCache):
        self.static_cache = static_cache
        self._indexes: SingleFlight[RouteStopIndex] = SingleFlight("route-indexes")

    def get(self, mode: str) -> RouteStopIndex:
        """
        Get the route/stop index for a mode, building it on first use.

        Raises:
            StaticDataUnavailable: If trips.txt or stop_times.txt could not be read.
        """
        get_mode(self.static_cache.modes, mode)
        return self._indexes.get(mode, lambda: self._build(mode))

    def _build(self, mode: str) -> RouteStopIndex:
        dataset = self.static_cache.get(mode)
        source = self.static_cache.source_for(mode)
        logger.info(f"Building route-to-stops index for {mode}")
        try:
            text = source.read_file("stop_times.txt")
        except SOURCE_ERRORS as e:
            logger.error(f"Failed to read {mode} stop_times.txt: {e}")
            raise StaticDataUnavailable(mode, str(e)) from e

        index = build_route_index(dataset.trips, stop_time_records(iter_records(text)))
        logger.info(f"Route-to-stops index for {mode} covers {len(index)} routes")
        return index

    def is_built(self, mode: str) -> bool:
        return self._indexes.is_loaded(mode)

