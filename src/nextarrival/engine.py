"""Arrival engine: static lookups and realtime arrivals for every mode."""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Set, Tuple, Union

from .assembler import DISPLAY_LIMIT, assemble_rail, assemble_subway
from .destination import DestinationResolver
from .direction import direction_of
from .errors import FeedUnavailable
from .feed import FeedClient
from .modes import DEFAULT_MODES, ModeConfig, get_mode
from .models import (
    Arrival,
    RailArrivals,
    Route,
    StaticDataset,
    Stop,
    SubwayArrivals,
    TripUpdate,
    strip_direction_suffix,
)
from .route_index import RouteIndexCache
from .static_data import StaticDatasetCache

logger = logging.getLogger(__name__)

StopArrivals = Union[SubwayArrivals, RailArrivals]


class ArrivalEngine:
    """
    Answers "when is the next train at this stop, and where is it going?"

    This class provides methods to:
    - List the stops on a route and the routes at a stop
    - Get realtime arrivals for a stop, bucketed by platform direction
      (subway) or grouped by destination (commuter rail)

    Static data is loaded lazily, once per mode, and kept for the lifetime
    of the engine.
    """

    def __init__(
        self,
        modes: Optional[Dict[str, ModeConfig]] = None,
        static_cache: Optional[StaticDatasetCache] = None,
        feed_client: Optional[FeedClient] = None,
        gtfs_dir: Optional[str] = None,
        max_workers: int = 4,
        display_limit: int = DISPLAY_LIMIT,
    ):
        """
        Initialize the engine.

        Args:
            modes: Mode configurations. Defaults to subway, LIRR and Metro-North.
            static_cache: Static dataset cache to use instead of a new one.
            feed_client: Realtime feed client to use instead of a new one.
            gtfs_dir: Local directory with one GTFS folder per mode.
            max_workers: Feeds fetched in parallel for multi-route stops.
            display_limit: Maximum arrivals per direction or destination.
        """
        self.modes = modes or (static_cache.modes if static_cache else DEFAULT_MODES)
        self.static_cache = static_cache or StaticDatasetCache(self.modes, gtfs_dir=gtfs_dir)
        self.route_index = RouteIndexCache(self.static_cache)
        self.feed_client = feed_client or FeedClient()
        self.max_workers = max_workers
        self.display_limit = display_limit

    def get_routes(self, mode: str) -> List[Route]:
        """
        Get all routes of a mode.

        Commuter rail routes are sorted by long name; subway routes keep
        routes.txt order.
        """
        config = get_mode(self.modes, mode)
        routes = list(self.static_cache.get(mode).routes.values())
        if not config.has_direction_suffixes:
            routes.sort(key=lambda r: r.long_name)
        return routes

    def get_route(self, mode: str, route_id: str) -> Optional[Route]:
        return self.static_cache.get(mode).routes.get(route_id)

    def get_stop(self, mode: str, stop_id: str) -> Optional[Stop]:
        return self.static_cache.get_stop(mode, stop_id)

    def search_stops(self, mode: str, query: str) -> List[Stop]:
        return self.static_cache.search_stops(mode, query)

    def get_stops_for_route(self, mode: str, route_id: str) -> List[Stop]:
        """
        Get the stops served by a route, one entry per station.

        Args:
            mode: Mode key ("subway", "lirr" or "mnrr").
            route_id: Route ID.

        Returns:
            Stops sorted by stop ID (subway) or name (commuter rail). Empty
            if the route is unknown.
        """
        config = get_mode(self.modes, mode)
        dataset = self.static_cache.get(mode)
        stops = self.route_index.get(mode).stops_for_route(route_id, dataset.stops)
        if not stops:
            logger.info(f"No stops found for route {route_id} on {mode}")
            return []

        if config.has_direction_suffixes:
            stops.sort(key=lambda s: s.stop_id)
        else:
            stops.sort(key=lambda s: s.name)
        return stops

    def get_routes_for_stop(self, mode: str, stop_id: str) -> List[str]:
        """
        Get the IDs of routes serving a stop.

        For the subway, both platforms of a station count ("127", "127N"
        and "127S" give the same routes).
        """
        config = get_mode(self.modes, mode)
        routes = self.route_index.get(mode).routes_for_stop(stop_id, config.direction_suffixes)
        logger.debug(f"Stop {stop_id} is served by routes: {', '.join(routes)} on {mode}")
        return routes

    def get_arrivals(
        self,
        mode: str,
        stop_id: str,
        route_id: Optional[str] = None,
        include_departed: bool = False,
        now: Optional[float] = None,
    ) -> StopArrivals:
        """
        Get realtime arrivals for a stop.

        Args:
            mode: Mode key.
            stop_id: Stop ID. Subway IDs may be a station or a platform.
            route_id: Only this route. If None, every route serving the stop.
            include_departed: Commuter rail only; keep trains that left
                more than a minute ago.
            now: Current Unix time, defaults to time.time().

        Returns:
            SubwayArrivals for modes with platform directions, otherwise
            RailArrivals. An unknown stop gives an empty result.

        Raises:
            StaticDataUnavailable: If static data could not be loaded.
            FeedUnavailable: If every required feed failed.
        """
        config = get_mode(self.modes, mode)
        dataset = self.static_cache.get(mode)
        now = time.time() if now is None else now

        arrivals: List[Arrival] = []
        failed_routes: List[str] = []
        if self._is_known_stop(config, dataset, stop_id):
            route_ids = [route_id] if route_id else self.get_routes_for_stop(mode, stop_id)
            arrivals, failed_routes = self._collect_arrivals(config, dataset, stop_id, route_ids, route_id)
        else:
            logger.info(f"Stop {stop_id} not found for {mode}")

        if config.has_direction_suffixes:
            northbound, southbound = assemble_subway(arrivals, now, limit=self.display_limit)
            return SubwayArrivals(
                stop_id=stop_id,
                northbound=northbound,
                southbound=southbound,
                last_updated=datetime.now(),
                failed_routes=failed_routes,
            )

        return RailArrivals(
            stop_id=stop_id,
            by_destination=assemble_rail(arrivals, now, include_departed, limit=self.display_limit),
            last_updated=datetime.now(),
            failed_routes=failed_routes,
        )

    @staticmethod
    def _is_known_stop(config: ModeConfig, dataset: StaticDataset, stop_id: str) -> bool:
        if stop_id in dataset.stops:
            return True
        return strip_direction_suffix(stop_id, config.direction_suffixes) in dataset.stops

    def _collect_arrivals(
        self,
        config: ModeConfig,
        dataset: StaticDataset,
        stop_id: str,
        route_ids: Sequence[str],
        route_filter: Optional[str],
    ) -> Tuple[List[Arrival], List[str]]:
        """Fetch every feed the routes need and resolve matching arrivals."""
        routes_by_feed: Dict[str, List[str]] = {}
        for route in route_ids:
            feed_url = config.feed_url_for_route(route)
            if feed_url is None:
                logger.warning(f"No feed found for route {route} on {config.key}")
                continue
            routes_by_feed.setdefault(feed_url, []).append(route)

        if not routes_by_feed:
            return [], []

        feed_urls = list(routes_by_feed.keys())
        results = self._fetch_all(feed_urls)

        resolver = DestinationResolver(config, dataset.trips, dataset.stops)
        arrivals: List[Arrival] = []
        failed_routes: List[str] = []
        errors: List[FeedUnavailable] = []

        for feed_url, result in zip(feed_urls, results):
            if isinstance(result, FeedUnavailable):
                logger.warning(f"No live data for routes {', '.join(routes_by_feed[feed_url])}: {result}")
                failed_routes.extend(routes_by_feed[feed_url])
                errors.append(result)
                continue
            arrivals.extend(self._match_arrivals(config, resolver, result, stop_id, route_filter))

        if errors and len(errors) == len(feed_urls):
            raise errors[0]

        logger.debug(f"Found {len(arrivals)} arrivals for stop {stop_id} on {config.key}")
        return arrivals, failed_routes

    def _fetch_all(self, feed_urls: List[str]) -> List[Union[List[TripUpdate], FeedUnavailable]]:
        def fetch(url: str) -> Union[List[TripUpdate], FeedUnavailable]:
            try:
                return self.feed_client.get_trip_updates(url)
            except FeedUnavailable as e:
                return e

        if len(feed_urls) == 1:
            return [fetch(feed_urls[0])]

        workers = max(1, min(self.max_workers, len(feed_urls)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="feed") as executor:
            return list(executor.map(fetch, feed_urls))

    @staticmethod
    def _stop_matcher(config: ModeConfig, stop_id: str) -> Set[str]:
        if not config.has_direction_suffixes:
            return {stop_id}
        base_id = strip_direction_suffix(stop_id, config.direction_suffixes)
        return {stop_id, base_id} | {f"{base_id}{suffix}" for suffix in config.direction_suffixes}

    def _match_arrivals(
        self,
        config: ModeConfig,
        resolver: DestinationResolver,
        trip_updates: List[TripUpdate],
        stop_id: str,
        route_filter: Optional[str],
    ) -> List[Arrival]:
        stop_ids = self._stop_matcher(config, stop_id)
        arrivals: List[Arrival] = []

        for trip_update in trip_updates:
            if route_filter and trip_update.route_id != route_filter:
                continue

            for update in trip_update.stop_time_updates:
                if update.stop_id not in stop_ids:
                    continue

                arrivals.append(
                    Arrival(
                        route_id=trip_update.route_id or route_filter or "",
                        trip_id=trip_update.trip_id,
                        stop_id=update.stop_id,
                        arrival_time=update.arrival_time,
                        departure_time=update.departure_time,
                        destination=resolver.resolve(trip_update, update.stop_id, route_filter),
                        track=update.track,
                        status=trip_update.status,
                        direction=direction_of(update.stop_id, config.direction_suffixes),
                    )
                )

        return arrivals

    def close(self) -> None:
        """Release network resources. Static data is dropped with the engine."""
        self.feed_client.close()
        self.static_cache.close()
        logger.info("Closed arrival engine")

    def __enter__(self) -> "ArrivalEngine":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
