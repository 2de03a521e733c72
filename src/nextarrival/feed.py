"""MTA GTFS-Realtime feed fetcher and trip-update decoder."""

import logging
import os
import threading
import time
from typing import Any, Dict, List, Mapping, Optional, Tuple

import requests
from google.protobuf.message import DecodeError, Message
from google.transit import gtfs_realtime_pb2

from .errors import FeedDecodeError, FeedFetchError
from .models import StopTimeUpdate, TripUpdate

logger = logging.getLogger(__name__)

API_KEY_ENV = "MTA_API_KEY"
FEED_TIMEOUT_SECONDS = 10

_SCHEDULED = gtfs_realtime_pb2.TripDescriptor.SCHEDULED


def epoch_seconds(value: Any) -> int:
    """
    Convert a feed time value to whole epoch seconds.

    Accepts plain numbers, numeric strings and 64-bit values wrapped as
    low/high 32-bit halves (as attributes or dict keys) or exposing
    toNumber(). Missing or unreadable values give 0.
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(float(value))
        except ValueError:
            return 0

    to_number = getattr(value, "toNumber", None)
    if callable(to_number):
        return int(to_number())

    if isinstance(value, Mapping):
        low, high = value.get("low"), value.get("high")
    else:
        low, high = getattr(value, "low", None), getattr(value, "high", None)
    if low is None:
        return 0
    return (int(high or 0) << 32) | (int(low) & 0xFFFFFFFF)


def _has_field(message: Message, name: str) -> bool:
    # Older bindings lack some experimental fields entirely
    return name in message.DESCRIPTOR.fields_by_name and message.HasField(name)


def _trip_status(entity: gtfs_realtime_pb2.FeedEntity) -> Optional[str]:
    trip = entity.trip_update.trip
    if _has_field(trip, "schedule_relationship") and trip.schedule_relationship != _SCHEDULED:
        return gtfs_realtime_pb2.TripDescriptor.ScheduleRelationship.Name(trip.schedule_relationship)
    if _has_field(entity, "vehicle") and _has_field(entity.vehicle, "current_status"):
        return gtfs_realtime_pb2.VehiclePosition.VehicleStopStatus.Name(entity.vehicle.current_status)
    return None


def _stop_time_update(stop_time_update) -> Optional[StopTimeUpdate]:
    arrival = epoch_seconds(stop_time_update.arrival.time) if _has_field(stop_time_update, "arrival") else 0
    departure = epoch_seconds(stop_time_update.departure.time) if _has_field(stop_time_update, "departure") else 0

    # An entry needs at least one usable time to become an arrival
    arrival_time = arrival or departure
    if not arrival_time:
        return None

    # The railroads publish track labels in an MTA extension; assigned_stop_id
    # is the closest field the standard bindings expose.
    track = None
    if _has_field(stop_time_update, "stop_time_properties"):
        track = getattr(stop_time_update.stop_time_properties, "assigned_stop_id", "") or None

    return StopTimeUpdate(
        stop_id=stop_time_update.stop_id,
        arrival_time=arrival_time,
        departure_time=departure or arrival_time,
        stop_sequence=stop_time_update.stop_sequence if _has_field(stop_time_update, "stop_sequence") else None,
        track=track,
    )


def decode_trip_updates(payload: bytes, url: str = "<payload>") -> List[TripUpdate]:
    """
    Decode a GTFS-Realtime payload into trip updates.

    Args:
        payload: Raw protobuf bytes.
        url: Feed URL, for error reporting.

    Returns:
        TripUpdate records in feed order. Stop-time updates without a usable
        arrival or departure time are dropped.

    Raises:
        FeedDecodeError: If the payload is not a FeedMessage.
    """
    feed = gtfs_realtime_pb2.FeedMessage()
    try:
        feed.ParseFromString(payload)
    except DecodeError as e:
        logger.error(f"Failed to decode feed {url}: {e}")
        raise FeedDecodeError(url, str(e)) from e

    trip_updates: List[TripUpdate] = []
    for entity in feed.entity:
        if not entity.HasField("trip_update"):
            continue

        trip_update = entity.trip_update
        trip = trip_update.trip

        headsign = None
        if _has_field(trip_update, "trip_properties"):
            headsign = getattr(trip_update.trip_properties, "trip_headsign", "") or None

        updates = []
        for stop_time_update in trip_update.stop_time_update:
            update = _stop_time_update(stop_time_update)
            if update is not None:
                updates.append(update)

        trip_updates.append(
            TripUpdate(
                route_id=trip.route_id,
                trip_id=trip.trip_id,
                direction_id=trip.direction_id if trip.HasField("direction_id") else None,
                headsign=headsign,
                status=_trip_status(entity),
                stop_time_updates=updates,
            )
        )

    logger.debug(f"Decoded {len(trip_updates)} trip updates from {len(feed.entity)} entities")
    return trip_updates


class FeedClient:
    """Fetches and decodes MTA GTFS-Realtime feeds."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: float = FEED_TIMEOUT_SECONDS,
        cache_ttl: float = 30,
        max_cache_size: int = 10,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the client.

        Args:
            api_key: Sent as the x-api-key header. Defaults to MTA_API_KEY from the environment.
            timeout: Request timeout in seconds.
            cache_ttl: Seconds a fetched payload is reused. 0 disables caching.
            max_cache_size: Maximum number of cached payloads.
            session: requests session to use.
        """
        self.api_key = api_key if api_key is not None else os.environ.get(API_KEY_ENV)
        self.timeout = timeout
        self._cache: Dict[str, Tuple[bytes, float]] = {}  # feed_url -> (data, timestamp)
        self._cache_ttl = cache_ttl
        self._max_cache_size = max_cache_size
        self._lock = threading.Lock()
        self._session = session or requests.Session()

    def get_trip_updates(self, feed_url: str) -> List[TripUpdate]:
        """
        Fetch and decode a feed.

        Raises:
            FeedFetchError: On network failure or a non-success response.
            FeedDecodeError: On a malformed payload.
        """
        return decode_trip_updates(self.fetch(feed_url), feed_url)

    def fetch(self, feed_url: str) -> bytes:
        """
        Fetch a feed, reusing a recent payload when available.

        Args:
            feed_url: Full URL to the feed.

        Returns:
            Raw protobuf bytes.
        """
        now = time.time()
        with self._lock:
            if feed_url in self._cache:
                data, timestamp = self._cache[feed_url]
                if now - timestamp < self._cache_ttl:
                    logger.debug(f"Using cached data for {feed_url}")
                    return data

        logger.debug(f"Fetching {feed_url}")
        headers = {"x-api-key": self.api_key} if self.api_key else None
        try:
            response = self._session.get(feed_url, headers=headers, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Failed to fetch {feed_url}: {e}")
            raise FeedFetchError(feed_url, str(e)) from e

        data = response.content
        if self._cache_ttl > 0:
            with self._lock:
                self._evict_expired_cache(now)
                # Enforce max cache size
                if len(self._cache) >= self._max_cache_size:
                    oldest_key = min(self._cache.keys(), key=lambda k: self._cache[k][1])
                    del self._cache[oldest_key]
                self._cache[feed_url] = (data, now)
        return data

    def _evict_expired_cache(self, current_time: float) -> None:
        expired_keys = [
            url for url, (_, timestamp) in self._cache.items()
            if current_time - timestamp >= self._cache_ttl
        ]
        for key in expired_keys:
            del self._cache[key]

        if expired_keys:
            logger.debug(f"Evicted {len(expired_keys)} expired cache entries")

    def clear_cache(self) -> None:
        """Manually clear the cache."""
        with self._lock:
            self._cache.clear()

    def close(self) -> None:
        self.clear_cache()
        self._session.close()
