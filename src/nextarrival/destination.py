"""Destination inference for realtime trips."""

import logging
from typing import Mapping, Optional, Sequence

from .direction import direction_of
from .modes import UNKNOWN_DESTINATION, ModeConfig
from .models import Stop, StopTimeUpdate, Trip, TripUpdate, strip_direction_suffix

logger = logging.getLogger(__name__)


def last_stop_update(updates: Sequence[StopTimeUpdate]) -> Optional[StopTimeUpdate]:
    """
    The update for the trip's last announced stop.

    Highest stop_sequence wins; updates without a sequence rank by their
    position in the feed, so with no sequences at all the last entry wins.
    """
    if not updates:
        return None
    ranked = [
        (update.stop_sequence if update.stop_sequence is not None else -1, position, update)
        for position, update in enumerate(updates)
    ]
    return max(ranked, key=lambda item: (item[0], item[1]))[2]


class DestinationResolver:
    """
    Resolves a human-readable destination for a trip update.

    Sources are tried in order: static headsign, live headsign, the name of
    the last announced stop (mode terminal overrides first), the static
    route/direction table, and finally UNKNOWN_DESTINATION.
    """

    def __init__(self, config: ModeConfig, trips: Mapping[str, Trip], stops: Mapping[str, Stop]):
        self.config = config
        self.trips = trips
        self.stops = stops

    def resolve(self, trip_update: TripUpdate, matched_stop_id: str, route_id: Optional[str] = None) -> str:
        """
        Resolve the destination of a trip as seen from one stop.

        Args:
            trip_update: Decoded realtime trip update.
            matched_stop_id: Live stop ID the arrival was matched on.
            route_id: Route to use when the feed omits one.

        Returns:
            Destination name, never empty.
        """
        route_id = trip_update.route_id or route_id or ""

        destination = self._static_headsign(trip_update.trip_id)
        if destination:
            logger.debug(f"Trip {trip_update.trip_id}: static headsign {destination!r}")
            return destination

        if trip_update.headsign:
            logger.debug(f"Trip {trip_update.trip_id}: realtime headsign {trip_update.headsign!r}")
            return trip_update.headsign

        destination = self._last_stop_name(trip_update.stop_time_updates)
        if destination:
            logger.debug(f"Trip {trip_update.trip_id}: last stop {destination!r}")
            return destination

        destination = self._route_terminal(route_id, trip_update.direction_id, matched_stop_id)
        if destination:
            logger.debug(f"Trip {trip_update.trip_id}: route table {destination!r}")
            return destination

        logger.debug(f"Trip {trip_update.trip_id}: no destination for route {route_id}")
        return UNKNOWN_DESTINATION

    def _static_headsign(self, trip_id: str) -> Optional[str]:
        trip = self.trips.get(trip_id)
        return trip.headsign if trip else None

    def _last_stop_name(self, updates: Sequence[StopTimeUpdate]) -> Optional[str]:
        last = last_stop_update(updates)
        if last is None or not last.stop_id:
            return None

        override = self.config.terminal_overrides.get(last.stop_id)
        if override:
            return override

        stop = self.stops.get(last.stop_id)
        if stop is None and self.config.has_direction_suffixes:
            stop = self.stops.get(strip_direction_suffix(last.stop_id, self.config.direction_suffixes))
        if stop is None or not stop.name:
            return None
        return stop.name

    def _route_terminal(self, route_id: str, direction_id: Optional[int], matched_stop_id: str) -> Optional[str]:
        terminals = self.config.route_destinations.get(route_id)
        if not terminals:
            return None

        if self.config.has_direction_suffixes:
            label = direction_of(matched_stop_id, self.config.direction_suffixes)
        else:
            label = self.config.direction_labels.get(direction_id, self.config.default_direction)

        names = terminals.get(label) if label else None
        return names[0] if names else None
