"""Filtering, sorting, grouping and capping of resolved arrivals."""

import logging
from typing import Dict, Iterable, List, Tuple

from .direction import NORTHBOUND, SOUTHBOUND, group_key
from .models import Arrival

logger = logging.getLogger(__name__)

DISPLAY_LIMIT = 10
DEPARTED_GRACE_SECONDS = 60


def sort_by_arrival(arrivals: Iterable[Arrival]) -> List[Arrival]:
    """Sort by arrival time. Equal times keep their input order."""
    return sorted(arrivals, key=lambda a: a.arrival_time)


def assemble_subway(
    arrivals: Iterable[Arrival],
    now: float,
    limit: int = DISPLAY_LIMIT,
) -> Tuple[List[Arrival], List[Arrival]]:
    """
    Split subway arrivals into platform directions.

    Arrivals already in the past are dropped and each direction is capped
    at ``limit``.

    Returns:
        (northbound, southbound) lists sorted by arrival time.
    """
    buckets: Dict[str, List[Arrival]] = {NORTHBOUND: [], SOUTHBOUND: []}
    for arrival in sort_by_arrival(arrivals):
        if arrival.arrival_time < now:
            continue
        bucket = buckets.get(arrival.direction or "")
        if bucket is None:
            logger.debug(f"Arrival at {arrival.stop_id} has no platform direction; skipping")
            continue
        if len(bucket) < limit:
            bucket.append(arrival)
    return buckets[NORTHBOUND], buckets[SOUTHBOUND]


def assemble_rail(
    arrivals: Iterable[Arrival],
    now: float,
    include_departed: bool = False,
    limit: int = DISPLAY_LIMIT,
) -> Dict[str, List[Arrival]]:
    """
    Group commuter rail arrivals by destination.

    Unless ``include_departed`` is set, trains more than a minute in the
    past are dropped. Groups are capped at ``limit``, empty groups are
    omitted, and groups are ordered by their first arrival.
    """
    groups: Dict[str, List[Arrival]] = {}
    for arrival in sort_by_arrival(arrivals):
        if not include_departed and arrival.arrival_time < now - DEPARTED_GRACE_SECONDS:
            continue
        group = groups.setdefault(group_key(arrival), [])
        if len(group) < limit:
            group.append(arrival)
    return groups
