"""Direction classification for arrivals."""

from typing import Optional, Sequence

from .models import Arrival

NORTHBOUND = "N"
SOUTHBOUND = "S"


def direction_of(stop_id: str, suffixes: Sequence[str]) -> Optional[str]:
    """
    Platform direction of a live stop ID, e.g. "127N" -> "N".

    Returns None when the ID carries none of the mode's suffixes.
    """
    upper = stop_id.upper()
    for suffix in suffixes:
        if upper.endswith(suffix) and len(stop_id) > len(suffix):
            return suffix
    return None


def group_key(arrival: Arrival) -> str:
    """Grouping key for modes without platform directions."""
    return arrival.destination
