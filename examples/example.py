"""Example usage of ArrivalEngine."""

import logging
import sys
import time
from pathlib import Path

# Add src to path so we can import nextarrival
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from nextarrival import ArrivalEngine, FeedUnavailable, RailArrivals, StaticDataUnavailable

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


def _format_minutes(minutes_away: int) -> str:
    if minutes_away < 0:
        return f"left {abs(minutes_away)} min ago"
    if minutes_away == 0:
        return "Now"
    return f"{minutes_away} min"


def print_arrivals(engine: ArrivalEngine, mode: str, stop_id: str, route_id: str = None):
    """
    Fetch and display arrivals for a stop.

    Args:
        engine: Arrival engine.
        mode: "subway", "lirr" or "mnrr".
        stop_id: Stop ID (e.g., "127" or "127N" for the subway).
        route_id: Optional route to restrict to.
    """
    stop = engine.get_stop(mode, stop_id)
    print(f"\n{'='*70}")
    print(f"{mode.upper()} stop: {stop.name if stop else stop_id} ({stop_id})")
    print(f"Routes: {', '.join(engine.get_routes_for_stop(mode, stop_id)) or 'none'}")
    print(f"{'='*70}")

    board = engine.get_arrivals(mode, stop_id, route_id=route_id)
    now = time.time()

    if isinstance(board, RailArrivals):
        sections = board.by_destination.items()
    else:
        sections = [("Northbound", board.northbound), ("Southbound", board.southbound)]

    for label, arrivals in sections:
        print(f"\n{label}:")
        if not arrivals:
            print("  No arrivals found")
        for arrival in arrivals:
            track = f" (track {arrival.track})" if arrival.track else ""
            print(
                f"  {arrival.route_id:>3}: {_format_minutes(arrival.minutes_away(now)):>16}"
                f" → {arrival.destination}{track}"
            )

    if board.failed_routes:
        print(f"\nNo live data for: {', '.join(board.failed_routes)}")
    print(f"\nLast updated: {board.last_updated.strftime('%H:%M:%S')}\n")


def main(argv):
    if len(argv) < 3:
        print(f"Usage: {argv[0]} MODE STOP_ID [ROUTE_ID]")
        print(f"Example: {argv[0]} subway 127")
        sys.exit(2)

    mode, stop_id = argv[1], argv[2]
    route_id = argv[3] if len(argv) > 3 else None

    with ArrivalEngine() as engine:
        try:
            print_arrivals(engine, mode, stop_id, route_id)
        except StaticDataUnavailable as e:
            print(f"Error: {e}")
            sys.exit(1)
        except FeedUnavailable as e:
            print(f"No live data available: {e}")
            sys.exit(1)
        except ValueError as e:
            print(f"Error: {e}")
            sys.exit(2)


if __name__ == "__main__":
    main(sys.argv)
