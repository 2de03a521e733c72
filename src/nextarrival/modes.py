"""Per-mode configuration: feeds, static data locations and lookup tables."""

import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .errors import UnknownModeError

SUBWAY = "subway"
LIRR = "lirr"
MNRR = "mnrr"

UNKNOWN_DESTINATION = "Unknown Destination"

DEFAULT_ROUTE_COLOR = "#808183"
DEFAULT_ROUTE_TEXT_COLOR = "#FFFFFF"

# Directory holding subway/, lirr/ and mnrr/ GTFS folders; overrides the zip URLs
GTFS_DIR_ENV = "NEXTARRIVAL_GTFS_DIR"

_FEED_BASE = "https://api-endpoint.mta.info/Dataservice/mtagtfsfeeds/"

# MTA GTFS-Realtime feed URLs (subway, by route family)
SUBWAY_FEEDS = {
    "ACE": _FEED_BASE + "nyct%2Fgtfs-ace",
    "123456S": _FEED_BASE + "nyct%2Fgtfs",
    "NQRW": _FEED_BASE + "nyct%2Fgtfs-nqrw",
    "BDFM": _FEED_BASE + "nyct%2Fgtfs-bdfm",
    "L": _FEED_BASE + "nyct%2Fgtfs-l",
    "JZ": _FEED_BASE + "nyct%2Fgtfs-jz",
    "G": _FEED_BASE + "nyct%2Fgtfs-g",
    "SIR": _FEED_BASE + "nyct%2Fgtfs-si",
}

_SUBWAY_ROUTE_FAMILIES = {
    "ACE": ["A", "C", "E", "H", "FS"],
    "123456S": ["1", "2", "3", "4", "5", "5X", "6", "6X", "7", "7X", "GS", "S"],
    "NQRW": ["N", "Q", "R", "W"],
    "BDFM": ["B", "D", "F", "FX", "M"],
    "L": ["L"],
    "JZ": ["J", "Z"],
    "G": ["G"],
    "SIR": ["SI", "SIR"],
}

# (route, "N"/"S") -> typical terminal, used when nothing better is known
SUBWAY_ROUTE_DESTINATIONS = {
    "1": {"N": "Van Cortlandt Park-242 St", "S": "South Ferry"},
    "2": {"N": "Wakefield-241 St", "S": "Flatbush Av"},
    "3": {"N": "148 St", "S": "New Lots Av"},
    "4": {"N": "Woodlawn", "S": "Crown Hts-Utica Av"},
    "5": {"N": "Eastchester-Dyre Av", "S": "Flatbush Av"},
    "6": {"N": "Pelham Bay Park", "S": "Brooklyn Bridge"},
    "7": {"N": "Flushing-Main St", "S": "34 St-Hudson Yards"},
    "A": {"N": "Inwood-207 St", "S": "Far Rockaway"},
    "C": {"N": "168 St", "S": "Euclid Av"},
    "E": {"N": "Jamaica Center", "S": "World Trade Center"},
    "B": {"N": "Bedford Park Blvd", "S": "Brighton Beach"},
    "D": {"N": "Norwood-205 St", "S": "Coney Island"},
    "F": {"N": "Jamaica-179 St", "S": "Coney Island"},
    "M": {"N": "Forest Hills-71 Av", "S": "Middle Village"},
    "G": {"N": "Court Sq", "S": "Church Av"},
    "L": {"N": "8 Av", "S": "Canarsie-Rockaway Pkwy"},
    "J": {"N": "Jamaica Center", "S": "Broad St"},
    "Z": {"N": "Jamaica Center", "S": "Broad St"},
    "N": {"N": "Astoria-Ditmars Blvd", "S": "Coney Island"},
    "Q": {"N": "96 St", "S": "Coney Island"},
    "R": {"N": "Forest Hills-71 Av", "S": "Bay Ridge-95 St"},
    "W": {"N": "Astoria-Ditmars Blvd", "S": "Whitehall St"},
    "S": {"N": "Times Sq-42 St", "S": "Grand Central-42 St"},
}

MNRR_ROUTE_TERMINALS = {
    "1": {"inbound": ["Grand Central"], "outbound": ["Poughkeepsie", "Croton-Harmon"]},
    "2": {"inbound": ["Grand Central"], "outbound": ["Wassaic", "Dover Plains", "Southeast"]},
    "3": {"inbound": ["Grand Central"], "outbound": ["New Haven", "Stamford", "South Norwalk"]},
    "4": {"inbound": ["Grand Central"], "outbound": ["New Canaan"]},
    "5": {"inbound": ["Grand Central"], "outbound": ["Danbury"]},
    "6": {"inbound": ["Grand Central"], "outbound": ["Waterbury"]},
}

LIRR_ROUTE_TERMINALS = {
    "1": {"westbound": ["Penn Station"], "eastbound": ["Ronkonkoma"]},
    "2": {"westbound": ["Penn Station"], "eastbound": ["Babylon"]},
    "3": {"westbound": ["Penn Station"], "eastbound": ["Long Beach"]},
    "4": {"westbound": ["Penn Station"], "eastbound": ["Far Rockaway", "Long Beach"]},
    "5": {"westbound": ["Penn Station"], "eastbound": ["Hempstead"]},
    "7": {"westbound": ["Penn Station"], "eastbound": ["Oyster Bay"]},
    "8": {"westbound": ["Flatbush Avenue"], "eastbound": ["Jamaica"]},
    "9": {"westbound": ["Penn Station"], "eastbound": ["Port Washington"]},
    "10": {"westbound": ["Penn Station"], "eastbound": ["Huntington", "Port Jefferson"]},
    "11": {"westbound": ["Penn Station"], "eastbound": ["Montauk", "Speonk"]},
    "12": {"westbound": ["Penn Station"], "eastbound": ["West Hempstead"]},
}

MNRR_ACRONYMS = {
    "1": "HD",  # Hudson
    "2": "HR",  # Harlem
    "3": "NH",  # New Haven
    "4": "NC",  # New Canaan
    "5": "DB",  # Danbury
    "6": "WB",  # Waterbury
}

LIRR_ACRONYMS = {
    "1": "BB",  # Babylon Branch
    "2": "HP",  # Hempstead Branch
    "3": "OB",  # Oyster Bay Branch
    "4": "RK",  # Ronkonkoma Branch
    "5": "MK",  # Montauk Branch
    "6": "LB",  # Long Beach Branch
    "7": "FR",  # Far Rockaway Branch
    "8": "WH",  # West Hempstead Branch
    "9": "PW",  # Port Washington Branch
    "10": "PJ",  # Port Jefferson Branch
    "11": "BP",  # Belmont Park
    "12": "CT",  # City Terminal Zone
    "13": "GP",  # Greenport Service
}


@dataclass(frozen=True)
class ModeConfig:
    """
    Everything that distinguishes one transit mode from another.

    Attributes:
        key: Mode identifier and static cache key.
        name: Display name.
        static_url: GTFS zip archive for the mode.
        feed_urls: Realtime feed URL per route ID. The "*" key applies to
            every route.
        direction_suffixes: Platform suffixes carried by stop IDs, in bucket
            order. Empty for modes without the convention.
        terminal_overrides: Last-stop ID -> destination name.
        route_destinations: Route ID -> direction label -> terminal names.
        direction_labels: Trip direction_id -> direction label for
            route_destinations. Unused when direction_suffixes is set.
        default_direction: Label used when a trip carries no direction_id.
        acronyms: Route ID -> display acronym.
    """
    key: str
    name: str
    static_url: str
    feed_urls: Dict[str, str]
    direction_suffixes: Tuple[str, ...] = ()
    terminal_overrides: Dict[str, str] = field(default_factory=dict)
    route_destinations: Dict[str, Dict[str, List[str]]] = field(default_factory=dict)
    direction_labels: Dict[int, str] = field(default_factory=dict)
    default_direction: Optional[str] = None
    acronyms: Dict[str, str] = field(default_factory=dict)

    @property
    def has_direction_suffixes(self) -> bool:
        return bool(self.direction_suffixes)

    def feed_url_for_route(self, route_id: str) -> Optional[str]:
        return self.feed_urls.get(route_id) or self.feed_urls.get("*")

    def all_feed_urls(self) -> List[str]:
        return list(dict.fromkeys(self.feed_urls.values()))


def _subway_feed_urls() -> Dict[str, str]:
    urls = {}
    for family, routes in _SUBWAY_ROUTE_FAMILIES.items():
        for route_id in routes:
            urls[route_id] = SUBWAY_FEEDS[family]
    return urls


SUBWAY_CONFIG = ModeConfig(
    key=SUBWAY,
    name="NYC Subway",
    static_url="https://rrgtfsfeeds.s3.amazonaws.com/gtfs_subway.zip",
    feed_urls=_subway_feed_urls(),
    direction_suffixes=("N", "S"),
    route_destinations={
        route_id: {label: [name] for label, name in by_suffix.items()}
        for route_id, by_suffix in SUBWAY_ROUTE_DESTINATIONS.items()
    },
)

LIRR_CONFIG = ModeConfig(
    key=LIRR,
    name="Long Island Rail Road",
    static_url="https://rrgtfsfeeds.s3.amazonaws.com/gtfslirr.zip",
    feed_urls={"*": _FEED_BASE + "lirr%2Fgtfs-lirr"},
    terminal_overrides={"8": "Penn Station", "138": "Atlantic Terminal"},
    route_destinations=LIRR_ROUTE_TERMINALS,
    direction_labels={0: "eastbound", 1: "westbound"},
    default_direction="eastbound",
    acronyms=LIRR_ACRONYMS,
)

MNRR_CONFIG = ModeConfig(
    key=MNRR,
    name="Metro-North Railroad",
    static_url="https://rrgtfsfeeds.s3.amazonaws.com/gtfsmnr.zip",
    feed_urls={"*": _FEED_BASE + "mnr%2Fgtfs-mnr"},
    terminal_overrides={"1": "Grand Central"},
    route_destinations=MNRR_ROUTE_TERMINALS,
    direction_labels={0: "outbound", 1: "inbound"},
    default_direction="outbound",
    acronyms=MNRR_ACRONYMS,
)

DEFAULT_MODES: Dict[str, ModeConfig] = {
    SUBWAY: SUBWAY_CONFIG,
    LIRR: LIRR_CONFIG,
    MNRR: MNRR_CONFIG,
}


def get_mode(modes: Dict[str, ModeConfig], key: str) -> ModeConfig:
    """Look up a mode configuration by key."""
    try:
        return modes[key]
    except KeyError:
        raise UnknownModeError(f"Unknown mode '{key}'") from None


def gtfs_dir_from_env() -> Optional[str]:
    """Return the local GTFS directory configured in the environment, if any."""
    value = os.environ.get(GTFS_DIR_ENV, "").strip()
    return value or None
