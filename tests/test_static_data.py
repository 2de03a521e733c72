"""Tests for the static dataset cache and record builders."""

import io
import os
import threading
import time
import unittest
import zipfile
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock, patch

import requests

from gtfs_fixtures import DATASETS, DictSource, fixture_sources

from nextarrival.engine import ArrivalEngine
from nextarrival.errors import StaticDataUnavailable, UnknownModeError
from nextarrival.sources import DirectorySource, HttpDirectorySource, ZipSource, source_for
from nextarrival.static_data import StaticDatasetCache, build_routes, build_stops, build_trips
from nextarrival.tabular import parse_records


class TestBuilders(unittest.TestCase):
    """Test conversion of records into typed objects."""

    def test_build_stops(self):
        """Test parsing of stops.txt data."""
        stops = build_stops(parse_records(DATASETS["subway"]["stops.txt"]))

        self.assertIn("127", stops)
        self.assertIn("127N", stops)

        platform = stops["127N"]
        self.assertEqual(platform.name, "Times Sq-42 St")
        self.assertEqual(platform.parent_station, "127")
        self.assertAlmostEqual(platform.latitude, 40.755, places=2)
        self.assertTrue(platform.is_platform)

        station = stops["127"]
        self.assertIsNone(station.parent_station)
        self.assertFalse(station.is_platform)

    def test_build_stops_skips_bad_rows(self):
        """Test that rows without an ID or with broken coordinates are skipped."""
        csv_data = "stop_id,stop_name,stop_lat,stop_lon\n,Nowhere,1,1\n2,Broken,north,1\n3,Fine,,\n"
        stops = build_stops(parse_records(csv_data))
        self.assertEqual(list(stops), ["3"])
        self.assertEqual(stops["3"].latitude, 0.0)

    def test_build_routes_colors(self):
        """Test that colors get a '#' prefix and defaults when missing."""
        routes = build_routes(parse_records(DATASETS["lirr"]["routes.txt"]), {"1": "BB"})

        self.assertEqual(routes["1"].color, "#00985F")
        self.assertEqual(routes["1"].text_color, "#FFFFFF")
        self.assertEqual(routes["1"].acronym, "BB")
        self.assertEqual(routes["9"].color, "#808183")
        self.assertEqual(routes["9"].text_color, "#FFFFFF")
        self.assertIsNone(routes["9"].acronym)
        self.assertEqual(routes["9"].display_name, "Port Washington Branch")

    def test_build_routes_quoted_description(self):
        """Test that a quoted description containing commas does not shift columns."""
        routes = build_routes(parse_records(DATASETS["subway"]["routes.txt"]))
        self.assertEqual(routes["1"].color, "#EE352E")
        self.assertEqual(routes["1"].text_color, "#FFFFFF")
        self.assertEqual(routes["1"].display_name, "1")

    def test_build_trips(self):
        """Test that empty headsigns become None and direction is an int."""
        trips = build_trips(parse_records(DATASETS["subway"]["trips.txt"]))

        self.assertIsNone(trips["t1"].headsign)
        self.assertEqual(trips["t1"].direction_id, 0)
        self.assertEqual(trips["t2"].headsign, "South Ferry")
        self.assertEqual(trips["t2"].route_id, "1")


class TestStaticDatasetCache(unittest.TestCase):
    """Test lazy, load-once caching of static data."""

    def setUp(self):
        self.sources = fixture_sources()
        self.cache = StaticDatasetCache(sources=self.sources)

    def test_get_loads_typed_collections(self):
        """Test that stops, routes and trips are available after get()."""
        dataset = self.cache.get("subway")

        self.assertEqual(dataset.mode, "subway")
        self.assertEqual(dataset.stops["104N"].name, "231 St")
        self.assertEqual(dataset.routes["A"].color, "#0039A6")
        self.assertEqual(dataset.trips["t3"].headsign, "Flatbush Av")
        self.assertTrue(self.cache.is_loaded("subway"))

    def test_get_is_memoized(self):
        """Test that repeated calls return the same object without re-reading."""
        first = self.cache.get("lirr")
        second = self.cache.get("lirr")

        self.assertIs(first, second)
        self.assertEqual(len(self.sources["lirr"].reads), 1)
        self.assertEqual(self.sources["lirr"].reads[0], ["stops.txt", "routes.txt", "trips.txt"])

    def test_modes_are_independent(self):
        """Test that loading one mode does not load another."""
        self.cache.get("mnrr")
        self.assertFalse(self.cache.is_loaded("lirr"))
        self.assertEqual(self.sources["lirr"].reads, [])

    def test_rail_acronyms_attached(self):
        """Test that rail routes get acronyms from the mode's table."""
        routes = self.cache.get("mnrr").routes
        self.assertEqual(routes["1"].acronym, "HD")
        self.assertEqual(routes["2"].acronym, "HR")

    def test_concurrent_first_access_loads_once(self):
        """Test that racing callers share one in-flight load."""
        gate = threading.Event()
        source = DictSource(DATASETS["subway"], gate=gate)
        cache = StaticDatasetCache(sources={"subway": source})

        with ThreadPoolExecutor(max_workers=8) as executor:
            futures = [executor.submit(cache.get, "subway") for _ in range(8)]
            time.sleep(0.1)
            gate.set()
            results = [f.result(timeout=5) for f in futures]

        self.assertEqual(len(source.reads), 1)
        for result in results:
            self.assertIs(result, results[0])

    def test_failed_load_is_retried(self):
        """Test that a failure surfaces and leaves the cache empty for a retry."""
        source = self.sources["subway"]
        source.fail_with = FileNotFoundError("stops.txt")

        with self.assertRaises(StaticDataUnavailable) as ctx:
            self.cache.get("subway")
        self.assertEqual(ctx.exception.mode, "subway")
        self.assertFalse(self.cache.is_loaded("subway"))

        source.fail_with = None
        dataset = self.cache.get("subway")
        self.assertIn("127", dataset.stops)
        self.assertEqual(len(source.reads), 2)

    def test_unknown_mode(self):
        """Test error handling for a mode without configuration."""
        with self.assertRaises(UnknownModeError):
            self.cache.get("ferry")

    def test_search_stops(self):
        """Test finding platform stops by partial name."""
        results = self.cache.search_stops("subway", "times")
        self.assertEqual(sorted(s.stop_id for s in results), ["127N", "127S"])

    def test_station_helpers(self):
        """Test parent station and platform lookups."""
        parents = self.cache.parent_stations("subway")
        self.assertIn("142", [s.stop_id for s in parents])

        platforms = self.cache.platforms_for_station("subway", "142")
        self.assertEqual(sorted(s.stop_id for s in platforms), ["142N", "142S"])

        self.assertIsNone(self.cache.get_stop("subway", "999"))

    def test_directory_source_from_gtfs_dir(self):
        """Test that a GTFS directory maps each mode to a sub-folder."""
        with TemporaryGTFSDir() as gtfs_dir:
            cache = StaticDatasetCache(gtfs_dir=gtfs_dir)
            source = cache.source_for("lirr")
            self.assertIsInstance(source, DirectorySource)
            self.assertEqual(source.path, os.path.join(gtfs_dir, "lirr"))
            self.assertEqual(cache.get("lirr").stops["8"].name, "Penn Station")

    def test_default_source_is_zip_url(self):
        """Test that without a directory the MTA archive is used."""
        with patch.dict(os.environ, {"NEXTARRIVAL_GTFS_DIR": ""}):
            source = StaticDatasetCache().source_for("subway")
        self.assertIsInstance(source, ZipSource)
        self.assertTrue(source.location.endswith("gtfs_subway.zip"))


def _zip_archive(files):
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zip_file:
        for name, content in files.items():
            zip_file.writestr(name, content)
    return buffer.getvalue()


class TestZipSource(unittest.TestCase):
    """Test reading a remote GTFS archive."""

    def setUp(self):
        self.session = MagicMock()
        self.session.get.return_value.content = _zip_archive(DATASETS["subway"])
        self.source = ZipSource("https://example.com/gtfs_subway.zip", session=self.session)

    def test_archive_downloaded_once_for_data_and_index(self):
        """Test that loading static data and building the route index share one download."""
        cache = StaticDatasetCache(sources={"subway": self.source})
        engine = ArrivalEngine(static_cache=cache, feed_client=MagicMock())

        stops = engine.get_stops_for_route("subway", "1")

        self.assertEqual([s.stop_id for s in stops], ["101N", "103N", "104N", "127N", "142N"])
        self.assertEqual(self.session.get.call_count, 1)

    def test_close_drops_archive(self):
        """Test that close() forgets the archive but leaves a shared session open."""
        self.source.read_file("stops.txt")
        self.source.close()
        self.source.read_file("routes.txt")

        self.assertEqual(self.session.get.call_count, 2)
        self.session.close.assert_not_called()

    def test_failed_download_is_retried(self):
        self.session.get.return_value.raise_for_status.side_effect = [requests.HTTPError("500"), None]

        with self.assertRaises(requests.HTTPError):
            self.source.read_file("stops.txt")
        self.assertIn("127", self.source.read_file("stops.txt"))
        self.assertEqual(self.session.get.call_count, 2)


class TestCacheClose(unittest.TestCase):
    """Test releasing the sessions of sources the cache created."""

    @patch("nextarrival.sources.requests.Session")
    def test_close_closes_created_sources(self, mock_session_class):
        with patch.dict(os.environ, {"NEXTARRIVAL_GTFS_DIR": ""}):
            cache = StaticDatasetCache()
        cache.source_for("subway")
        cache.source_for("lirr")

        cache.close()

        self.assertEqual(mock_session_class.return_value.close.call_count, 2)

    def test_close_leaves_given_sources_alone(self):
        source = MagicMock()
        cache = StaticDatasetCache(sources={"subway": source})
        cache.close()
        source.close.assert_not_called()


class TestSourceFor(unittest.TestCase):
    """Test picking a source from a location string."""

    def test_source_kinds(self):
        self.assertIsInstance(source_for("https://example.com/gtfs.zip"), ZipSource)
        self.assertIsInstance(source_for("/data/gtfs.zip"), ZipSource)
        self.assertIsInstance(source_for("https://example.com/gtfs/"), HttpDirectorySource)
        self.assertIsInstance(source_for("/data/gtfs"), DirectorySource)


class TemporaryGTFSDir:
    """Write the fixture datasets to a temporary directory tree."""

    def __enter__(self) -> str:
        import tempfile

        self._tmp = tempfile.TemporaryDirectory()
        for mode, files in DATASETS.items():
            mode_dir = os.path.join(self._tmp.name, mode)
            os.makedirs(mode_dir)
            for name, content in files.items():
                with open(os.path.join(mode_dir, name), "w", encoding="utf-8") as f:
                    f.write(content)
        return self._tmp.name

    def __exit__(self, *exc_info):
        self._tmp.cleanup()


if __name__ == "__main__":
    unittest.main()
