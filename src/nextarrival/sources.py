"""Where static GTFS files come from: a local folder, a web folder or a zip archive."""

import io
import logging
import os
import threading
import zipfile
from typing import Dict, Iterable, Optional

import requests

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 60


class GTFSSource:
    """Reads named GTFS text files."""

    def read_files(self, filenames: Iterable[str]) -> Dict[str, str]:
        """
        Read several GTFS files in one go.

        Args:
            filenames: File names inside the dataset (e.g. "stops.txt").

        Returns:
            Dictionary of filename -> decoded text.
        """
        raise NotImplementedError

    def read_file(self, filename: str) -> str:
        return self.read_files([filename])[filename]

    def close(self) -> None:
        """Release network resources held by the source."""


def _decode(data: bytes) -> str:
    return data.decode("utf-8-sig")


class DirectorySource(GTFSSource):
    """GTFS files unpacked into a local directory."""

    def __init__(self, path: str):
        self.path = path

    def read_files(self, filenames: Iterable[str]) -> Dict[str, str]:
        contents = {}
        for filename in filenames:
            file_path = os.path.join(self.path, filename)
            logger.debug(f"Reading {file_path}")
            with open(file_path, "rb") as f:
                contents[filename] = _decode(f.read())
        return contents

    def __repr__(self) -> str:
        return f"DirectorySource({self.path!r})"


class HttpDirectorySource(GTFSSource):
    """GTFS files served individually under a base URL."""

    def __init__(self, base_url: str, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self._owns_session = session is None
        self._session = session or requests.Session()

    def read_files(self, filenames: Iterable[str]) -> Dict[str, str]:
        contents = {}
        for filename in filenames:
            url = f"{self.base_url}/{filename}"
            logger.debug(f"Downloading {url}")
            response = self._session.get(url, timeout=REQUEST_TIMEOUT_SECONDS)
            response.raise_for_status()
            contents[filename] = _decode(response.content)
        return contents

    def close(self) -> None:
        if self._owns_session:
            self._session.close()

    def __repr__(self) -> str:
        return f"HttpDirectorySource({self.base_url!r})"


class ZipSource(GTFSSource):
    """
    A GTFS zip archive, local or remote.

    The archive is read once and its bytes are kept until close(), so the
    static load and the later stop_times.txt read share one download.
    """

    def __init__(self, location: str, session: Optional[requests.Session] = None):
        self.location = location
        self._owns_session = session is None
        self._session = session or requests.Session()
        self._archive: Optional[bytes] = None
        self._lock = threading.Lock()

    def _archive_bytes(self) -> bytes:
        with self._lock:
            if self._archive is None:
                self._archive = self._read_archive()
            return self._archive

    def _read_archive(self) -> bytes:
        if self.location.startswith(("http://", "https://")):
            logger.info(f"Downloading GTFS archive from {self.location}")
            response = self._session.get(self.location, timeout=REQUEST_TIMEOUT_SECONDS)
            response.raise_for_status()
            return response.content
        with open(self.location, "rb") as f:
            return f.read()

    def read_files(self, filenames: Iterable[str]) -> Dict[str, str]:
        with zipfile.ZipFile(io.BytesIO(self._archive_bytes())) as zip_file:
            return {filename: _decode(zip_file.read(filename)) for filename in filenames}

    def close(self) -> None:
        """Drop the archive bytes and close a session this source created."""
        with self._lock:
            self._archive = None
        if self._owns_session:
            self._session.close()

    def __repr__(self) -> str:
        return f"ZipSource({self.location!r})"


def source_for(location: str, session: Optional[requests.Session] = None) -> GTFSSource:
    """
    Pick a source implementation for a location string.

    Zip paths/URLs become ZipSource, other URLs HttpDirectorySource and
    anything else a DirectorySource.
    """
    if location.lower().endswith(".zip"):
        return ZipSource(location, session=session)
    if location.startswith(("http://", "https://")):
        return HttpDirectorySource(location, session=session)
    return DirectorySource(location)
