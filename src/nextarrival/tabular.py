"""Delimited-text parser shared by every static GTFS file."""

import csv
import io
import logging
from typing import Dict, Iterator, List

logger = logging.getLogger(__name__)

Record = Dict[str, str]


def iter_records(text: str, delimiter: str = ",") -> Iterator[Record]:
    """
    Yield one record per data row, keyed by header name.

    Quoted fields may contain the delimiter, newlines and doubled quotes.
    Blank lines are skipped, short rows are padded with empty strings and
    surplus values are dropped. Rows the reader cannot tokenise are logged
    and skipped without aborting the parse.

    Args:
        text: Raw file contents.
        delimiter: Field separator.

    Yields:
        Dict mapping header name to raw string value.
    """
    if text.startswith("\ufeff"):
        text = text[1:]

    reader = csv.reader(io.StringIO(text, newline=""), delimiter=delimiter)
    headers: List[str] = []

    while True:
        try:
            row = next(reader)
        except StopIteration:
            return
        except csv.Error as e:
            logger.warning(f"Skipping malformed row near line {reader.line_num}: {e}")
            continue

        if not row or all(not value.strip() for value in row):
            continue

        if not headers:
            headers = [name.strip() for name in row]
            continue

        if len(row) < len(headers):
            row = row + [""] * (len(headers) - len(row))
        yield dict(zip(headers, row))


def parse_records(text: str, delimiter: str = ",") -> List[Record]:
    """Parse delimited text into a list of header-keyed records."""
    return list(iter_records(text, delimiter))


def parse_file(path: str, delimiter: str = ",") -> List[Record]:
    """Parse a delimited file from disk."""
    with open(path, "r", encoding="utf-8-sig", newline="") as f:
        return parse_records(f.read(), delimiter)
