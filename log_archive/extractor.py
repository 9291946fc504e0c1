"""Entry extraction: split a raw log file into timestamped byte ranges.

An entry starts at every line that looks like ``I, [2025-11-05T10:00:00.123456``
and runs up to the next such line (or end of file), so multi-line bodies
such as stack traces stay attached to the entry that produced them.
"""

import logging
import re
from dataclasses import dataclass

from log_archive.timestamps import parse_timestamp

logger = logging.getLogger(__name__)

ENTRY_PATTERN = re.compile(
    rb"^[A-Z], \[(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{6})",
    re.MULTILINE,
)


class SourceUnreadable(OSError):
    """Raised when a listed source file cannot be opened or read."""


@dataclass(frozen=True)
class LogEntry:
    timestamp: int
    raw_timestamp: str
    content_start: int
    content_end: int
    source: str

    @property
    def length(self) -> int:
        return self.content_end - self.content_start

    @property
    def sort_key(self) -> tuple[int, str]:
        return self.timestamp, self.raw_timestamp


def extract_entries(data: bytes, source: str = "") -> list[LogEntry]:
    """Return gapless entries covering ``data`` from the first marker to EOF.

    Each entry's end is only known once the next marker is found; the last
    entry ends at ``len(data)``. Bytes before the first marker, and files
    with no marker at all, contribute nothing.
    """
    entries = []
    pending = None  # (timestamp, raw_timestamp, content_start)

    for match in ENTRY_PATTERN.finditer(data):
        start = match.start()
        if pending is not None:
            entries.append(LogEntry(*pending, content_end=start, source=source))
        raw = match.group(1).decode("ascii")
        pending = (parse_timestamp(raw), raw, start)

    if pending is not None:
        entries.append(LogEntry(*pending, content_end=len(data), source=source))
    else:
        logger.debug("No entry markers in %s, skipping", source or "<bytes>")

    return entries


def read_file(path: str) -> list[LogEntry]:
    """Read ``path`` in binary mode and extract its entries.

    Raises:
        SourceUnreadable: the file vanished or could not be read.
    """
    try:
        with open(path, "rb") as f:
            data = f.read()
    except OSError as e:
        raise SourceUnreadable(f"Cannot read source file {path}: {e}") from e
    return extract_entries(data, source=path)
