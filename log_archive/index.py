"""Per-second offset index for a sorted archive.

Slot ``i`` of an index shard holds the archive offset of the first entry
logged in epoch second ``start + i``. Seconds with no entry hold the offset
of the next entry written (forward-fill), so every slot is a valid boundary
and the table never decreases.

Shards are stored next to the archive as ``<archive>.index-<start>-<end>.dat``,
a flat run of big-endian unsigned 64-bit integers.
"""

import glob
import logging
import os
import re
import struct
from dataclasses import dataclass

from log_archive.timestamps import format_timestamp, to_epoch

logger = logging.getLogger(__name__)

SLOT = struct.Struct(">Q")
INDEX_NAME_PATTERN = re.compile(r"\.index-(\d+)-(\d+)\.dat$")


class NonMonotonicTimestamp(ValueError):
    """Raised when an entry is older than the first entry of the index."""


def index_filename(base_filename: str, start: int, end: int) -> str:
    return f"{base_filename}.index-{start}-{end}.dat"


class IndexBuilder:
    """Builds the offset table while entries are written in timestamp order."""

    def __init__(self, timestamp):
        self.start = to_epoch(timestamp)
        self.current = 0
        self.end = None
        self.map: list[int] = []

    def advance(self, timestamp, position: int) -> None:
        """Record that an entry stamped ``timestamp`` starts at ``position``."""
        second = to_epoch(timestamp)
        ts = second - self.start
        if ts < 0:
            raise NonMonotonicTimestamp(
                f"Entry at {format_timestamp(second)} precedes index start "
                f"{format_timestamp(self.start)}"
            )
        self.end = second

        # Fill every second up to this one with the offset this entry starts at
        if ts > self.current:
            self.map.extend([position] * (ts - self.current))
            self.current = ts

        # Only the very first entry reaches here with its slot still missing
        if len(self.map) <= ts:
            self.map.append(position)

    def dump(self, base_filename: str) -> str:
        """Write the table to its shard file and return the path."""
        path = index_filename(base_filename, self.start, self.end)
        if os.path.exists(path):
            os.remove(path)
        with open(path, "wb") as out:
            for offset in self.map:
                out.write(SLOT.pack(offset))
        logger.info("Wrote index %s (%d seconds)", path, len(self.map))
        return path


@dataclass(frozen=True)
class IndexShard:
    path: str
    start: int
    end: int

    @property
    def count(self) -> int:
        return self.end - self.start + 1

    def contains(self, second: int) -> bool:
        return self.start <= second <= self.end

    def offset_at(self, slot: int) -> int:
        """Read a single slot without loading the shard."""
        if not 0 <= slot < self.count:
            raise IndexError(f"Slot {slot} outside shard {self.path} ({self.count} slots)")
        with open(self.path, "rb") as f:
            f.seek(slot * SLOT.size)
            data = f.read(SLOT.size)
        if len(data) != SLOT.size:
            raise IndexError(f"Shard {self.path} is truncated at slot {slot}")
        return SLOT.unpack(data)[0]

    def load(self) -> list[int]:
        with open(self.path, "rb") as f:
            data = f.read()
        return [value for (value,) in SLOT.iter_unpack(data[: len(data) - len(data) % SLOT.size])]


def parse_index_name(path: str) -> tuple[int, int] | None:
    """Return (start, end) encoded in a shard file name, or None."""
    match = INDEX_NAME_PATTERN.search(path)
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def discover_indexes(archive_path: str) -> list[IndexShard]:
    """List the index shards of ``archive_path``, ordered by start second."""
    shards = []
    for path in glob.glob(glob.escape(archive_path) + ".index-*.dat"):
        bounds = parse_index_name(path)
        if bounds is None:
            logger.debug("Ignoring unrecognised index file %s", path)
            continue
        shards.append(IndexShard(path, *bounds))
    shards.sort(key=lambda s: (s.start, s.end))
    return shards


def remove_indexes(archive_path: str) -> list[str]:
    """Delete every index shard of ``archive_path``. Returns removed paths."""
    removed = []
    for shard in discover_indexes(archive_path):
        os.remove(shard.path)
        removed.append(shard.path)
    return removed
