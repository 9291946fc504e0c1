"""Stream the part of an archive that falls between two timestamps."""

import logging
import os
import sys

from log_archive.index import IndexShard, discover_indexes
from log_archive.streams import DEFAULT_CHUNK_SIZE, copy_range
from log_archive.timestamps import format_timestamp, to_epoch

logger = logging.getLogger(__name__)


class IndexNotFound(LookupError):
    """Raised when no index shard covers a queried timestamp."""


def find_shard(shards: list[IndexShard], second: int) -> IndexShard | None:
    return next((s for s in shards if s.contains(second)), None)


def find_position(shards: list[IndexShard], timestamp, offset: int = 0, archive_size: int | None = None) -> int:
    """Translate a timestamp (plus ``offset`` seconds) to an archive offset.

    The shard must cover ``timestamp`` itself. When ``timestamp + offset``
    runs past that shard's last slot, the next covering shard is used, or
    ``archive_size`` if there is none.

    Raises:
        IndexNotFound: no shard covers ``timestamp``.
    """
    second = to_epoch(timestamp)
    shard = find_shard(shards, second)
    if shard is None:
        raise IndexNotFound(f"Could not find index for {format_timestamp(second)} ({second})")

    target = second + offset
    if shard.contains(target):
        return shard.offset_at(target - shard.start)

    following = find_shard(shards, target)
    if following is not None:
        return following.offset_at(target - following.start)
    if archive_size is None:
        raise IndexNotFound(f"Could not find index for {format_timestamp(target)} ({target})")
    return archive_size


def view(archive_path: str, after, before, out=None, chunk_size: int = DEFAULT_CHUNK_SIZE) -> int:
    """Write the archive bytes logged from ``after`` through ``before`` to ``out``.

    Both bounds are inclusive to the second. Returns the number of bytes
    written.
    """
    out = out if out is not None else sys.stdout.buffer
    shards = discover_indexes(archive_path)
    archive_size = os.path.getsize(archive_path)

    start_position = find_position(shards, after)
    # +1 makes the before bound inclusive: stop where the next second begins
    end_position = find_position(shards, before, offset=1, archive_size=archive_size)

    length = end_position - start_position
    if length < 0:
        logger.warning("Range ends before it starts (%s > %s), nothing to stream", after, before)
        return 0

    logger.debug("Streaming %s bytes %d-%d", archive_path, start_position, end_position)
    with open(archive_path, "rb") as f:
        written = copy_range(f, out, start_position, length, chunk_size)
    out.flush()
    return written
