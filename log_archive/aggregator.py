"""Combine rotated log files into one timestamp-sorted archive with an index."""

import glob
import logging
import os
from concurrent.futures import ThreadPoolExecutor
from contextlib import ExitStack
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from log_archive.extractor import LogEntry, SourceUnreadable, read_file
from log_archive.index import IndexBuilder, remove_indexes
from log_archive.progress import ProgressTracker
from log_archive.streams import DEFAULT_CHUNK_SIZE, copy_range

logger = logging.getLogger(__name__)

DATESTAMP_PLACEHOLDER = "{datestamp}"


class Scope(str, Enum):
    ALL = "all"
    CURRENT = "current"
    PAST = "past"


@dataclass(frozen=True)
class WriteResult:
    wrote: bool
    path: str
    index_path: str | None = None


def current_period(datestamp_format: str = "%Y%m%d", time_func=None) -> str:
    """Format the clock's current date as the period stamp used in file names."""
    now_func = time_func or (lambda: datetime.now(timezone.utc))
    return now_func().strftime(datestamp_format)


def filter_by_scope(files: list[str], scope: Scope, period: str) -> list[str]:
    """Keep files belonging to the current period, the past, or all of them."""
    scope = Scope(scope)
    if scope is Scope.CURRENT:
        return [f for f in files if period in os.path.basename(f)]
    if scope is Scope.PAST:
        return [f for f in files if period not in os.path.basename(f)]
    return list(files)


def _open_source(path: str):
    try:
        return open(path, "rb")
    except OSError as e:
        raise SourceUnreadable(f"Cannot reopen source file {path}: {e}") from e


class LogAggregator:
    def __init__(
        self,
        pattern: str,
        output_template: str,
        scope: Scope = Scope.ALL,
        period: str | None = None,
        tracker: ProgressTracker | None = None,
        workers: int = 1,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        datestamp_format: str = "%Y%m%d",
        time_func=None,
    ):
        self.pattern = pattern
        self.output_template = str(output_template)
        self.scope = Scope(scope)
        self.period = period or current_period(datestamp_format, time_func)
        self.tracker = tracker or ProgressTracker()
        self.workers = workers
        self.chunk_size = chunk_size

    @property
    def output_path(self) -> str:
        return self.output_template.replace(DATESTAMP_PLACEHOLDER, self.period)

    def list_files(self) -> list[str]:
        """Expand the glob pattern to regular files, filtered by scope."""
        output = os.path.abspath(self.output_path)
        files = [
            f for f in sorted(glob.glob(self.pattern))
            if os.path.isfile(f) and not self._is_own_output(os.path.abspath(f), output)
        ]
        files = filter_by_scope(files, self.scope, self.period)
        logger.info("Found %d source file(s) for %s (scope=%s)", len(files), self.pattern, self.scope.value)
        return files

    @staticmethod
    def _is_own_output(path: str, output: str) -> bool:
        # The archive and its shards may match a broad pattern on a re-run
        return path == output or (path.startswith(output + ".index-") and path.endswith(".dat"))

    def read(self, files: list[str]) -> list[LogEntry]:
        """Extract entries from every file; order follows ``files``."""
        entries: list[LogEntry] = []
        total = len(files)

        if self.workers > 1 and total > 1:
            with ThreadPoolExecutor(max_workers=self.workers) as executor:
                for step, file_entries in enumerate(executor.map(read_file, files), 1):
                    entries.extend(file_entries)
                    self.tracker.record("Read", step, total)
        else:
            for step, path in enumerate(files, 1):
                entries.extend(read_file(path))
                self.tracker.record("Read", step, total)

        logger.info("Read %d entries from %d file(s)", len(entries), total)
        return entries

    def write(self, entries: list[LogEntry], force: bool = False, build_index: bool = False) -> WriteResult:
        """Write entries to the archive in timestamp order.

        An existing archive is left untouched unless ``force`` is set. The
        previous archive and its index shards are removed before writing.
        """
        path = self.output_path
        if os.path.exists(path) and not force:
            logger.warning("Output %s already exists, skipping (use force to overwrite)", path)
            return WriteResult(False, path, None)

        if not entries:
            build_index = False

        if os.path.exists(path):
            os.remove(path)
        for stale in remove_indexes(path):
            logger.info("Removed stale index %s", stale)

        ordered = sorted(entries, key=lambda e: e.sort_key)
        builder = IndexBuilder(ordered[0].timestamp) if build_index else None
        total = len(ordered)

        with ExitStack() as stack:
            sources = {}
            out = stack.enter_context(open(path, "wb"))
            for step, entry in enumerate(ordered, 1):
                if builder is not None:
                    builder.advance(entry.timestamp, out.tell())
                src = sources.get(entry.source)
                if src is None:
                    src = stack.enter_context(_open_source(entry.source))
                    sources[entry.source] = src
                copied = copy_range(src, out, entry.content_start, entry.length, self.chunk_size)
                if copied != entry.length:
                    raise SourceUnreadable(
                        f"Source file {entry.source} shrank: got {copied} of {entry.length} "
                        f"bytes at offset {entry.content_start}"
                    )
                self.tracker.record("Write", step, total)

        logger.info("Wrote %d entries to %s", total, path)
        index_path = builder.dump(path) if builder is not None else None
        return WriteResult(True, path, index_path)


def aggregate(
    pattern: str,
    output_template: str,
    scope: Scope = Scope.ALL,
    force: bool = False,
    build_index: bool = False,
    cleanup: bool = False,
    **options,
) -> WriteResult:
    """List, read, and write in one go; optionally delete the sources afterwards."""
    aggregator = LogAggregator(pattern, output_template, scope=scope, **options)
    files = aggregator.list_files()
    entries = aggregator.read(files)
    result = aggregator.write(entries, force=force, build_index=build_index)

    if cleanup and result.wrote:
        for path in files:
            os.remove(path)
        logger.info("Cleaned up %d source file(s)", len(files))

    return result
