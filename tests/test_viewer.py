"""Tests for log_archive/viewer.py"""

import io
import os
import shutil
import struct
import tempfile
import unittest

from log_archive.aggregator import aggregate
from log_archive.index import discover_indexes, index_filename
from log_archive.progress import ProgressTracker
from log_archive.timestamps import parse_timestamp
from log_archive.viewer import IndexNotFound, find_position, view


def make_entry(timestamp: str, message: str) -> bytes:
    return f"I, [{timestamp}.000000 #4242]  INFO -- : {message}\n".encode()


class ViewerTestCase(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.archive = os.path.join(self.tmpdir, "combined.log")

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def combine(self, sources: dict[str, bytes]) -> None:
        src_dir = os.path.join(self.tmpdir, "logs")
        os.makedirs(src_dir, exist_ok=True)
        for name, content in sources.items():
            with open(os.path.join(src_dir, name), "wb") as f:
                f.write(content)
        aggregate(
            os.path.join(src_dir, "*.log"),
            self.archive,
            force=True,
            build_index=True,
            tracker=ProgressTracker(enabled=False),
        )

    def stream(self, after, before) -> bytes:
        out = io.BytesIO()
        written = view(self.archive, after, before, out=out)
        self.assertEqual(written, len(out.getvalue()))
        return out.getvalue()


class TestEndToEnd(ViewerTestCase):
    def setUp(self):
        super().setUp()
        self.first = make_entry("2025-11-05T10:00:00", "from first file")
        self.second = make_entry("2025-11-05T10:00:05", "from second file")
        self.combine({"one.log": self.first, "two.log": self.second})

    def test_full_window_returns_both_entries(self):
        data = self.stream("2025-11-05T10:00:00", "2025-11-05T10:00:05")
        self.assertEqual(data, self.first + self.second)

    def test_gap_returns_nothing(self):
        self.assertEqual(self.stream("2025-11-05T10:00:01", "2025-11-05T10:00:04"), b"")

    def test_single_second(self):
        self.assertEqual(self.stream("2025-11-05T10:00:00", "2025-11-05T10:00:00"), self.first)

    def test_last_second_alone(self):
        self.assertEqual(self.stream("2025-11-05T10:00:05", "2025-11-05T10:00:05"), self.second)

    def test_accepts_epoch_seconds(self):
        start = parse_timestamp("2025-11-05T10:00:00")
        self.assertEqual(self.stream(start, start + 5), self.first + self.second)

    def test_outside_index_raises(self):
        with self.assertRaises(IndexNotFound):
            self.stream("2025-11-05T09:59:59", "2025-11-05T10:00:05")
        with self.assertRaises(IndexNotFound):
            self.stream("2025-11-05T10:00:00", "2025-11-05T10:00:06")

    def test_reversed_window_is_empty(self):
        self.assertEqual(self.stream("2025-11-05T10:00:05", "2025-11-05T10:00:00"), b"")


class TestRoundTrip(ViewerTestCase):
    def test_each_entry_is_retrievable_by_its_second(self):
        entries = [
            make_entry("2025-11-05T10:00:00", "alpha") + b"  stack line\n",
            make_entry("2025-11-05T10:00:02", "beta"),
            make_entry("2025-11-05T10:00:07", "gamma"),
            make_entry("2025-11-05T10:00:08", "delta"),
        ]
        # Interleave across two files in reverse order so the sort matters
        self.combine({"x.log": entries[3] + entries[1], "y.log": entries[2] + entries[0]})

        for entry in entries:
            stamp = entry[4:23].decode()
            self.assertEqual(self.stream(stamp, stamp), entry, stamp)

    def test_index_is_monotonic(self):
        self.combine({
            "x.log": make_entry("2025-11-05T10:00:00", "a") + make_entry("2025-11-05T10:00:30", "b"),
            "y.log": make_entry("2025-11-05T10:00:10", "c") + make_entry("2025-11-05T10:01:00", "d"),
        })
        [shard] = discover_indexes(self.archive)
        offsets = shard.load()
        self.assertEqual(len(offsets), 61)
        self.assertEqual(offsets, sorted(offsets))


class TestFindPosition(ViewerTestCase):
    def setUp(self):
        super().setUp()
        for start, end, offsets in ((100, 101, [0, 10]), (102, 103, [20, 30])):
            with open(index_filename(self.archive, start, end), "wb") as f:
                f.write(struct.pack(f">{len(offsets)}Q", *offsets))
        self.shards = discover_indexes(self.archive)

    def test_inside_shard(self):
        self.assertEqual(find_position(self.shards, 101), 10)
        self.assertEqual(find_position(self.shards, 102), 20)
        self.assertEqual(find_position(self.shards, 100, offset=1), 10)

    def test_upper_bound_crosses_into_next_shard(self):
        self.assertEqual(find_position(self.shards, 101, offset=1), 20)

    def test_upper_bound_past_last_shard_clamps(self):
        self.assertEqual(find_position(self.shards, 103, offset=1, archive_size=45), 45)
        with self.assertRaises(IndexNotFound):
            find_position(self.shards, 103, offset=1)

    def test_uncovered_timestamp(self):
        with self.assertRaises(IndexNotFound):
            find_position(self.shards, 99)
        with self.assertRaises(IndexNotFound):
            find_position([], 100)


if __name__ == "__main__":
    unittest.main()
