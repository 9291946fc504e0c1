"""log-archive: combine rotated logs into an indexed archive and stream time ranges from it."""

import logging
import os
import sys
from argparse import ArgumentParser

from log_archive.aggregator import Scope, aggregate
from log_archive.config import load_config, load_yaml_config
from log_archive.extractor import SourceUnreadable
from log_archive.progress import ProgressTracker
from log_archive.timestamps import MalformedTimestamp, parse_timestamp
from log_archive.viewer import IndexNotFound, view

logger = logging.getLogger("log_archive")


def build_parser() -> ArgumentParser:
    """Build the CLI argument parser."""
    parser = ArgumentParser(
        prog="log-archive",
        description="Combine rotated log files into one sorted archive and stream time ranges from it.",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to YAML config file",
    )
    sub = parser.add_subparsers(dest="mode")

    combine = sub.add_parser("combine", help="Merge source logs into a sorted, indexed archive")
    combine.add_argument("source", nargs="?", help="Glob pattern of source log files")
    combine.add_argument("output", nargs="?", help="Archive path ({datestamp} is substituted)")
    combine.add_argument(
        "--scope",
        choices=[s.value for s in Scope],
        default=Scope.ALL.value,
        help="Which files to include relative to the current period (default: all)",
    )
    combine.add_argument(
        "--keep-existing",
        action="store_true",
        help="Do not overwrite an existing archive",
    )
    combine.add_argument(
        "--no-index",
        action="store_true",
        help="Skip building the time index",
    )
    combine.add_argument(
        "--cleanup",
        action="store_true",
        help="Delete source files after a successful write",
    )
    combine.add_argument(
        "--workers",
        type=int,
        help="Number of threads used to scan source files",
    )
    combine.add_argument(
        "--period",
        help="Date stamp of the current period (default: today)",
    )

    stream = sub.add_parser("stream", help="Write the archive bytes between two timestamps to stdout")
    stream.add_argument("logfile", nargs="?", help="Archive path")
    stream.add_argument("after", nargs="?", help="Start timestamp, YYYY-MM-DDTHH:MM:SS (inclusive)")
    stream.add_argument("before", nargs="?", help="End timestamp, YYYY-MM-DDTHH:MM:SS (inclusive)")
    return parser


def _usage_error(message: str):
    print(f"Usage: {message}", file=sys.stderr)
    sys.exit(1)


def _silence_stdout():
    # The reader went away; the interpreter's final flush of stdout must not fail again
    try:
        fd = sys.stdout.fileno()
    except (AttributeError, OSError, ValueError):
        return
    devnull = os.open(os.devnull, os.O_WRONLY)
    os.dup2(devnull, fd)


def run_combine(args, config) -> int:
    if not (args.source and args.output):
        _usage_error("log-archive combine <source> <output>")

    result = aggregate(
        args.source,
        args.output,
        scope=Scope(args.scope),
        force=not args.keep_existing,
        build_index=not args.no_index,
        cleanup=args.cleanup,
        period=args.period or config.period,
        workers=args.workers or config.workers,
        chunk_size=config.chunk_size,
        datestamp_format=config.datestamp_format,
        tracker=ProgressTracker(enabled=config.show_progress),
    )
    if result.wrote:
        logger.info("Archive: %s", result.path)
        if result.index_path:
            logger.info("Index: %s", result.index_path)
    else:
        logger.info("Archive %s left unchanged", result.path)
    return 0


def run_stream(args, config) -> int:
    if not (args.logfile and args.after and args.before):
        _usage_error("log-archive stream <logfile> <after> <before>")

    after = parse_timestamp(args.after)
    before = parse_timestamp(args.before)
    view(args.logfile, after, before, chunk_size=config.chunk_size)
    return 0


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.mode is None:
        _usage_error("log-archive combine|stream")

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [log-archive] %(levelname)s %(message)s",
        stream=sys.stderr,
    )
    try:
        config = load_config(load_yaml_config(args.config))
        logging.getLogger().setLevel(getattr(logging, config.log_level, logging.INFO))

        if args.mode == "combine":
            return run_combine(args, config)
        return run_stream(args, config)
    except BrokenPipeError:
        _silence_stdout()
        return 0
    except KeyboardInterrupt:
        return 0
    except (MalformedTimestamp, IndexNotFound, SourceUnreadable, ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
