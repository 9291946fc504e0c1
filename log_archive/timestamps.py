"""Fixed-layout timestamp parsing (YYYY-MM-DDTHH:MM:SS) to UTC epoch seconds."""

from datetime import datetime, timezone

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S"

# (start, end) character offsets of year, month, day, hour, minute, second
_FIELDS = ((0, 4), (5, 7), (8, 10), (11, 13), (14, 16), (17, 19))


class MalformedTimestamp(ValueError):
    """Raised when timestamp text cannot be converted to epoch seconds."""


def parse_timestamp(text: str | bytes) -> int:
    """Parse ``YYYY-MM-DDTHH:MM:SS[.ffffff]`` into UTC epoch seconds.

    Fields are read at fixed offsets; fractional seconds are ignored.

    Raises:
        MalformedTimestamp: text is too short, a field is not numeric,
            or the date/time is out of calendar range.
    """
    if isinstance(text, bytes):
        text = text.decode("ascii", errors="replace")
    if len(text) < 19:
        raise MalformedTimestamp(f"Timestamp too short: {text!r}")

    parts = [text[start:end] for start, end in _FIELDS]
    if not all(p.isdigit() for p in parts):
        raise MalformedTimestamp(f"Non-numeric field in timestamp: {text!r}")

    try:
        moment = datetime(*(int(p) for p in parts), tzinfo=timezone.utc)
    except ValueError as e:
        raise MalformedTimestamp(f"Invalid timestamp {text!r}: {e}") from e
    return int(moment.timestamp())


def to_epoch(value) -> int:
    """Normalise an int, datetime, or timestamp text to epoch seconds."""
    if isinstance(value, bool):
        raise MalformedTimestamp(f"Not a timestamp: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return int(value.timestamp())
    return parse_timestamp(value)


def format_timestamp(seconds: int) -> str:
    return datetime.fromtimestamp(seconds, tz=timezone.utc).strftime(TIMESTAMP_FORMAT)
