"""Bounded byte-range copy between binary file objects."""

DEFAULT_CHUNK_SIZE = 64 * 1024


def copy_range(src, dst, offset: int, length: int, chunk_size: int = DEFAULT_CHUNK_SIZE) -> int:
    """Copy ``length`` bytes starting at ``offset`` in ``src`` to ``dst``.

    Returns the number of bytes copied, which is short only if ``src``
    ends before the range does.
    """
    src.seek(offset)
    remaining = length
    copied = 0
    while remaining > 0:
        chunk = src.read(min(chunk_size, remaining))
        if not chunk:
            break
        dst.write(chunk)
        copied += len(chunk)
        remaining -= len(chunk)
    return copied
