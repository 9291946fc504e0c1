"""log-archive: merge rotated log files into one time-indexed archive."""
