"""Time utility functions for block headers."""

from datetime import datetime, timezone


def format_block_time(block_time: int) -> datetime:
    """Convert a header timestamp (seconds since epoch) to a UTC datetime."""
    return datetime.fromtimestamp(block_time, tz=timezone.utc)


def to_iso(block_time: int) -> str:
    return format_block_time(block_time).isoformat()
