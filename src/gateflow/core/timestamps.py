"""
UTC timestamp utilities (stdlib-only).

The execution start time is exposed to path expressions as
``$$.Execution.StartTime`` and is a candidate partition key, so its string
form must be stable: ISO-8601, UTC, millisecond precision, ``Z`` suffix.
"""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


def to_execution_timestamp(dt: datetime) -> str:
    """Format a datetime as ``2024-01-01T12:00:00.000Z``.

    Naive datetimes are assumed to be UTC.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    dt = dt.astimezone(UTC)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"

