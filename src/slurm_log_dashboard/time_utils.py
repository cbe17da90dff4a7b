from __future__ import annotations

import math
from datetime import datetime, tzinfo as TzInfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

INVALID_TIMESTAMP_VALUES = {"", "unknown", "none", "n/a", "invalid"}

_FALLBACK_PATTERNS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d %H:%M",
    "%Y/%m/%d",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y",
)


def ensure_timezone(tz_name: str | None) -> TzInfo | None:
    """Return the timezone named ``tz_name``.

    ``None`` stands for system local time.  The local offset is then
    resolved per instant by :func:`parse_datetime`, so values on either side
    of a daylight saving change get their own offsets.
    """

    if not tz_name:
        return None
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown timezone '{tz_name}'") from exc


def parse_datetime(value: str, tzinfo: TzInfo | None) -> datetime:
    """Parse a Slurm timestamp and normalise it to ``tzinfo``.

    The parser accepts standard ISO-8601 timestamps and the common Slurm
    variants that omit seconds.  When the parsed value lacks timezone
    information the supplied ``tzinfo`` is attached.  With ``tzinfo=None``
    the result carries the system local offset in effect at that instant.
    """

    value = value.strip()
    if not value:
        raise ValueError("empty datetime value")

    try:
        dt = datetime.fromisoformat(value)
    except ValueError:
        for pattern in _FALLBACK_PATTERNS:
            try:
                dt = datetime.strptime(value, pattern)
                break
            except ValueError:
                continue
        else:
            raise ValueError(f"Unrecognised datetime format: '{value}'")

    if tzinfo is None:
        return dt.astimezone()
    if dt.tzinfo is None:
        return dt.replace(tzinfo=tzinfo)
    return dt.astimezone(tzinfo)


def parse_timestamp(value: str, tzinfo: TzInfo | None) -> datetime | None:
    """Lenient variant of :func:`parse_datetime` returning ``None`` when invalid."""

    if value.strip().lower() in INVALID_TIMESTAMP_VALUES:
        return None
    try:
        return parse_datetime(value, tzinfo)
    except ValueError:
        return None


def format_duration(seconds: float, *, include_seconds: bool = False) -> str:
    """Format ``seconds`` as ``"1d 2h 3m"``, omitting zero units.

    A zero duration renders as ``"0m"``.  With ``include_seconds`` a duration
    shorter than a minute renders its seconds instead (``"42s"``, ``"0s"``).
    Negative or NaN input renders as ``"N/A"``.
    """

    if math.isnan(seconds) or seconds < 0:
        return "N/A"

    days = int(seconds // 86400)
    hours = int((seconds % 86400) // 3600)
    minutes = int((seconds % 3600) // 60)

    parts = []
    if days > 0:
        parts.append(f"{days}d")
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")

    if parts:
        return " ".join(parts)
    if include_seconds:
        return f"{int(seconds % 60)}s"
    return "0m"


def format_elapsed_hms(seconds: float) -> str:
    """Format ``seconds`` as ``"<h>h <m>m <s>s"`` with hours unbounded."""

    total = int(max(0.0, seconds))
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours}h {minutes}m {secs}s"
