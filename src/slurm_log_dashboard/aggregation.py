from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from enum import Enum
from typing import Generic, Iterable, List, Sequence, Tuple, TypeVar

from .models import HistoricalJobRecord
from .time_utils import format_duration

T = TypeVar("T")

TOP_USERS = 15
TRACKED_STATES = ("COMPLETED", "FAILED", "CANCELLED", "TIMEOUT", "NODE_FAIL", "RUNNING")


class TimeRange(str, Enum):
    TODAY = "today"
    YESTERDAY = "yesterday"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"
    ALL = "all"


# Number of days before today whose midnight opens the window.
_LOOKBACK_DAYS = {
    TimeRange.TODAY: 0,
    TimeRange.WEEK: 6,
    TimeRange.MONTH: 30,
    TimeRange.YEAR: 365,
}


def _midnight(now: datetime, days_ago: int = 0) -> datetime:
    day = now.date() - timedelta(days=days_ago)
    if now.tzinfo is None:
        # Local offset of that midnight, not of ``now``.
        return datetime.combine(day, time.min).astimezone()
    return datetime.combine(day, time.min, tzinfo=now.tzinfo)


def filter_time_range(
    records: Sequence[HistoricalJobRecord],
    time_range: TimeRange | str,
    now: datetime,
) -> List[HistoricalJobRecord]:
    """Return the records whose start falls inside ``time_range`` relative to ``now``.

    Windows open at local midnight in ``now``'s timezone; a naive ``now`` is
    taken as system local time and each midnight gets the local offset in
    effect on its own day.  Records without a valid start only survive
    :attr:`TimeRange.ALL`.
    """

    time_range = TimeRange(time_range)
    if time_range is TimeRange.ALL:
        return list(records)

    if time_range is TimeRange.YESTERDAY:
        upper = _midnight(now)
        lower = _midnight(now, 1)
        return [
            record
            for record in records
            if record.start is not None and lower <= record.start < upper
        ]

    lower = _midnight(now, _LOOKBACK_DAYS[time_range])
    return [record for record in records if record.start is not None and record.start >= lower]


def filter_by_user_query(
    records: Sequence[HistoricalJobRecord], query: str
) -> List[HistoricalJobRecord]:
    """Filter by username.

    An empty query matches nothing, ``*`` matches everything, a trailing
    ``*`` is a case-insensitive prefix match and anything else must equal the
    username case-insensitively.
    """

    needle = query.strip().lower()
    if not needle:
        return []
    if needle == "*":
        return list(records)
    if needle.endswith("*"):
        prefix = needle[:-1]
        return [record for record in records if record.user.lower().startswith(prefix)]
    return [record for record in records if record.user.lower() == needle]


@dataclass(frozen=True)
class DashboardSummary:
    total_jobs: int
    unique_users: int
    completed_jobs: int
    failed_jobs: int
    average_elapsed_seconds: float

    @property
    def average_runtime(self) -> str:
        return format_duration(self.average_elapsed_seconds)


def summarize(records: Sequence[HistoricalJobRecord]) -> DashboardSummary:
    total = len(records)
    elapsed = math.fsum(record.elapsed_seconds for record in records)
    return DashboardSummary(
        total_jobs=total,
        unique_users=len({record.user for record in records}),
        completed_jobs=sum(1 for record in records if record.state == "COMPLETED"),
        failed_jobs=sum(1 for record in records if record.state == "FAILED"),
        average_elapsed_seconds=elapsed / total if total else 0.0,
    )


def _count(values: Iterable[str]) -> List[Tuple[str, int]]:
    # Counter keeps first-seen order, which sorted() preserves for ties.
    return list(Counter(values).items())


def jobs_per_user(
    records: Sequence[HistoricalJobRecord], *, limit: int | None = TOP_USERS
) -> List[Tuple[str, int]]:
    counts = sorted(_count(record.user for record in records), key=lambda item: -item[1])
    if limit is None:
        return counts
    return counts[:limit]


def jobs_per_state(records: Sequence[HistoricalJobRecord]) -> List[Tuple[str, int]]:
    return sorted(_count(record.state for record in records), key=lambda item: item[1])


def jobs_per_day(records: Sequence[HistoricalJobRecord]) -> List[Tuple[str, int]]:
    """Count jobs per ``YYYY-MM-DD`` day, oldest first.

    Days are the calendar dates of each start in its own timezone (the
    ``--tz`` zone or local time), not UTC dates.  A job started at 00:30 in
    UTC+2 counts on that day rather than the day before.
    """

    days = (record.start.isoformat()[:10] for record in records if record.start is not None)
    return sorted(_count(days))


def jobs_per_partition(records: Sequence[HistoricalJobRecord]) -> List[Tuple[str, int]]:
    return sorted(_count(record.partition for record in records), key=lambda item: -item[1])


@dataclass(frozen=True)
class UserStateBreakdown:
    """Per-user job counts split over :data:`TRACKED_STATES`."""

    user: str
    total_jobs: int
    counts: Tuple[int, ...]

    def count(self, state: str) -> int:
        return self.counts[TRACKED_STATES.index(state)]

    def as_dict(self) -> dict[str, int]:
        return dict(zip(TRACKED_STATES, self.counts))


def user_state_breakdown(records: Sequence[HistoricalJobRecord]) -> List[UserStateBreakdown]:
    totals: dict[str, int] = {}
    per_state: dict[str, List[int]] = {}
    for record in records:
        if record.user not in totals:
            totals[record.user] = 0
            per_state[record.user] = [0] * len(TRACKED_STATES)
        totals[record.user] += 1
        if record.state in TRACKED_STATES:
            per_state[record.user][TRACKED_STATES.index(record.state)] += 1

    rows = [
        UserStateBreakdown(user=user, total_jobs=total, counts=tuple(per_state[user]))
        for user, total in totals.items()
    ]
    return sorted(rows, key=lambda row: -row.total_jobs)


@dataclass(frozen=True)
class UserStats:
    total_jobs: int
    total_elapsed_seconds: float
    average_elapsed_seconds: float

    @property
    def total_runtime(self) -> str:
        return format_duration(self.total_elapsed_seconds, include_seconds=True)

    @property
    def average_runtime(self) -> str:
        return format_duration(self.average_elapsed_seconds, include_seconds=True)


def user_stats(records: Sequence[HistoricalJobRecord]) -> UserStats | None:
    """Totals for a user-filtered subset, ``None`` when the subset is empty."""

    if not records:
        return None
    total_elapsed = math.fsum(record.elapsed_seconds for record in records)
    return UserStats(
        total_jobs=len(records),
        total_elapsed_seconds=total_elapsed,
        average_elapsed_seconds=total_elapsed / len(records),
    )


def sort_by_start_desc(records: Sequence[HistoricalJobRecord]) -> List[HistoricalJobRecord]:
    """Newest first; records without a start time go last in input order."""

    dated = [record for record in records if record.start is not None]
    undated = [record for record in records if record.start is None]
    return sorted(dated, key=lambda record: record.start, reverse=True) + undated


@dataclass(frozen=True)
class Page(Generic[T]):
    items: List[T]
    page: int
    total_pages: int
    total_items: int
    first_index: int
    last_index: int


def paginate(items: Sequence[T], page: int, per_page: int) -> Page[T]:
    """Slice ``items`` into 1-based pages, clamping ``page`` into range."""

    if per_page < 1:
        raise ValueError("per_page must be at least 1")

    total_items = len(items)
    total_pages = math.ceil(total_items / per_page)
    page = min(max(page, 1), max(total_pages, 1))
    start = (page - 1) * per_page
    chunk = list(items[start : start + per_page])
    return Page(
        items=chunk,
        page=page,
        total_pages=total_pages,
        total_items=total_items,
        first_index=start + 1 if chunk else 0,
        last_index=start + len(chunk),
    )
