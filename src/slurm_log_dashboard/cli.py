from __future__ import annotations

import argparse
import logging
import sys
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Sequence, Tuple

from .aggregation import (
    TOP_USERS,
    TRACKED_STATES,
    Page,
    TimeRange,
    filter_by_user_query,
    filter_time_range,
    jobs_per_partition,
    jobs_per_state,
    jobs_per_user,
    paginate,
    sort_by_start_desc,
    summarize,
    user_state_breakdown,
    user_stats,
)
from .charts import create_dashboard_figure, save_figure
from .models import LiveQueueRecord
from .output import chart_path, compact_args, jobs_csv_path, write_jobs_csv
from .sources import DEFAULT_HISTORY_NAME, DEFAULT_SQUEUE_NAME, resolve_location
from .squeue import state_label
from .state import HistoryState, LoadStatus, QueueState, refresh_queue, reload_history
from .time_utils import ensure_timezone, parse_datetime

LOGGER = logging.getLogger(__name__)
DEFAULT_PER_PAGE = 25


class CliError(RuntimeError):
    """Raised when CLI validation fails."""


def parse_arguments(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Summarise Slurm accounting history and the live queue.",
    )
    parser.add_argument(
        "--source",
        default=".",
        help="Directory or base URL holding the log files (default: current directory).",
    )
    parser.add_argument(
        "--history",
        default=DEFAULT_HISTORY_NAME,
        help=f"History log name or full location (default: {DEFAULT_HISTORY_NAME}).",
    )
    parser.add_argument(
        "--squeue",
        default=DEFAULT_SQUEUE_NAME,
        help=f"Live queue snapshot name or full location (default: {DEFAULT_SQUEUE_NAME}).",
    )
    parser.add_argument(
        "--range",
        dest="time_range",
        choices=[time_range.value for time_range in TimeRange],
        default=TimeRange.ALL.value,
        help="Restrict history to jobs started in this window.",
    )
    parser.add_argument(
        "--user",
        default="*",
        help="Username to report on. A trailing * matches by prefix, * alone matches everyone.",
    )
    parser.add_argument("--tz", help="IANA timezone to interpret timestamps.")
    parser.add_argument("--now", help="Reference instant for time ranges (default: now).")
    parser.add_argument(
        "--top",
        type=int,
        default=TOP_USERS,
        help=f"Number of users in the ranking (default: {TOP_USERS}).",
    )
    parser.add_argument("--page", type=int, default=1, help="Live queue page to show.")
    parser.add_argument(
        "--per-page",
        type=int,
        default=DEFAULT_PER_PAGE,
        help=f"Live queue rows per page (default: {DEFAULT_PER_PAGE}).",
    )
    parser.add_argument("--no-plot", action="store_true", help="Skip writing the chart sheet.")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the resolved file locations and exit.",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")

    return parser.parse_args(argv)


def _validate_positive(value: int, flag: str) -> int:
    if value <= 0:
        raise CliError(f"{flag} must be a positive integer")
    return value


def _args_tokens(*, time_range: str, user_query: str) -> list[str]:
    tokens = [f"range={time_range}"]
    query = user_query.strip()
    if query and query != "*":
        tokens.append(f"user={query}")
    else:
        tokens.append("user=all")
    return tokens


def _title(*, time_range: str, user_query: str, now: datetime) -> str:
    query = user_query.strip()
    user_summary = "all users" if query in ("", "*") else query
    return f"Slurm jobs, {time_range} as of {now.strftime('%Y-%m-%d %H:%M')} ({user_summary})"


def load_sources(
    history_location: str,
    squeue_location: str,
    *,
    tz_name: str | None,
    now: datetime,
) -> Tuple[HistoryState, QueueState]:
    """Load both sources independently of each other."""

    history_state = HistoryState()
    queue_state = QueueState()
    with ThreadPoolExecutor(max_workers=2) as executor:
        history_future = executor.submit(
            reload_history, history_state, history_location, timezone=tz_name
        )
        queue_future = executor.submit(refresh_queue, queue_state, squeue_location, now=now)
        history_future.result()
        queue_future.result()
    return history_state, queue_state


def format_queue_page(page: Page[LiveQueueRecord], last_updated: datetime | None) -> list[str]:
    updated = last_updated.strftime("%H:%M:%S") if last_updated else "never"
    lines = [
        f"Live queue (updated {updated}) | Showing {page.first_index} - {page.last_index} "
        f"of {page.total_items}"
    ]
    if not page.items:
        lines.append("  No running jobs found or unable to fetch queue data.")
        return lines

    lines.append(
        f"  {'JOBID':<14} {'PARTITION':<12} {'NAME':<20} {'USER':<12} "
        f"{'STATE':<11} {'TIME':>11} {'NODES':>5}  NODELIST"
    )
    for job in page.items:
        lines.append(
            f"  {job.job_id:<14} {job.partition:<12} {job.name[:20]:<20} {job.user:<12} "
            f"{state_label(job.state):<11} {job.time:>11} {job.nodes:>5}  {job.nodelist}"
        )
    if page.total_pages > 1:
        lines.append(f"  Page {page.page} of {page.total_pages}")
    return lines


def format_ranking(title: str, counts: Sequence[Tuple[str, int]]) -> list[str]:
    lines = [title]
    if not counts:
        lines.append("  (none)")
        return lines
    width = max(len(name) for name, _ in counts)
    lines.extend(f"  {name:<{width}}  {count}" for name, count in counts)
    return lines


def _print_lines(lines: Sequence[str]) -> None:
    print("\n".join(lines))


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_arguments(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )
    try:
        top = _validate_positive(args.top, "--top")
        per_page = _validate_positive(args.per_page, "--per-page")
        page_number = _validate_positive(args.page, "--page")
    except CliError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    try:
        tzinfo = ensure_timezone(args.tz)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    try:
        now = datetime.now(tzinfo) if args.now is None else parse_datetime(args.now, tzinfo)
    except ValueError as exc:
        print(f"Error parsing date: {exc}", file=sys.stderr)
        return 2
    if tzinfo is None:
        # Naive local time; range windows resolve each midnight's own offset.
        now = now.replace(tzinfo=None)

    history_location = resolve_location(args.source, args.history)
    squeue_location = resolve_location(args.source, args.squeue)

    if args.dry_run:
        print(f"history: {history_location}")
        print(f"squeue: {squeue_location}")
        return 0

    history_state, queue_state = load_sources(
        history_location, squeue_location, tz_name=args.tz, now=now
    )

    _print_lines(
        format_queue_page(
            paginate(queue_state.records, page_number, per_page), queue_state.last_updated
        )
    )
    print()

    if history_state.status is not LoadStatus.READY:
        print(f"Error: {history_state.error}", file=sys.stderr)
        return 1

    records = filter_time_range(history_state.records or [], args.time_range, now)
    summary = summarize(records)
    print(
        f"Jobs: {summary.total_jobs} | Users: {summary.unique_users} "
        f"| Completed: {summary.completed_jobs} | Failed: {summary.failed_jobs} "
        f"| Avg. runtime: {summary.average_runtime}"
    )
    _print_lines(format_ranking(f"Jobs per user (top {top})", jobs_per_user(records, limit=top)))
    _print_lines(format_ranking("Jobs per state", jobs_per_state(records)))
    _print_lines(format_ranking("Jobs per partition", jobs_per_partition(records)))
    print()

    user_records = filter_by_user_query(records, args.user)
    stats = user_stats(user_records)
    if not args.user.strip():
        print("Enter a username to see their stats. Use * as a wildcard (e.g., proy*).")
    elif stats is None:
        print("No jobs found for this query.")
    else:
        print(
            f"User query '{args.user.strip()}': {stats.total_jobs} jobs "
            f"| Total runtime: {stats.total_runtime} | Avg. runtime: {stats.average_runtime}"
        )
        breakdown = user_state_breakdown(user_records)
        header = "  ".join(f"{state:>9}" for state in TRACKED_STATES)
        print(f"  {'USER':<12} {'TOTAL':>6}  {header}")
        for row in breakdown[:top]:
            counts = "  ".join(f"{count:>9}" for count in row.counts)
            print(f"  {row.user:<12} {row.total_jobs:>6}  {counts}")

    prefix = compact_args(_args_tokens(time_range=args.time_range, user_query=args.user))
    if user_records:
        csv_path = jobs_csv_path(prefix)
        write_jobs_csv(csv_path, sort_by_start_desc(user_records))
        LOGGER.info("Wrote %d jobs to %s", len(user_records), csv_path)

    if records and not args.no_plot:
        fig = create_dashboard_figure(
            records,
            title=_title(time_range=args.time_range, user_query=args.user, now=now),
            top_users=top,
        )
        path = chart_path(prefix)
        save_figure(fig, path)
        LOGGER.info("Wrote chart sheet to %s", path)

    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
