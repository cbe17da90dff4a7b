from __future__ import annotations

from pathlib import Path
from typing import Sequence

import matplotlib

matplotlib.use("Agg")
from matplotlib import pyplot as plt, ticker  # noqa: E402

from .aggregation import TOP_USERS, jobs_per_day, jobs_per_state, jobs_per_user, summarize  # noqa: E402
from .models import HistoricalJobRecord  # noqa: E402

LRZ_SKY_BLUE = "#009FE3"
TEXT_COLOUR = "#202020"
GRID_COLOUR = "#B7D9F2"

STATE_COLOURS = {
    "COMPLETED": "#22c55e",
    "FAILED": "#ef4444",
    "CANCELLED": "#f97316",
    "TIMEOUT": "#eab308",
    "NODE_FAIL": "#a855f7",
    "RUNNING": "#3b82f6",
}
OTHER_STATE_COLOUR = "#64748b"


def _style_axis(ax: plt.Axes, *, grid_axis: str) -> None:
    for spine in ax.spines.values():
        spine.set_visible(False)
    ax.tick_params(labelsize=10, colors="#303030")
    getattr(ax, f"{grid_axis}axis").grid(
        True, color=GRID_COLOUR, linestyle=":", linewidth=0.8, alpha=0.6
    )
    ax.set_axisbelow(True)
    ax.set_facecolor("white")


def _thin_ticks(labels: Sequence[str], max_ticks: int = 12) -> list[int]:
    if len(labels) <= max_ticks:
        return list(range(len(labels)))
    step = -(-len(labels) // max_ticks)
    return list(range(0, len(labels), step))


def create_dashboard_figure(
    records: Sequence[HistoricalJobRecord],
    *,
    title: str = "",
    top_users: int = TOP_USERS,
) -> plt.Figure:
    """Draw jobs per user, the state distribution and jobs over time."""

    if not records:
        raise ValueError("create_dashboard_figure requires at least one record")

    fig = plt.figure(figsize=(14, 9))
    grid = fig.add_gridspec(2, 5)
    ax_users = fig.add_subplot(grid[0, :3])
    ax_states = fig.add_subplot(grid[0, 3:])
    ax_days = fig.add_subplot(grid[1, :])

    users = jobs_per_user(records, limit=top_users)
    ax_users.bar(
        [user for user, _ in users],
        [count for _, count in users],
        color=LRZ_SKY_BLUE,
        alpha=0.85,
    )
    ax_users.set_title(f"Jobs per user (top {top_users})", fontsize=12, color=TEXT_COLOUR)
    ax_users.set_ylabel("Job count", fontsize=11, color=TEXT_COLOUR)
    ax_users.tick_params(axis="x", rotation=35)
    plt.setp(ax_users.get_xticklabels(), ha="right")
    _style_axis(ax_users, grid_axis="y")

    states = jobs_per_state(records)
    ax_states.barh(
        [state for state, _ in states],
        [count for _, count in states],
        color=[STATE_COLOURS.get(state, OTHER_STATE_COLOUR) for state, _ in states],
        height=0.6,
    )
    ax_states.set_title("Job status distribution", fontsize=12, color=TEXT_COLOUR)
    ax_states.xaxis.set_major_locator(ticker.MaxNLocator(integer=True))
    _style_axis(ax_states, grid_axis="x")

    days = jobs_per_day(records)
    if days:
        labels = [day for day, _ in days]
        positions = list(range(len(labels)))
        ax_days.plot(
            positions,
            [count for _, count in days],
            color="#34d399",
            linewidth=2,
            label="Submitted jobs",
        )
        ticks = _thin_ticks(labels)
        ax_days.xaxis.set_major_locator(ticker.FixedLocator(ticks))
        ax_days.set_xticklabels([labels[index] for index in ticks], rotation=25, ha="right")
        ax_days.legend(loc="upper left", frameon=False)
    else:
        ax_days.text(0.5, 0.5, "No valid start times", ha="center", va="center", transform=ax_days.transAxes)
    ax_days.set_title("Jobs submitted over time", fontsize=12, color=TEXT_COLOUR)
    ax_days.set_ylabel("Job count", fontsize=11, color=TEXT_COLOUR)
    _style_axis(ax_days, grid_axis="y")

    summary = summarize(records)
    stats_lines = [
        f"Jobs: {summary.total_jobs}",
        f"Users: {summary.unique_users}",
        f"Completed: {summary.completed_jobs}",
        f"Avg. runtime: {summary.average_runtime}",
    ]
    ax_users.text(
        0.98,
        0.98,
        "\n".join(stats_lines),
        transform=ax_users.transAxes,
        ha="right",
        va="top",
        fontsize=10,
        color=TEXT_COLOUR,
        bbox={
            "boxstyle": "round,pad=0.4",
            "facecolor": "#E6F3FB",
            "edgecolor": LRZ_SKY_BLUE,
            "linewidth": 0.8,
        },
    )

    if title:
        fig.suptitle(title, fontsize=16, color=TEXT_COLOUR, y=0.99)

    fig.tight_layout(rect=(0, 0, 1, 0.96))
    return fig


def save_figure(fig: plt.Figure, path: Path) -> None:
    fig.savefig(path)
    fig.clf()
    plt.close(fig)
