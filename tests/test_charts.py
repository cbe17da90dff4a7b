from datetime import datetime, timedelta, timezone

import pytest

pytest.importorskip("matplotlib")
from matplotlib import pyplot as plt

from slurm_log_dashboard.charts import create_dashboard_figure, save_figure
from slurm_log_dashboard.models import HistoricalJobRecord


BASE = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def make_record(user: str, state: str, day: int | None) -> HistoricalJobRecord:
    start = None if day is None else BASE + timedelta(days=day)
    return HistoricalJobRecord(
        job_id=1,
        user=user,
        start=start,
        end=start,
        partition="gpu",
        state=state,
        node_list="node01",
        elapsed_seconds=0.0,
    )


def test_create_dashboard_figure_draws_three_panels():
    records = [
        make_record("alice", "COMPLETED", 0),
        make_record("alice", "FAILED", 1),
        make_record("bob", "COMPLETED", 1),
    ]

    fig = create_dashboard_figure(records, title="Example")

    ax_users, ax_states, ax_days = fig.axes
    assert [patch.get_height() for patch in ax_users.patches] == [2, 1]
    assert [patch.get_width() for patch in ax_states.patches] == [1, 2]
    assert list(ax_days.lines[0].get_ydata()) == [1, 2]
    assert ax_users.get_title() == "Jobs per user (top 15)"
    fig.clf()
    plt.close(fig)


def test_create_dashboard_figure_without_valid_start_times():
    fig = create_dashboard_figure([make_record("alice", "PENDING", None)])

    assert not fig.axes[2].lines
    fig.clf()
    plt.close(fig)


def test_create_dashboard_figure_requires_records():
    with pytest.raises(ValueError):
        create_dashboard_figure([])


def test_save_figure_writes_png(tmp_path):
    fig = create_dashboard_figure([make_record("alice", "COMPLETED", 0)])
    path = tmp_path / "dashboard.png"

    save_figure(fig, path)

    assert path.read_bytes().startswith(b"\x89PNG")
