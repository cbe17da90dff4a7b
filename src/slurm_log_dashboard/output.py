from __future__ import annotations

import csv
import re
from datetime import datetime
from pathlib import Path
from typing import Iterable, Sequence

from .models import HistoricalJobRecord
from .time_utils import format_elapsed_hms

_OUTPUT_DIR = Path("output")
_SANITIZE_RE = re.compile(r"[^A-Za-z0-9,._=-]")


def ensure_output_dir(directory: Path = _OUTPUT_DIR) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def compact_args(tokens: Sequence[str]) -> str:
    """Join ``key=value`` tokens into a filename-safe output prefix."""

    joined = "_".join(token.replace(" ", "_") for token in tokens)
    sanitised = _SANITIZE_RE.sub("_", joined)
    if len(sanitised) > 80:
        sanitised = sanitised[:80]
    return sanitised


def jobs_csv_path(prefix: str, directory: Path = _OUTPUT_DIR) -> Path:
    return ensure_output_dir(directory) / f"{prefix}-jobs.csv"


def chart_path(prefix: str, directory: Path = _OUTPUT_DIR) -> Path:
    return ensure_output_dir(directory) / f"{prefix}-dashboard.png"


def _isoformat(value: datetime | None) -> str:
    return "" if value is None else value.isoformat()


def write_jobs_csv(path: Path, records: Iterable[HistoricalJobRecord]) -> None:
    with path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.writer(handle)
        writer.writerow(
            [
                "JobID",
                "User",
                "Start",
                "End",
                "Partition",
                "State",
                "NodeList",
                "ElapsedSeconds",
                "Duration",
            ]
        )
        for record in records:
            writer.writerow(
                [
                    record.job_id,
                    record.user,
                    _isoformat(record.start),
                    _isoformat(record.end),
                    record.partition,
                    record.state,
                    record.node_list,
                    f"{record.elapsed_seconds:.0f}",
                    format_elapsed_hms(record.elapsed_seconds),
                ]
            )
