from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class HistoricalJobRecord:
    """A finished or terminated job read from the accounting log."""

    job_id: int
    user: str
    start: datetime | None
    end: datetime | None
    partition: str
    state: str
    node_list: str
    elapsed_seconds: float


@dataclass(frozen=True, slots=True)
class LiveQueueRecord:
    """A pending or running job read from a ``squeue`` snapshot."""

    job_id: str
    partition: str
    name: str
    user: str
    state: str
    time: str
    nodes: int
    nodelist: str
