"""Load lifecycle for the history log and the live queue.

Each source owns its own state object.  Every load starts with ``begin()``,
which hands out a new epoch; results carrying an older epoch are discarded so
that overlapping reloads cannot overwrite newer data.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Sequence

from .history import MissingColumnError
from .models import HistoricalJobRecord, LiveQueueRecord
from .sources import REQUEST_TIMEOUT, SourceError, load_history, load_squeue

LOGGER = logging.getLogger(__name__)

ERROR_PREFIX = "Failed to load data. "


class LoadStatus(str, Enum):
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


@dataclass
class HistoryState:
    status: LoadStatus = LoadStatus.LOADING
    records: List[HistoricalJobRecord] | None = None
    error: str | None = None
    epoch: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def begin(self) -> int:
        with self._lock:
            self.epoch += 1
            self.status = LoadStatus.LOADING
            self.error = None
            return self.epoch

    def complete(self, epoch: int, records: Sequence[HistoricalJobRecord]) -> bool:
        with self._lock:
            if epoch != self.epoch:
                LOGGER.debug("Discarding stale history result (epoch %d, current %d)", epoch, self.epoch)
                return False
            self.records = list(records)
            self.status = LoadStatus.READY
            self.error = None
            return True

    def fail(self, epoch: int, message: str) -> bool:
        with self._lock:
            if epoch != self.epoch:
                LOGGER.debug("Discarding stale history error (epoch %d, current %d)", epoch, self.epoch)
                return False
            self.status = LoadStatus.FAILED
            self.error = message
            return True


@dataclass
class QueueState:
    records: List[LiveQueueRecord] = field(default_factory=list)
    loading: bool = False
    last_updated: datetime | None = None
    epoch: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def begin(self) -> int:
        with self._lock:
            self.epoch += 1
            self.loading = True
            return self.epoch

    def complete(self, epoch: int, records: Sequence[LiveQueueRecord], now: datetime) -> bool:
        with self._lock:
            if epoch != self.epoch:
                LOGGER.debug("Discarding stale squeue result (epoch %d, current %d)", epoch, self.epoch)
                return False
            self.records = list(records)
            self.last_updated = now
            self.loading = False
            return True


def reload_history(
    state: HistoryState,
    location: str,
    *,
    timezone: str | None = None,
    timeout: float = REQUEST_TIMEOUT,
) -> HistoryState:
    epoch = state.begin()
    try:
        records = load_history(location, timezone=timezone, timeout=timeout)
    except (MissingColumnError, SourceError) as exc:
        LOGGER.error("Failed to fetch or parse history log: %s", exc)
        state.fail(epoch, f"{ERROR_PREFIX}{exc}")
    else:
        state.complete(epoch, records)
    return state


def refresh_queue(
    state: QueueState,
    location: str,
    *,
    now: datetime | None = None,
    timeout: float = REQUEST_TIMEOUT,
) -> QueueState:
    epoch = state.begin()
    records = load_squeue(location, timeout=timeout)
    state.complete(epoch, records, now if now is not None else datetime.now().astimezone())
    return state
