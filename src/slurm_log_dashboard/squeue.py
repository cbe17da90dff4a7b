from __future__ import annotations

import logging
from typing import List

from .history import parse_leading_int
from .models import LiveQueueRecord

LOGGER = logging.getLogger(__name__)

HEADER_TOKEN = "JOBID"
MIN_FIELDS = 8

STATE_LABELS = {
    "R": "RUNNING",
    "PD": "PENDING",
    "CG": "COMPLETING",
}


def state_label(code: str) -> str:
    return STATE_LABELS.get(code, code)


def _parse_line(line: str) -> LiveQueueRecord | None:
    parts = line.split()
    if len(parts) < MIN_FIELDS:
        return None

    job_id, partition, name, user, state, elapsed, nodes = parts[:7]
    return LiveQueueRecord(
        job_id=job_id,
        partition=partition,
        name=name,
        user=user,
        state=state,
        time=elapsed,
        nodes=parse_leading_int(nodes),
        # NODELIST(REASON) may itself contain spaces, e.g. "(Priority, Resources)".
        nodelist=" ".join(parts[7:]),
    )


def parse_squeue_output(text: str | bytes) -> List[LiveQueueRecord]:
    """Parse ``squeue`` output, returning an empty list instead of raising."""

    try:
        if isinstance(text, bytes):
            text = text.decode("utf-8", errors="replace")

        records: List[LiveQueueRecord] = []
        for raw_line in text.strip().split("\n"):
            if raw_line.strip().startswith(HEADER_TOKEN):
                continue
            record = _parse_line(raw_line)
            if record is None:
                if raw_line.strip():
                    LOGGER.debug("Skipping malformed squeue row: %s", raw_line)
                continue
            records.append(record)
    except Exception:
        LOGGER.warning("Unable to parse squeue snapshot", exc_info=True)
        return []

    return records
