from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import List, Sequence

from .models import HistoricalJobRecord
from .time_utils import ensure_timezone, parse_timestamp

LOGGER = logging.getLogger(__name__)

# The accounting export is single-byte text; free-text fields are not UTF-8.
HISTORY_ENCODING = "latin-1"
NODE_LIST_MISSING = "N/A"

REQUIRED_COLUMNS = ("JobIDRaw", "User", "Start", "End", "Partition", "State")
OPTIONAL_NODE_LIST = "NodeList"

_LEADING_INT = re.compile(r"\s*(\d+)")


class MissingColumnError(ValueError):
    """Raised when a required column is absent from the log header."""

    def __init__(self, column: str) -> None:
        super().__init__(f"Header '{column}' not found in log file.")
        self.column = column


def parse_leading_int(value: str) -> int:
    """Return the leading decimal digits of ``value`` as an int, or 0."""

    match = _LEADING_INT.match(value)
    if match is None:
        return 0
    return int(match.group(1))


@dataclass(frozen=True)
class ColumnIndices:
    """Column positions resolved once from the header line."""

    job_id: int
    user: int
    start: int
    end: int
    partition: int
    state: int
    node_list: int | None
    width: int

    @classmethod
    def from_header(cls, headers: Sequence[str]) -> "ColumnIndices":
        positions = {}
        for index, name in enumerate(headers):
            positions.setdefault(name, index)

        for column in REQUIRED_COLUMNS:
            if column not in positions:
                raise MissingColumnError(column)

        return cls(
            job_id=positions["JobIDRaw"],
            user=positions["User"],
            start=positions["Start"],
            end=positions["End"],
            partition=positions["Partition"],
            state=positions["State"],
            node_list=positions.get(OPTIONAL_NODE_LIST),
            width=len(headers),
        )


def normalise_state(raw_state: str) -> str:
    """Reduce suffixed states such as ``CANCELLED by 1234`` to their first token."""

    tokens = raw_state.split()
    return tokens[0] if tokens else ""


def _split_lines(text: str) -> List[str]:
    return [line.rstrip("\r") for line in text.strip().split("\n")]


def parse_history_log(
    data: bytes | str,
    *,
    timezone: str | None = None,
) -> List[HistoricalJobRecord]:
    """Parse a pipe-delimited accounting log into :class:`HistoricalJobRecord` objects.

    The first line must be the header.  A required column missing from the
    header raises :class:`MissingColumnError`; rows with fewer fields than
    the header are dropped.
    """

    text = data.decode(HISTORY_ENCODING) if isinstance(data, bytes) else data
    lines = _split_lines(text)
    if len(lines) < 2:
        return []

    headers = [name.strip() for name in lines[0].strip().split("|")]
    columns = ColumnIndices.from_header(headers)
    tzinfo = ensure_timezone(timezone)

    records: List[HistoricalJobRecord] = []
    dropped = 0
    for line_number, line in enumerate(lines[1:], start=2):
        values = line.split("|")
        if len(values) < columns.width:
            LOGGER.debug(
                "Dropping line %d: %d fields, expected %d", line_number, len(values), columns.width
            )
            dropped += 1
            continue

        start = parse_timestamp(values[columns.start], tzinfo)
        end = parse_timestamp(values[columns.end], tzinfo)

        elapsed_seconds = 0.0
        if start is not None and end is not None:
            # Same-zone subtraction is wall-clock; timestamps survive DST changes.
            elapsed_seconds = end.timestamp() - start.timestamp()

        node_list = NODE_LIST_MISSING
        if columns.node_list is not None:
            node_list = values[columns.node_list]

        records.append(
            HistoricalJobRecord(
                job_id=parse_leading_int(values[columns.job_id]),
                user=values[columns.user],
                start=start,
                end=end,
                partition=values[columns.partition],
                state=normalise_state(values[columns.state]),
                node_list=node_list,
                elapsed_seconds=max(0.0, elapsed_seconds),
            )
        )

    LOGGER.debug("Parsed %d history rows, dropped %d", len(records), dropped)
    return records
