from __future__ import annotations

import logging
from pathlib import Path
from typing import List

import requests

from .history import parse_history_log
from .models import HistoricalJobRecord, LiveQueueRecord
from .squeue import parse_squeue_output

LOGGER = logging.getLogger(__name__)

DEFAULT_HISTORY_NAME = "all_data.log"
DEFAULT_SQUEUE_NAME = "squeue.txt"
REQUEST_TIMEOUT = 30

NETWORK_ISSUE_MESSAGE = "There might be a network issue. Please check your connection."


class SourceError(RuntimeError):
    """Raised when a resource cannot be fetched."""


class ResourceNotFoundError(SourceError):
    """Raised when the history log does not exist at the requested location."""

    def __init__(self, location: str) -> None:
        name = location.rstrip("/").rsplit("/", 1)[-1]
        super().__init__(
            f"Failed to find '{name}'. Please make sure the log file is placed at {location} "
            "or point --source/--history at its location."
        )
        self.location = location


class NetworkFailureError(SourceError):
    """Raised for transport failures and unexpected HTTP responses."""


def is_url(location: str) -> bool:
    return location.startswith(("http://", "https://"))


def resolve_location(base: str, name: str) -> str:
    """Join ``name`` onto ``base`` unless ``name`` is already a full location."""

    if is_url(name) or Path(name).is_absolute():
        return name
    if is_url(base):
        return f"{base.rstrip('/')}/{name}"
    return str(Path(base) / name)


def _get(location: str, timeout: float) -> requests.Response:
    try:
        response = requests.get(location, timeout=timeout)
    except requests.RequestException as exc:
        raise NetworkFailureError(NETWORK_ISSUE_MESSAGE) from exc

    if response.status_code == 404:
        raise ResourceNotFoundError(location)
    if not response.ok:
        raise NetworkFailureError(f"HTTP error! status: {response.status_code}")
    return response


def fetch_history_bytes(location: str, *, timeout: float = REQUEST_TIMEOUT) -> bytes:
    """Return the raw bytes of the history log at ``location``."""

    if is_url(location):
        return _get(location, timeout).content

    try:
        return Path(location).read_bytes()
    except FileNotFoundError as exc:
        raise ResourceNotFoundError(location) from exc
    except OSError as exc:
        raise NetworkFailureError(f"{NETWORK_ISSUE_MESSAGE} ({exc})") from exc


def fetch_squeue_text(location: str, *, timeout: float = REQUEST_TIMEOUT) -> str:
    """Return the squeue snapshot at ``location`` or an empty string on failure."""

    try:
        if is_url(location):
            return _get(location, timeout).text
        return Path(location).read_text(errors="replace")
    except (SourceError, OSError) as exc:
        LOGGER.warning("Squeue file not available at %s: %s", location, exc)
        return ""


def load_history(
    location: str,
    *,
    timezone: str | None = None,
    timeout: float = REQUEST_TIMEOUT,
) -> List[HistoricalJobRecord]:
    data = fetch_history_bytes(location, timeout=timeout)
    return parse_history_log(data, timezone=timezone)


def load_squeue(location: str, *, timeout: float = REQUEST_TIMEOUT) -> List[LiveQueueRecord]:
    return parse_squeue_output(fetch_squeue_text(location, timeout=timeout))
