import pytest
import requests

from slurm_log_dashboard import sources
from slurm_log_dashboard.history import MissingColumnError
from slurm_log_dashboard.sources import (
    NetworkFailureError,
    ResourceNotFoundError,
    fetch_history_bytes,
    fetch_squeue_text,
    load_history,
    load_squeue,
    resolve_location,
)

HISTORY = (
    "JobIDRaw|User|Start|End|Partition|State|NodeList\n"
    "100|alice|2024-01-01T00:00:00|2024-01-01T01:00:00|gpu|COMPLETED|node01\n"
).encode("latin-1")


class FakeResponse:
    def __init__(self, status_code: int, content: bytes = b"") -> None:
        self.status_code = status_code
        self.content = content

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    @property
    def text(self) -> str:
        return self.content.decode("utf-8")


def serve(monkeypatch, response=None, exc=None):
    calls = []

    def fake_get(url, timeout):
        calls.append((url, timeout))
        if exc is not None:
            raise exc
        return response

    monkeypatch.setattr(sources.requests, "get", fake_get)
    return calls


def test_resolve_location_directory_and_url():
    assert resolve_location("/srv/logs", "all_data.log") == "/srv/logs/all_data.log"
    assert resolve_location("https://host/data/", "squeue.txt") == "https://host/data/squeue.txt"
    assert resolve_location("/srv/logs", "https://other/all.log") == "https://other/all.log"
    assert resolve_location("https://host", "/tmp/all.log") == "/tmp/all.log"


def test_fetch_history_bytes_from_file(tmp_path):
    path = tmp_path / "all_data.log"
    path.write_bytes(HISTORY)

    assert fetch_history_bytes(str(path)) == HISTORY


def test_fetch_history_bytes_missing_file(tmp_path):
    with pytest.raises(ResourceNotFoundError) as excinfo:
        fetch_history_bytes(str(tmp_path / "all_data.log"))

    assert "Failed to find 'all_data.log'" in str(excinfo.value)


def test_fetch_history_bytes_over_http(monkeypatch):
    calls = serve(monkeypatch, FakeResponse(200, HISTORY))

    assert fetch_history_bytes("http://host/all_data.log", timeout=5) == HISTORY
    assert calls == [("http://host/all_data.log", 5)]


def test_fetch_history_bytes_http_not_found(monkeypatch):
    serve(monkeypatch, FakeResponse(404))

    with pytest.raises(ResourceNotFoundError) as excinfo:
        fetch_history_bytes("http://host/all_data.log")

    assert "Please make sure the log file is placed" in str(excinfo.value)


def test_fetch_history_bytes_http_error_status(monkeypatch):
    serve(monkeypatch, FakeResponse(500))

    with pytest.raises(NetworkFailureError, match="HTTP error! status: 500"):
        fetch_history_bytes("http://host/all_data.log")


def test_fetch_history_bytes_connection_error(monkeypatch):
    serve(monkeypatch, exc=requests.ConnectionError("refused"))

    with pytest.raises(NetworkFailureError, match="network issue"):
        fetch_history_bytes("http://host/all_data.log")


def test_load_history_propagates_missing_column(tmp_path):
    path = tmp_path / "all_data.log"
    path.write_bytes(b"JobIDRaw|User|Start|End|Partition\n1|a|x|y|z\n")

    with pytest.raises(MissingColumnError):
        load_history(str(path))


def test_load_history_parses_records(tmp_path):
    path = tmp_path / "all_data.log"
    path.write_bytes(HISTORY)

    records = load_history(str(path), timezone="UTC")

    assert [record.job_id for record in records] == [100]


def test_fetch_squeue_text_missing_file_returns_empty(tmp_path, caplog):
    with caplog.at_level("WARNING"):
        assert fetch_squeue_text(str(tmp_path / "squeue.txt")) == ""
    assert "Squeue file not available" in caplog.text


@pytest.mark.parametrize(
    "response, exc",
    [
        (FakeResponse(404), None),
        (FakeResponse(503), None),
        (None, requests.Timeout("slow")),
    ],
)
def test_load_squeue_degrades_to_empty_list(monkeypatch, response, exc):
    serve(monkeypatch, response, exc)

    assert load_squeue("http://host/squeue.txt") == []


def test_load_squeue_over_http(monkeypatch):
    serve(monkeypatch, FakeResponse(200, b"JOBID PARTITION NAME USER ST TIME NODES NODELIST\n42 gpu myjob bob R 1:02:03 2 node[01-02]\n"))

    records = load_squeue("http://host/squeue.txt")

    assert [record.job_id for record in records] == ["42"]
