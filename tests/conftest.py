import time

import pytest


@pytest.fixture
def berlin_local_time(monkeypatch):
    """Run with the process local timezone set to Europe/Berlin."""

    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is not available on this platform")
    monkeypatch.setenv("TZ", "Europe/Berlin")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()
