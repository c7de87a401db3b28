from contextlib import asynccontextmanager

import pytest
from fastapi.testclient import TestClient

from mpd_api.main import app, get_connector
from mpd_api.services.mpd import MPDCommandError

# ============================================================================
# Fake MPD
# ============================================================================


class FakeMPD:
    """Stands in for MPD; records every connection and command."""

    _actions = {
        "get_files": "Error reading MPD database",
        "clear": "Error clearing MPD playlist",
        "add": "Error adding file to MPD playlist",
        "play": "Error playing MPD playlist",
        "pause": "Error pausing MPD playback",
        "set_volume": "Error setting MPD volume",
        "current_song": "Error reading current song",
    }

    def __init__(self):
        self.files: list[str] = ["a.mp3", "b.mp3"]
        self.song: dict = {}
        self.calls: list[tuple] = []
        self.fail_on: dict[str, str] = {}
        self.crash_on: set[str] = set()
        self.connect_error: str | None = None
        self.connections = 0
        self.closed = 0

    def _record(self, name, *args):
        self.calls.append((name, *args))
        if name in self.crash_on:
            raise RuntimeError(f"{name} blew up")
        if name in self.fail_on:
            raise MPDCommandError(self._actions[name], self.fail_on[name])

    @property
    def commands(self) -> list[str]:
        return [call[0] for call in self.calls]

    async def get_files(self):
        self._record("get_files")
        return list(self.files)

    async def clear(self):
        self._record("clear")

    async def add(self, file):
        self._record("add", file)

    async def play(self):
        self._record("play")

    async def pause(self):
        self._record("pause")

    async def set_volume(self, volume):
        self._record("set_volume", volume)

    async def current_song(self):
        self._record("current_song")
        return dict(self.song)

    @asynccontextmanager
    async def connect(self):
        if self.connect_error:
            raise MPDCommandError("Error connecting to MPD", self.connect_error)
        self.connections += 1
        try:
            yield self
        finally:
            self.closed += 1


@pytest.fixture
def fake_mpd():
    return FakeMPD()


@pytest.fixture
def client(fake_mpd):
    """TestClient whose requests talk to the fake MPD."""
    app.dependency_overrides[get_connector] = lambda: fake_mpd.connect
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def lenient_client(fake_mpd):
    """TestClient that returns 500 responses instead of re-raising."""
    app.dependency_overrides[get_connector] = lambda: fake_mpd.connect
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    app.dependency_overrides.clear()
