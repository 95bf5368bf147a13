"""Shared fixtures for frame-nowplaying Python unit tests."""

import asyncio
import json
import sys
from pathlib import Path

import pytest

# Add services/ to sys.path so `from framelib.config import cfg` works
SERVICES_DIR = Path(__file__).resolve().parents[3] / "services"
sys.path.insert(0, str(SERVICES_DIR))


@pytest.fixture(autouse=True)
def _reset_config_cache(monkeypatch, tmp_path):
    """Reset the config cache and keep tests away from real config files."""
    import framelib.config as config_mod
    monkeypatch.setattr(config_mod, "_SEARCH_PATHS", [str(tmp_path / "absent.json")])
    config_mod._config = None
    yield
    config_mod._config = None


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    """Provide a temp config file path and patch _SEARCH_PATHS to use it."""
    import framelib.config as config_mod

    path = tmp_path / "config.json"
    monkeypatch.setattr(config_mod, "_SEARCH_PATHS", [str(path)])
    return path


@pytest.fixture
def write_config(config_file):
    """Write a dict as JSON to the temp config file.

    Usage:
        def test_something(write_config):
            write_config({"frame": {"port": 9000}})
            assert cfg("frame", "port") == 9000
    """
    import framelib.config as config_mod

    def _write(data: dict):
        config_file.write_text(json.dumps(data))
        config_mod._config = None  # force re-read
        return config_file

    return _write


@pytest.fixture
def mock_config(monkeypatch):
    """Directly set the config dict without file I/O."""
    import framelib.config as config_mod

    def _mock(data: dict):
        monkeypatch.setattr(config_mod, "_config", data)

    return _mock


# --- Fake Spotify transport ---


class FakeResponse:
    def __init__(self, status, body=None, gate=None):
        self.status = status
        self._body = body
        self._gate = gate

    async def __aenter__(self):
        if self._gate is not None:
            await self._gate.wait()
        if isinstance(self._body, Exception):
            raise self._body
        return self

    async def __aexit__(self, *exc):
        return False

    async def json(self):
        if isinstance(self._body, str):
            return json.loads(self._body)
        return self._body

    async def text(self):
        return self._body if isinstance(self._body, str) else json.dumps(self._body)


class FakeSession:
    """Stands in for aiohttp.ClientSession.get().

    Queue responses per endpoint suffix ("currently-playing",
    "recently-played").  Pass gate=asyncio.Event() to hold a response
    until the test releases it.
    """

    def __init__(self):
        self.routes = {}
        self.calls = []

    def add(self, endpoint, status, body=None, gate=None):
        self.routes.setdefault(endpoint, []).append((status, body, gate))
        return self

    def get(self, url, headers=None, params=None, timeout=None):
        self.calls.append({"url": url, "headers": headers or {}, "params": params})
        for endpoint, queue in self.routes.items():
            if url.endswith(endpoint) and queue:
                status, body, gate = queue.pop(0)
                return FakeResponse(status, body, gate)
        raise AssertionError(f"unexpected request: {url}")

    def endpoints(self):
        return [c["url"].rsplit("/", 1)[-1] for c in self.calls]


@pytest.fixture
def fake_session():
    return FakeSession()


def track_payload(track_id="t1", name="Song A", artist="Artist A", album="Album A",
                  image="http://x/a.jpg", url="http://open/a"):
    return {
        "id": track_id,
        "name": name,
        "artists": [{"name": artist}],
        "album": {"name": album, "images": [{"url": image}] if image else []},
        "external_urls": {"spotify": url},
    }


@pytest.fixture
def make_track():
    return track_payload


@pytest.fixture
def run():
    """Run a coroutine to completion on a fresh event loop."""
    return asyncio.run
