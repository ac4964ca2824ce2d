"""
Configuration des tests pytest.
"""
import io
import json
import os
import sys

import pytest

# Ajoute src au path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from mcp_http_bridge.config.settings import BridgeSettings  # noqa: E402


def pytest_configure(config):
    """Déclare les marqueurs utilisés par la suite."""
    config.addinivalue_line(
        "markers", "asyncio: marque un test comme asynchrone"
    )
    config.addinivalue_line(
        "markers", "unit: test unitaire sans réseau"
    )


class FakeReader:
    """Stdin factice: rend les chunks un par un, puis b"" (EOF)."""

    def __init__(self, chunks):
        self._chunks = list(chunks)
        self.reads = 0

    async def read(self, n: int = -1) -> bytes:
        self.reads += 1
        return self._chunks.pop(0) if self._chunks else b""


@pytest.fixture
def fake_reader():
    return FakeReader


@pytest.fixture
def settings():
    """Configuration minimale sans authentification."""
    return BridgeSettings(server_url="http://mcp.test/rpc")


@pytest.fixture
def stdout_capture():
    return io.StringIO()


@pytest.fixture
def read_lines():
    """Décode les lignes JSON écrites dans un StringIO."""

    def _read(buf: io.StringIO):
        return [json.loads(line) for line in buf.getvalue().splitlines() if line.strip()]

    return _read
