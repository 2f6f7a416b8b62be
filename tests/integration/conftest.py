"""Fixtures for integration tests.

These tests drive a real Chrome/Chromium. They are skipped when no browser
binary can be found (see ``resolve_executable``).
"""

import http.server
import socket
import socketserver
import threading
from pathlib import Path
from typing import Any

import pytest
from dotenv import load_dotenv

from pagepilot import Browser
from pagepilot.core.launch import resolve_executable
from pagepilot.utils.config import EngineConfig
from pagepilot.utils.exceptions import BrowserLaunchError

# Load .env file at test startup (PAGEPILOT_CHROME)
load_dotenv(Path(__file__).parent.parent.parent / ".env")

PAGES_DIR = Path(__file__).parent / "pages"


class QuietHandler(http.server.SimpleHTTPRequestHandler):
    """Static file handler that does not log every request."""

    def log_message(self, format: str, *args: Any) -> None:
        pass


class PageServer:
    """Local HTTP server serving the test pages from a background thread."""

    def __init__(self, pages_dir: Path, port: int = 8000):
        self.pages_dir = pages_dir
        self.port = port
        self._server: socketserver.TCPServer | None = None
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        pages_dir = str(self.pages_dir)

        class BoundHandler(QuietHandler):
            def __init__(self, *args: Any, **kwargs: Any) -> None:
                super().__init__(*args, directory=pages_dir, **kwargs)

        self._server = socketserver.ThreadingTCPServer(("localhost", self.port), BoundHandler)
        self._server.daemon_threads = True
        self._thread = threading.Thread(target=self._server.serve_forever)
        self._thread.daemon = True
        self._thread.start()

    def stop(self) -> None:
        if self._server:
            self._server.shutdown()
            self._server.server_close()
            if self._thread:
                self._thread.join(timeout=5)
            self._server = None
            self._thread = None

    @property
    def base_url(self) -> str:
        return f"http://localhost:{self.port}"

    def url(self, page: str) -> str:
        return f"{self.base_url}/{page}"


def get_free_port() -> int:
    """Get a free port on localhost."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("localhost", 0))
        return s.getsockname()[1]


@pytest.fixture(scope="session")
def page_server():
    """Serve tests/integration/pages for the whole test session."""
    server = PageServer(PAGES_DIR, port=get_free_port())
    server.start()
    yield server
    server.stop()


@pytest.fixture
def engine_config() -> EngineConfig:
    """Short timeouts so failing waits fail fast."""
    return EngineConfig(
        settle_delay=50,
        tab_switch_delay=100,
        poll_interval=50,
        selector_timeout=3000,
        url_timeout=5000,
        new_tab_timeout=5000,
        load_timeout=10000,
    )


@pytest.fixture
def steps() -> list[str]:
    """Step messages reported by the browser under test."""
    return []


@pytest.fixture
async def browser(engine_config: EngineConfig, steps: list[str]):
    """A freshly launched headless browser, closed after the test."""
    try:
        await resolve_executable(config=engine_config)
    except BrowserLaunchError as e:
        pytest.skip(str(e))
    instance = await Browser.launch(headless=True, config=engine_config, on_step=steps.append)
    yield instance
    await instance.close()
