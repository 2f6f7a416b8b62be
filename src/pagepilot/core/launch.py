"""Launch a local Chrome/Chromium with remote debugging enabled."""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import subprocess
import tempfile
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from playwright.async_api import async_playwright

from pagepilot.core.connection import DevToolsEndpoint
from pagepilot.utils.config import EngineConfig
from pagepilot.utils.exceptions import BrowserLaunchError, CDPConnectionError

logger = logging.getLogger(__name__)

CHROME_CANDIDATES = (
    "google-chrome",
    "google-chrome-stable",
    "chromium",
    "chromium-browser",
    "chrome",
)
MACOS_CHROME = "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome"

HEADLESS_FLAGS = ("--headless=new", "--disable-gpu", "--no-sandbox")


@dataclass
class LaunchedChrome:
    """A browser process started by pagepilot."""

    port: int
    process: subprocess.Popen
    user_data_dir: Path
    owns_profile: bool = field(default=False)

    @property
    def cdp_url(self) -> str:
        return f"http://localhost:{self.port}"

    def kill(self) -> None:
        """Terminate the process and remove the temporary profile."""
        if self.process.poll() is None:
            self.process.terminate()
            try:
                self.process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                self.process.kill()
                self.process.wait()
        if self.owns_profile:
            shutil.rmtree(self.user_data_dir, ignore_errors=True)
        logger.info(f"Browser on port {self.port} stopped")

    async def stop(self) -> None:
        """Async ``kill()``: waits for the process in a worker thread."""
        await asyncio.to_thread(self.kill)


def find_system_chrome() -> str | None:
    """Return the first Chrome/Chromium found on PATH or in the macOS app bundle."""
    for name in CHROME_CANDIDATES:
        path = shutil.which(name)
        if path:
            return path
    if os.path.exists(MACOS_CHROME):
        return MACOS_CHROME
    return None


async def find_bundled_chromium() -> str | None:
    """Return Playwright's bundled Chromium, if it has been installed."""
    try:
        async with async_playwright() as p:
            path = p.chromium.executable_path
    except Exception as e:
        logger.debug(f"Playwright Chromium lookup failed: {e}")
        return None
    return path if path and os.path.exists(path) else None


async def resolve_executable(
    executable: str | None = None, config: EngineConfig | None = None
) -> str:
    """Pick the browser binary: argument, config, system Chrome, then Playwright.

    Raises:
        BrowserLaunchError: If no browser can be found.
    """
    config = config or EngineConfig()
    path = executable or config.chrome_path or find_system_chrome()
    if path is None:
        path = await find_bundled_chromium()
    if path is None:
        raise BrowserLaunchError(
            "Could not find Chrome or Chromium. Install Chrome, set PAGEPILOT_CHROME, "
            "or run `playwright install chromium`."
        )
    return path


def build_args(
    executable: str,
    port: int,
    user_data_dir: Path,
    headless: bool = True,
    args: Sequence[str] = (),
) -> list[str]:
    command = [
        executable,
        f"--remote-debugging-port={port}",
        f"--user-data-dir={user_data_dir}",
        "--no-first-run",
        "--no-default-browser-check",
    ]
    if headless:
        command.extend(HEADLESS_FLAGS)
    command.extend(args)
    command.append("about:blank")
    return command


def read_active_port(user_data_dir: Path) -> int | None:
    """Read the port Chrome wrote to ``DevToolsActivePort``, if present yet."""
    try:
        first_line = (user_data_dir / "DevToolsActivePort").read_text().splitlines()[0]
        return int(first_line)
    except (OSError, IndexError, ValueError):
        return None


async def launch_chrome(
    headless: bool = True,
    port: int = 0,
    args: Sequence[str] = (),
    user_data_dir: str | Path | None = None,
    executable: str | None = None,
    config: EngineConfig | None = None,
) -> LaunchedChrome:
    """Start a browser and wait until its debugging endpoint answers.

    Args:
        headless: Run without a window.
        port: Debugging port; 0 lets the browser pick a free one.
        args: Extra command-line flags.
        user_data_dir: Profile directory; a temporary one is created if omitted.
        executable: Browser binary, overriding discovery.
        config: Engine configuration (launch timeout, default binary).

    Returns:
        The running browser.

    Raises:
        BrowserLaunchError: If the browser cannot be found, exits early or
            does not open its debugging port in time.
    """
    config = config or EngineConfig()
    path = await resolve_executable(executable, config)

    owns_profile = user_data_dir is None
    profile = Path(tempfile.mkdtemp(prefix="pagepilot-")) if owns_profile else Path(user_data_dir)
    if not owns_profile:
        profile.mkdir(parents=True, exist_ok=True)
        # A stale file from an earlier run would report the wrong port.
        (profile / "DevToolsActivePort").unlink(missing_ok=True)

    command = build_args(path, port, profile, headless=headless, args=args)
    logger.info(f"Launching browser: {path}")
    logger.debug(f"Browser command: {command}")
    try:
        process = subprocess.Popen(
            command,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
    except OSError as e:
        if owns_profile:
            shutil.rmtree(profile, ignore_errors=True)
        raise BrowserLaunchError(f"Failed to start browser {path}: {e}") from e

    chrome = LaunchedChrome(port=port, process=process, user_data_dir=profile, owns_profile=owns_profile)
    try:
        chrome.port = await _wait_for_endpoint(chrome, port, config.launch_timeout)
    except BaseException:
        await chrome.stop()
        raise
    logger.info(f"Browser listening on port {chrome.port}")
    return chrome


async def _wait_for_endpoint(chrome: LaunchedChrome, port: int, timeout_ms: int) -> int:
    deadline = time.monotonic() + timeout_ms / 1000
    while time.monotonic() < deadline:
        if chrome.process.poll() is not None:
            raise BrowserLaunchError(
                f"Browser exited during startup with code {chrome.process.returncode}"
            )
        active = read_active_port(chrome.user_data_dir) or port
        if active:
            try:
                await DevToolsEndpoint(port=active).version()
                return active
            except CDPConnectionError:
                pass
        await asyncio.sleep(0.1)
    raise BrowserLaunchError(f"Browser did not open its debugging port within {timeout_ms}ms")
