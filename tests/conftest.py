"""Shared pytest fixtures for pagepilot tests.

This module provides in-memory fakes of the two collaborators the engine
depends on: a protocol session (scripted evaluate results, recorded input
events and dialog subscriptions) and a target registry.
"""

from collections.abc import Callable
from typing import Any

import pytest

from pagepilot.core.protocols import AutomationSession, TargetInfo
from pagepilot.utils.config import EngineConfig


def found(value: Any = None, count: int = 1, index: int = 0) -> dict[str, Any]:
    """Status object a query script returns on success."""
    return {"status": "found", "count": count, "index": index, "value": value}


def rect(x: float = 10, y: float = 20, width: float = 100, height: float = 40) -> dict[str, float]:
    """Rect payload as returned by the measure scripts."""
    return {"x": x, "y": y, "width": width, "height": height}


class FakeSession:
    """ProtocolSession double.

    ``results`` is consumed in order by ``evaluate``: plain values are
    returned, exceptions raised, callables called with the expression.
    """

    def __init__(self, target_id: str = "T1", results: list[Any] | None = None) -> None:
        self.target_id = target_id
        self.results: list[Any] = list(results or [])
        self.scripts: list[str] = []
        self.mouse_events: list[tuple[str, float, float, str, int]] = []
        self.key_events: list[tuple[str, dict[str, Any]]] = []
        self.dialog_callbacks: list[Callable[[dict[str, Any]], Any]] = []
        self.handled_dialogs: list[tuple[bool, str | None]] = []
        self.navigations: list[tuple[str, int | None]] = []
        self.load_waits: list[int | None] = []
        self.closed = False
        self.close_error: Exception | None = None

    def queue(self, *results: Any) -> None:
        self.results.extend(results)

    async def navigate(self, url: str, timeout: int | None = None) -> None:
        self.navigations.append((url, timeout))

    async def wait_for_load(self, timeout: int | None = None) -> None:
        self.load_waits.append(timeout)

    async def evaluate(self, expression: str) -> Any:
        self.scripts.append(expression)
        if not self.results:
            raise AssertionError(f"Unexpected evaluate call: {expression[:80]!r}")
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        if callable(result):
            return result(expression)
        return result

    async def dispatch_mouse_event(
        self, type: str, x: float, y: float, button: str = "none", click_count: int = 0
    ) -> None:
        self.mouse_events.append((type, x, y, button, click_count))

    async def dispatch_key_event(self, type: str, **params: Any) -> None:
        self.key_events.append((type, params))

    def on_dialog_opening(self, callback: Callable[[dict[str, Any]], Any]) -> None:
        self.dialog_callbacks.append(callback)

    async def handle_dialog(self, accept: bool, prompt_text: str | None = None) -> None:
        self.handled_dialogs.append((accept, prompt_text))

    async def close(self) -> None:
        self.closed = True
        if self.close_error is not None:
            raise self.close_error

    async def open_dialog(self, **params: Any) -> None:
        """Simulate the browser opening a dialog."""
        for callback in self.dialog_callbacks:
            await callback(params)


class FakeRegistry:
    """TargetRegistry double whose target list tests can mutate."""

    def __init__(self, targets: list[TargetInfo] | None = None) -> None:
        self.targets: list[TargetInfo] = list(targets or [])
        self.sessions: dict[str, FakeSession] = {}
        self.attach_calls: list[str] = []
        self.list_calls = 0
        self.on_list: Callable[[int], None] | None = None
        self.attach_error: Exception | None = None

    async def list_targets(self) -> list[TargetInfo]:
        self.list_calls += 1
        if self.on_list is not None:
            self.on_list(self.list_calls)
        return list(self.targets)

    async def attach(self, target_id: str) -> FakeSession:
        self.attach_calls.append(target_id)
        if self.attach_error is not None:
            raise self.attach_error
        session = FakeSession(target_id)
        self.sessions[target_id] = session
        return session


@pytest.fixture
def fast_config() -> EngineConfig:
    """EngineConfig with delays shrunk so unit tests run quickly.

    Returns:
        EngineConfig: Zero settle/switch delays, 10 ms polling.
    """
    return EngineConfig(
        settle_delay=0,
        tab_switch_delay=0,
        poll_interval=10,
        selector_timeout=200,
        url_timeout=200,
        new_tab_timeout=200,
    )


@pytest.fixture
def fake_session() -> FakeSession:
    """A FakeSession bound to target T1 with no queued results."""
    return FakeSession("T1")


@pytest.fixture
def fake_registry() -> FakeRegistry:
    """A FakeRegistry holding a single page target T1."""
    return FakeRegistry([TargetInfo("T1", "http://localhost/", "Home")])


@pytest.fixture
def automation_session(fake_session: FakeSession) -> AutomationSession:
    """The current AutomationSession wrapping ``fake_session``."""
    return AutomationSession(session=fake_session, target_id=fake_session.target_id)
