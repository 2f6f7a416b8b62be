"""Browser automation API.

This module provides the public surface test authors drive: ``Browser``
(the current tab), ``TabHandle`` (a tab opened while the test ran),
``FrameHandle`` (a same-origin iframe) and ``Locator`` (an element picked
by selector plus cardinality).
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from typing import Any

from pagepilot.core.actions import ActionExecutor
from pagepilot.core.connection import DevToolsEndpoint
from pagepilot.core.dialogs import DialogMediator
from pagepilot.core.launch import LaunchedChrome, launch_chrome
from pagepilot.core.protocols import (
    STRICT,
    AutomationSession,
    Cardinality,
    DialogHandler,
    ProtocolSession,
    TargetInfo,
    TargetRegistry,
)
from pagepilot.core.selectors import attribute_selector
from pagepilot.core.tabs import TargetManager
from pagepilot.core.waits import UrlPattern, describe_pattern, poll_until, url_matcher
from pagepilot.utils.config import EngineConfig
from pagepilot.utils.exceptions import TargetNotFound

logger = logging.getLogger(__name__)

StepCallback = Callable[[str], None]


class Locator:
    """An element addressed by selector and cardinality.

    Nothing is resolved until a verb runs, and every verb resolves again,
    so a locator stays usable across re-renders.
    """

    def __init__(self, owner: _ElementVerbs, selector: str, cardinality: Cardinality = STRICT):
        self._owner = owner
        self.selector = selector
        self.cardinality = cardinality

    def __repr__(self) -> str:
        return f"Locator({self.selector!r}){self.cardinality.describe()}"

    def first(self) -> Locator:
        return Locator(self._owner, self.selector, Cardinality.first())

    def last(self) -> Locator:
        return Locator(self._owner, self.selector, Cardinality.last())

    def nth(self, index: int) -> Locator:
        return Locator(self._owner, self.selector, Cardinality.nth(index))

    @property
    def _label(self) -> str:
        return f"{self.selector}{self.cardinality.describe()}"

    @property
    def _executor(self) -> ActionExecutor:
        return self._owner._executor

    async def click(self) -> None:
        self._owner._step(f"Click {self._label}")
        await self._executor.click(self.selector, self.cardinality)

    async def double_click(self) -> None:
        self._owner._step(f"Double-click {self._label}")
        await self._executor.double_click(self.selector, self.cardinality)

    async def right_click(self) -> None:
        self._owner._step(f"Right-click {self._label}")
        await self._executor.right_click(self.selector, self.cardinality)

    async def hover(self) -> None:
        self._owner._step(f"Hover {self._label}")
        await self._executor.hover(self.selector, self.cardinality)

    async def drag_to(self, target: str) -> None:
        """Drag this element onto the element matching ``target`` (strict)."""
        self._owner._step(f"Drag {self._label} to {target}")
        await self._executor.drag_and_drop(self.selector, target, self.cardinality)

    async def type(self, text: str) -> None:
        self._owner._step(f"Type into {self._label}")
        await self._executor.type(self.selector, text, self.cardinality)

    async def select(self, option: Any) -> list[str]:
        self._owner._step(f"Select {option!r} in {self._label}")
        return await self._executor.select(self.selector, option, self.cardinality)

    async def check(self) -> None:
        self._owner._step(f"Check {self._label}")
        await self._executor.check(self.selector, self.cardinality)

    async def uncheck(self) -> None:
        self._owner._step(f"Uncheck {self._label}")
        await self._executor.uncheck(self.selector, self.cardinality)

    async def text_content(self) -> str:
        return await self._executor.text_content(self.selector, self.cardinality)

    async def get_attribute(self, name: str) -> str:
        return await self._executor.get_attribute(self.selector, name, self.cardinality)

    async def is_visible(self) -> bool:
        return await self._executor.is_visible(self.selector, self.cardinality)

    async def is_disabled(self) -> bool:
        return await self._executor.is_disabled(self.selector, self.cardinality)

    async def is_editable(self) -> bool:
        return await self._executor.is_editable(self.selector, self.cardinality)

    async def is_selected(self) -> bool:
        return await self._executor.is_selected(self.selector, self.cardinality)


class _ElementVerbs:
    """Element verbs shared by pages, tabs and frames."""

    _executor: ActionExecutor
    _on_step: StepCallback | None

    def _step(self, message: str) -> None:
        if self._executor.in_frame:
            message += " (in frame)"
        logger.debug(f"Step: {message}")
        if self._on_step is not None:
            self._on_step(message)

    def locator(self, selector: str) -> Locator:
        return Locator(self, selector)

    def get_by_attribute(self, attribute: str, value: str) -> Locator:
        """Locator for elements whose ``attribute`` equals ``value``."""
        return Locator(self, attribute_selector(attribute, value))

    def frame(self, selector: str) -> FrameHandle:
        """Handle for the same-origin iframe matching ``selector``."""
        return FrameHandle(self._executor.with_frame(selector), self._on_step)

    async def click(self, selector: str) -> None:
        await self.locator(selector).click()

    async def double_click(self, selector: str) -> None:
        await self.locator(selector).double_click()

    async def right_click(self, selector: str) -> None:
        await self.locator(selector).right_click()

    async def hover(self, selector: str) -> None:
        await self.locator(selector).hover()

    async def drag_and_drop(self, source: str, target: str) -> None:
        await self.locator(source).drag_to(target)

    async def type(self, selector: str, text: str) -> None:
        await self.locator(selector).type(text)

    async def select(self, selector: str, option: Any) -> list[str]:
        return await self.locator(selector).select(option)

    async def check(self, selector: str) -> None:
        await self.locator(selector).check()

    async def uncheck(self, selector: str) -> None:
        await self.locator(selector).uncheck()

    async def press_key(self, key: str) -> None:
        self._step(f"Press {key}")
        await self._executor.press_key(key)

    async def text_content(self, selector: str) -> str:
        return await self.locator(selector).text_content()

    async def get_attribute(self, selector: str, name: str) -> str:
        return await self.locator(selector).get_attribute(name)

    async def is_visible(self, selector: str) -> bool:
        return await self.locator(selector).is_visible()

    async def is_disabled(self, selector: str) -> bool:
        return await self.locator(selector).is_disabled()

    async def is_editable(self, selector: str) -> bool:
        return await self.locator(selector).is_editable()

    async def is_selected(self, selector: str) -> bool:
        return await self.locator(selector).is_selected()

    async def wait_for_selector(self, selector: str, timeout: int | None = None) -> int:
        """Wait until ``selector`` matches; returns the match count."""
        self._step(f"Wait for selector {selector}")
        return await self._executor.wait_for_selector(selector, timeout)

    async def evaluate(self, expression: str) -> Any:
        return await self._executor.evaluate(expression)

    async def content(self) -> str:
        return await self._executor.content()

    async def sleep(self, ms: int) -> None:
        """Fixed pause. Prefer a wait on a condition where one exists."""
        self._step(f"Sleep {ms}ms")
        await asyncio.sleep(ms / 1000)


class FrameHandle(_ElementVerbs):
    """A same-origin iframe, reached by re-walking its selector chain per call."""

    def __init__(self, executor: ActionExecutor, on_step: StepCallback | None = None):
        self._executor = executor
        self._on_step = on_step

    @property
    def chain(self) -> tuple[str, ...]:
        return self._executor.frames


class _PageVerbs(_ElementVerbs, ABC):
    """Navigation and page-level waits for a whole tab."""

    @abstractmethod
    def _session(self) -> ProtocolSession:
        """The session of the tab these verbs drive."""

    async def goto(self, url: str, timeout: int | None = None) -> None:
        self._step(f"Goto {url}")
        timeout = self._executor.config.load_timeout if timeout is None else timeout
        await self._session().navigate(url, timeout)

    async def wait_for_load(self, timeout: int | None = None) -> None:
        self._step("Wait for load")
        timeout = self._executor.config.load_timeout if timeout is None else timeout
        await self._session().wait_for_load(timeout)

    async def url(self) -> str:
        return await self._session().evaluate("location.href")

    async def title(self) -> str:
        return await self._session().evaluate("document.title")

    async def wait_for_url(self, pattern: UrlPattern, timeout: int | None = None) -> str:
        """Wait until the current URL matches ``pattern``.

        A compiled regex is searched, a string containing ``**`` is a glob,
        any other string must appear in the URL.

        Returns:
            The matching URL.

        Raises:
            WaitTimeout: With the last URL seen, if nothing matched in time.
        """
        config = self._executor.config
        timeout = config.url_timeout if timeout is None else timeout
        matches = url_matcher(pattern)
        self._step(f"Wait for URL {describe_pattern(pattern)}")

        async def current() -> tuple[bool, Any]:
            href = await self.url()
            return matches(href), href

        return await poll_until(
            current, timeout, config.poll_interval, f"URL matching {describe_pattern(pattern)}"
        )


class TabHandle(_PageVerbs):
    """A tab opened during the test, driven through its own session.

    Independent of the browser's current tab: both can be used
    concurrently without switching.
    """

    def __init__(
        self,
        info: TargetInfo,
        session: AutomationSession,
        config: EngineConfig,
        on_step: StepCallback | None = None,
    ):
        self.info = info
        self._automation = session
        self._executor = ActionExecutor(self._session, config)
        self._on_step = on_step

    def __repr__(self) -> str:
        return f"TabHandle(id={self.id!r}, url={self.info.url!r})"

    @property
    def id(self) -> str:
        return self._automation.target_id

    def _session(self) -> ProtocolSession:
        return self._automation.session

    async def close(self) -> None:
        """Close this tab's connection. The tab itself stays open."""
        await self._automation.session.close()


class Browser(_PageVerbs):
    """The automation entry point, bound to the current tab.

    Use ``Browser.connect`` for a running browser or ``Browser.launch`` to
    start one. Exactly one tab is current at a time; ``switch_to_tab``
    changes it.

    Example:
        async with await Browser.launch() as browser:
            await browser.goto("https://example.com")
            await browser.click("a#more")
    """

    def __init__(
        self,
        registry: TargetRegistry,
        session: AutomationSession,
        config: EngineConfig | None = None,
        on_step: StepCallback | None = None,
        chrome: LaunchedChrome | None = None,
    ):
        self.config = config or EngineConfig()
        self._on_step = on_step
        self._chrome = chrome
        self._dialog_handler: DialogHandler | None = None
        DialogMediator(session.session).arm(self._current_dialog_handler)
        self._tabs = TargetManager(registry, session, self._current_dialog_handler, self.config)
        self._executor = ActionExecutor(self._session, self.config)

    @classmethod
    async def connect(
        cls,
        port: int | None = None,
        host: str | None = None,
        config: EngineConfig | None = None,
        on_step: StepCallback | None = None,
    ) -> Browser:
        """Attach to the first page tab of an already running browser.

        Raises:
            CDPConnectionError: If the debugging endpoint is unreachable.
            TargetNotFound: If the browser has no page tab.
        """
        config = config or EngineConfig()
        endpoint = DevToolsEndpoint(
            host or config.host,
            port or config.port,
            command_timeout=config.command_timeout,
            load_timeout=config.load_timeout,
        )
        targets = await endpoint.list_targets()
        if not targets:
            raise TargetNotFound(f"No page target at {endpoint.base_url}")
        session = await endpoint.attach(targets[0].id)
        logger.info(f"Connected to {endpoint.base_url} (tab {targets[0].id})")
        return cls(endpoint, AutomationSession(session, targets[0].id), config, on_step)

    @classmethod
    async def launch(
        cls,
        headless: bool = True,
        port: int = 0,
        args: Sequence[str] = (),
        config: EngineConfig | None = None,
        on_step: StepCallback | None = None,
    ) -> Browser:
        """Launch a browser and connect to it. ``close()`` stops the process."""
        config = config or EngineConfig()
        chrome = await launch_chrome(headless=headless, port=port, args=args, config=config)
        try:
            browser = await cls.connect(chrome.port, "localhost", config, on_step)
        except BaseException:
            await chrome.stop()
            raise
        browser._chrome = chrome
        return browser

    async def __aenter__(self) -> Browser:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _session(self) -> ProtocolSession:
        return self._tabs.session()

    def _current_dialog_handler(self) -> DialogHandler | None:
        return self._dialog_handler

    @property
    def target_id(self) -> str:
        return self._tabs.current.target_id

    def set_dialog_handler(self, handler: DialogHandler | None) -> None:
        """Install the handler for dialogs on every tab; None restores auto-accept."""
        self._dialog_handler = handler

    async def get_tabs(self) -> list[TargetInfo]:
        return list(await self._tabs.list())

    async def switch_to_tab(self, index_or_id: int | str) -> TargetInfo:
        """Make the tab at ``index_or_id`` current (index into ``get_tabs()``)."""
        self._step(f"Switch to tab {index_or_id}")
        return await self._tabs.switch_to(index_or_id)

    async def wait_for_new_tab(self, timeout: int | None = None) -> TabHandle:
        """Wait for a tab that was not open when the call started."""
        self._step("Wait for new tab")
        info, session = await self._tabs.wait_for_new_target(timeout)
        return TabHandle(info, session, self.config, self._on_step)

    async def close(self) -> None:
        """Close the current session and stop the browser if it was launched here."""
        try:
            await self._session().close()
        finally:
            chrome, self._chrome = self._chrome, None
            if chrome is not None:
                await chrome.stop()
