"""Chrome DevTools Protocol transport.

``DevToolsEndpoint`` talks to the browser's HTTP debugging endpoint to list
and attach to page targets. ``CDPSession`` is one WebSocket bound to one
target: commands are correlated to responses by id, events fan out to
subscribers.
"""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
from websockets.asyncio.client import connect
from websockets.exceptions import ConnectionClosed

from pagepilot.core.protocols import TargetInfo
from pagepilot.utils.exceptions import (
    CDPConnectionError,
    EvaluationError,
    NavigationError,
    ProtocolError,
    SessionClosed,
    TargetNotFound,
    WaitTimeout,
)

logger = logging.getLogger(__name__)

EventCallback = Callable[[dict[str, Any]], Awaitable[None]]

DIALOG_OPENING = "Page.javascriptDialogOpening"
LOAD_EVENT = "Page.loadEventFired"

HTTP_TIMEOUT = 5.0


class CDPSession:
    """One WebSocket connection to a single page target.

    Args:
        ws_url: The target's ``webSocketDebuggerUrl``.
        target_id: Id of the target, reported back as ``target_id``.
        command_timeout: Milliseconds to wait for any command's response.
        load_timeout: Default milliseconds to wait for a load event.
    """

    def __init__(
        self,
        ws_url: str,
        target_id: str,
        command_timeout: int = 30000,
        load_timeout: int = 30000,
    ) -> None:
        self.ws_url = ws_url
        self._target_id = target_id
        self._command_timeout = command_timeout
        self._load_timeout = load_timeout
        self._ws: Any = None
        self._reader: asyncio.Task[None] | None = None
        self._ids = itertools.count(1)
        self._pending: dict[int, tuple[str, asyncio.Future[dict[str, Any]]]] = {}
        self._subscribers: dict[str, list[EventCallback]] = defaultdict(list)
        self._waiters: dict[str, list[asyncio.Future[dict[str, Any]]]] = defaultdict(list)
        self._tasks: set[asyncio.Task[None]] = set()
        self._closed = False

    @property
    def target_id(self) -> str:
        return self._target_id

    @property
    def closed(self) -> bool:
        return self._closed

    async def connect(self) -> None:
        """Open the WebSocket and start reading messages.

        Raises:
            CDPConnectionError: If the socket cannot be opened.
        """
        logger.debug(f"Connecting to {self.ws_url}")
        try:
            # Large DOM snapshots exceed the default 1 MiB frame limit.
            self._ws = await connect(self.ws_url, max_size=None)
        except (OSError, ConnectionClosed) as e:
            raise CDPConnectionError(self.ws_url) from e
        self._reader = asyncio.create_task(self._read_loop())

    async def _read_loop(self) -> None:
        try:
            while True:
                raw = await self._ws.recv()
                try:
                    message = json.loads(raw)
                except ValueError:
                    message = None
                if not isinstance(message, dict):
                    logger.warning(f"Ignoring malformed message from target {self._target_id}")
                    continue
                self._dispatch(message)
        except ConnectionClosed:
            logger.debug(f"Connection to target {self._target_id} closed")
        except Exception:
            logger.warning(
                f"Reader for target {self._target_id} failed; closing session", exc_info=True
            )
        finally:
            self._closed = True
            self._fail_pending()

    def _dispatch(self, message: dict[str, Any]) -> None:
        if "id" in message:
            entry = self._pending.pop(message["id"], None)
            if entry is None:
                return
            method, future = entry
            if future.done():
                return
            if "error" in message:
                error = message["error"]
                future.set_exception(
                    ProtocolError(method, error.get("code", 0), error.get("message", ""))
                )
            else:
                future.set_result(message.get("result", {}))
            return

        method = message.get("method")
        if not method:
            return
        params = message.get("params", {})
        for waiter in self._waiters.pop(method, []):
            if not waiter.done():
                waiter.set_result(params)
        for callback in self._subscribers.get(method, []):
            # Callbacks may send commands; never await them on the reader.
            task = asyncio.create_task(callback(params))
            self._tasks.add(task)
            task.add_done_callback(self._callback_done)

    def _callback_done(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning(
                f"Event handler failed on target {self._target_id}",
                exc_info=task.exception(),
            )

    def _fail_pending(self) -> None:
        for method, future in self._pending.values():
            if not future.done():
                future.set_exception(
                    SessionClosed(f"Session closed while waiting for {method}")
                )
        self._pending.clear()
        for waiters in self._waiters.values():
            for waiter in waiters:
                if not waiter.done():
                    waiter.set_exception(SessionClosed("Session closed"))
        self._waiters.clear()

    async def send(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Send one command and wait for its result.

        Raises:
            SessionClosed: If the session is (or becomes) closed.
            ProtocolError: If the browser answers with an error.
            WaitTimeout: If no answer arrives within the command timeout.
        """
        if self._closed or self._ws is None:
            raise SessionClosed(f"Cannot send {method}: session is closed")

        msg_id = next(self._ids)
        future: asyncio.Future[dict[str, Any]] = asyncio.get_running_loop().create_future()
        self._pending[msg_id] = (method, future)
        logger.debug(f"CDP -> {method} (id={msg_id})")
        try:
            await self._ws.send(json.dumps({"id": msg_id, "method": method, "params": params or {}}))
        except ConnectionClosed as e:
            self._pending.pop(msg_id, None)
            raise SessionClosed(f"Cannot send {method}: session is closed") from e

        try:
            return await asyncio.wait_for(future, self._command_timeout / 1000)
        except asyncio.TimeoutError as e:
            raise WaitTimeout(f"No response to {method}", self._command_timeout) from e
        finally:
            self._pending.pop(msg_id, None)

    def on(self, event: str, callback: EventCallback) -> None:
        """Subscribe ``callback`` to every occurrence of ``event``."""
        self._subscribers[event].append(callback)

    def on_dialog_opening(self, callback: EventCallback) -> None:
        self.on(DIALOG_OPENING, callback)

    def expect_event(self, event: str) -> asyncio.Future[dict[str, Any]]:
        """Register interest in the next ``event`` before triggering it."""
        waiter: asyncio.Future[dict[str, Any]] = asyncio.get_running_loop().create_future()
        self._waiters[event].append(waiter)
        return waiter

    def _discard_waiter(self, event: str, waiter: asyncio.Future[dict[str, Any]]) -> None:
        waiters = self._waiters.get(event)
        if waiters and waiter in waiters:
            waiters.remove(waiter)
        if not waiter.done():
            waiter.cancel()

    async def _await_event(
        self, event: str, waiter: asyncio.Future[dict[str, Any]], timeout: int, what: str
    ) -> dict[str, Any]:
        try:
            return await asyncio.wait_for(asyncio.shield(waiter), timeout / 1000)
        except asyncio.TimeoutError as e:
            raise WaitTimeout(f"Timed out waiting for {what}", timeout) from e
        finally:
            self._discard_waiter(event, waiter)

    async def navigate(self, url: str, timeout: int | None = None) -> None:
        """Navigate and wait for the load event.

        Raises:
            NavigationError: If the browser reports the navigation failed.
            WaitTimeout: If the page does not finish loading in time.
        """
        timeout = self._load_timeout if timeout is None else timeout
        loaded = self.expect_event(LOAD_EVENT)
        try:
            result = await self.send("Page.navigate", {"url": url})
        except BaseException:
            self._discard_waiter(LOAD_EVENT, loaded)
            raise

        if result.get("errorText"):
            self._discard_waiter(LOAD_EVENT, loaded)
            raise NavigationError(f"Navigation to {url} failed: {result['errorText']}")
        if not result.get("loaderId"):
            # Same-document navigation (fragment change) fires no load event.
            self._discard_waiter(LOAD_EVENT, loaded)
            return
        await self._await_event(LOAD_EVENT, loaded, timeout, f"load of {url}")

    async def wait_for_load(self, timeout: int | None = None) -> None:
        """Wait until the document has finished loading."""
        timeout = self._load_timeout if timeout is None else timeout
        loaded = self.expect_event(LOAD_EVENT)
        try:
            state = await self.evaluate("document.readyState")
        except BaseException:
            self._discard_waiter(LOAD_EVENT, loaded)
            raise
        if state == "complete":
            self._discard_waiter(LOAD_EVENT, loaded)
            return
        await self._await_event(LOAD_EVENT, loaded, timeout, "page load")

    async def evaluate(self, expression: str) -> Any:
        """Evaluate ``expression`` in the page and return its JSON value.

        Raises:
            EvaluationError: If the script throws.
        """
        result = await self.send(
            "Runtime.evaluate",
            {"expression": expression, "returnByValue": True, "awaitPromise": True},
        )
        details = result.get("exceptionDetails")
        if details:
            exception = details.get("exception") or {}
            text = exception.get("description") or details.get("text", "script error")
            raise EvaluationError(f"Evaluation failed: {text}")
        return result.get("result", {}).get("value")

    async def dispatch_mouse_event(
        self,
        type: str,
        x: float,
        y: float,
        button: str = "none",
        click_count: int = 0,
    ) -> None:
        await self.send(
            "Input.dispatchMouseEvent",
            {"type": type, "x": x, "y": y, "button": button, "clickCount": click_count},
        )

    async def dispatch_key_event(self, type: str, **params: Any) -> None:
        await self.send("Input.dispatchKeyEvent", {"type": type, **params})

    async def handle_dialog(self, accept: bool, prompt_text: str | None = None) -> None:
        params: dict[str, Any] = {"accept": accept}
        if prompt_text is not None:
            params["promptText"] = prompt_text
        await self.send("Page.handleJavaScriptDialog", params)

    async def close(self) -> None:
        """Close the socket; pending commands fail with SessionClosed."""
        if self._ws is None:
            return
        self._closed = True
        try:
            await self._ws.close()
        finally:
            if self._reader is not None:
                await asyncio.gather(self._reader, return_exceptions=True)
            self._fail_pending()
        logger.debug(f"Closed session to target {self._target_id}")


class DevToolsEndpoint:
    """The browser's HTTP debugging endpoint: target registry and attach.

    Args:
        host: Debugging host.
        port: Debugging port.
        command_timeout: Passed to attached sessions.
        load_timeout: Passed to attached sessions.
        transport: Optional httpx transport (tests use ``httpx.MockTransport``).
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 9222,
        command_timeout: int = 30000,
        load_timeout: int = 30000,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.host = host
        self.port = port
        self._command_timeout = command_timeout
        self._load_timeout = load_timeout
        self._transport = transport

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    async def _get_json(self, path: str) -> Any:
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(
                transport=self._transport, timeout=HTTP_TIMEOUT
            ) as client:
                response = await client.get(url)
                response.raise_for_status()
                return response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise CDPConnectionError(url) from e

    async def version(self) -> dict[str, Any]:
        """Return the browser's ``/json/version`` info."""
        return await self._get_json("/json/version")

    async def _page_entries(self) -> list[dict[str, Any]]:
        entries = await self._get_json("/json/list")
        return [
            entry
            for entry in entries
            if entry.get("type") == "page" and entry.get("webSocketDebuggerUrl")
        ]

    async def list_targets(self) -> list[TargetInfo]:
        """List attachable page targets in registry order."""
        return [
            TargetInfo(id=entry["id"], url=entry.get("url", ""), title=entry.get("title", ""))
            for entry in await self._page_entries()
        ]

    async def attach(self, target_id: str) -> CDPSession:
        """Open a session to ``target_id`` with the Page domain enabled.

        Raises:
            TargetNotFound: If no attachable page target has that id.
        """
        for entry in await self._page_entries():
            if entry["id"] == target_id:
                session = CDPSession(
                    entry["webSocketDebuggerUrl"],
                    target_id,
                    command_timeout=self._command_timeout,
                    load_timeout=self._load_timeout,
                )
                await session.connect()
                try:
                    await session.send("Page.enable")
                except BaseException:
                    await session.close()
                    raise
                logger.debug(f"Attached to target {target_id} ({entry.get('url', '')})")
                return session
        raise TargetNotFound(f"No page target with id {target_id!r}")
