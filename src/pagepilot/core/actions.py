"""Action executor.

Turns the public verbs into protocol operations. Every verb resolves its
element through one evaluated script first; failures come back as query
outcomes and are raised here, before any input event is dispatched.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from typing import Any

from pagepilot.core.expressions import (
    IS_DISABLED,
    IS_EDITABLE,
    IS_SELECTED,
    IS_VISIBLE,
    MEASURE_RECT,
    NOT_CHECKABLE,
    NOT_SELECTABLE,
    OPTION_NOT_FOUND,
    READ_TEXT,
    REMEASURE_RECT,
    Operation,
    build_frame_content,
    build_frame_evaluate,
    build_presence,
    build_query,
    normalize_options,
    parse_outcome,
    read_attribute,
    select_options,
    toggle_checked,
)
from pagepilot.core.frames import FrameChain, describe_chain, resolve_chain
from pagepilot.core.protocols import (
    STRICT,
    Ambiguous,
    Cardinality,
    Found,
    FrameUnreachable,
    NotFound,
    OutOfRange,
    Point,
    ProtocolSession,
    QueryOutcome,
    Rect,
    Rejected,
    Selector,
)
from pagepilot.core.selectors import resolve
from pagepilot.core.waits import poll_until
from pagepilot.utils.config import EngineConfig
from pagepilot.utils.exceptions import (
    AmbiguousSelector,
    ElementNotFound,
    EvaluationError,
    FrameNotAccessible,
    IndexOutOfRange,
    NotCheckable,
    NotSelectable,
    OptionNotFound,
)

logger = logging.getLogger(__name__)

SessionGetter = Callable[[], ProtocolSession]

# DevTools key definitions for named keys.
KEY_DEFINITIONS: dict[str, dict[str, Any]] = {
    "Enter": {"key": "Enter", "code": "Enter", "windowsVirtualKeyCode": 13, "text": "\r"},
    "Tab": {"key": "Tab", "code": "Tab", "windowsVirtualKeyCode": 9},
    "Escape": {"key": "Escape", "code": "Escape", "windowsVirtualKeyCode": 27},
    "Backspace": {"key": "Backspace", "code": "Backspace", "windowsVirtualKeyCode": 8},
    "Delete": {"key": "Delete", "code": "Delete", "windowsVirtualKeyCode": 46},
    "ArrowUp": {"key": "ArrowUp", "code": "ArrowUp", "windowsVirtualKeyCode": 38},
    "ArrowDown": {"key": "ArrowDown", "code": "ArrowDown", "windowsVirtualKeyCode": 40},
    "ArrowLeft": {"key": "ArrowLeft", "code": "ArrowLeft", "windowsVirtualKeyCode": 37},
    "ArrowRight": {"key": "ArrowRight", "code": "ArrowRight", "windowsVirtualKeyCode": 39},
    "Home": {"key": "Home", "code": "Home", "windowsVirtualKeyCode": 36},
    "End": {"key": "End", "code": "End", "windowsVirtualKeyCode": 35},
    "PageUp": {"key": "PageUp", "code": "PageUp", "windowsVirtualKeyCode": 33},
    "PageDown": {"key": "PageDown", "code": "PageDown", "windowsVirtualKeyCode": 34},
    "Space": {"key": " ", "code": "Space", "windowsVirtualKeyCode": 32, "text": " "},
}


def key_params(key: str) -> dict[str, Any]:
    """Key event parameters for a named key or a single character."""
    if key in KEY_DEFINITIONS:
        return dict(KEY_DEFINITIONS[key])
    if len(key) == 1:
        return {"key": key, "text": key}
    return {"key": key}


def raise_for_outcome(outcome: QueryOutcome) -> Found[Any]:
    """Return a Found outcome, or raise the error matching the failure.

    Raises:
        ElementNotFound, AmbiguousSelector, IndexOutOfRange: Locator failures.
        FrameNotAccessible: A frame chain step failed.
        NotSelectable, NotCheckable, OptionNotFound: The element rejected the operation.
    """
    if isinstance(outcome, Found):
        return outcome
    if isinstance(outcome, NotFound):
        raise ElementNotFound(outcome.selector.raw, outcome.selector.canonical)
    if isinstance(outcome, Ambiguous):
        raise AmbiguousSelector(outcome.selector.raw, outcome.selector.canonical, outcome.count)
    if isinstance(outcome, OutOfRange):
        raise IndexOutOfRange(
            outcome.selector.raw, outcome.selector.canonical, outcome.count, outcome.index
        )
    if isinstance(outcome, FrameUnreachable):
        raise FrameNotAccessible(outcome.frame_selector.raw, outcome.frame_index, outcome.count)
    if isinstance(outcome, Rejected):
        raw = outcome.selector.raw
        if outcome.reason == NOT_SELECTABLE:
            raise NotSelectable(raw)
        if outcome.reason == NOT_CHECKABLE:
            raise NotCheckable(raw, outcome.detail)
        if outcome.reason == OPTION_NOT_FOUND:
            raise OptionNotFound(raw, outcome.detail or "")
    raise EvaluationError(f"Unhandled query outcome: {outcome!r}")


class ActionExecutor:
    """Runs verbs against the current session, optionally inside a frame chain.

    The session is fetched through ``get_session`` on every call, never
    cached, so a tab switch takes effect on the next verb.

    Args:
        get_session: Returns the session to act on.
        config: Delays and timeouts.
        frames: Raw iframe selectors from the top document to the target frame.
    """

    def __init__(
        self,
        get_session: SessionGetter,
        config: EngineConfig | None = None,
        frames: Sequence[str] = (),
    ) -> None:
        self._get_session = get_session
        self.config = config or EngineConfig()
        self.frames = tuple(frames)

    def with_frame(self, selector: str) -> ActionExecutor:
        """Executor scoped one iframe deeper."""
        resolve(selector)
        return ActionExecutor(self._get_session, self.config, self.frames + (selector,))

    @property
    def in_frame(self) -> bool:
        return bool(self.frames)

    def _chain(self) -> FrameChain:
        return resolve_chain(self.frames)

    # =====================================================================
    # Resolution
    # =====================================================================

    async def run(
        self, selector: Selector, cardinality: Cardinality, operation: Operation
    ) -> QueryOutcome:
        """Evaluate ``operation`` against one element and return the outcome."""
        chain = self._chain()
        script = build_query(selector, cardinality, operation, chain)
        value = await self._get_session().evaluate(script)
        outcome = parse_outcome(value, selector, chain)
        logger.debug(f"{operation.name} `{selector.raw}`{cardinality.describe()}: {outcome}")
        return outcome

    async def query(
        self, raw: str, operation: Operation, cardinality: Cardinality = STRICT
    ) -> Any:
        """Run ``operation`` and return its value, raising on any failure."""
        outcome = await self.run(resolve(raw), cardinality, operation)
        return raise_for_outcome(outcome).value

    async def locate(self, raw: str, cardinality: Cardinality = STRICT) -> Point:
        """Scroll the element into view and return its settled center point.

        The element is measured, then measured again after the settle delay
        to absorb layout shift from scrolling. If the second measurement
        fails, the first one is used.
        """
        selector = resolve(raw)
        first = Rect.from_dict(
            raise_for_outcome(await self.run(selector, cardinality, MEASURE_RECT)).value
        )
        await asyncio.sleep(self.config.settle_delay / 1000)
        try:
            outcome = await self.run(selector, cardinality, REMEASURE_RECT)
        except EvaluationError as e:
            logger.debug(f"Re-measure of `{raw}` failed, using first measurement: {e}")
            return first.center()
        if isinstance(outcome, Found):
            return Rect.from_dict(outcome.value).center()
        return first.center()

    # =====================================================================
    # Pointer verbs
    # =====================================================================

    async def _press_release(
        self, point: Point, button: str = "left", click_count: int = 1
    ) -> None:
        session = self._get_session()
        await session.dispatch_mouse_event(
            "mousePressed", point.x, point.y, button=button, click_count=click_count
        )
        await session.dispatch_mouse_event(
            "mouseReleased", point.x, point.y, button=button, click_count=click_count
        )

    async def click(self, raw: str, cardinality: Cardinality = STRICT) -> None:
        await self._press_release(await self.locate(raw, cardinality))

    async def double_click(self, raw: str, cardinality: Cardinality = STRICT) -> None:
        await self._press_release(await self.locate(raw, cardinality), click_count=2)

    async def right_click(self, raw: str, cardinality: Cardinality = STRICT) -> None:
        await self._press_release(await self.locate(raw, cardinality), button="right")

    async def hover(self, raw: str, cardinality: Cardinality = STRICT) -> None:
        point = await self.locate(raw, cardinality)
        await self._get_session().dispatch_mouse_event("mouseMoved", point.x, point.y)

    async def drag_and_drop(
        self,
        source: str,
        target: str,
        source_cardinality: Cardinality = STRICT,
        target_cardinality: Cardinality = STRICT,
    ) -> None:
        """Press on ``source``, move to ``target`` and release there."""
        start = await self.locate(source, source_cardinality)
        end = await self.locate(target, target_cardinality)
        session = self._get_session()
        await session.dispatch_mouse_event(
            "mousePressed", start.x, start.y, button="left", click_count=1
        )
        await session.dispatch_mouse_event("mouseMoved", end.x, end.y, button="left")
        await session.dispatch_mouse_event(
            "mouseReleased", end.x, end.y, button="left", click_count=1
        )

    # =====================================================================
    # Keyboard verbs
    # =====================================================================

    async def type(self, raw: str, text: str, cardinality: Cardinality = STRICT) -> None:
        """Click the element to focus it, then send one key pair per character."""
        if not isinstance(text, str):
            raise TypeError(f"type() expects text as a string, got {type(text).__name__}")
        await self.click(raw, cardinality)
        session = self._get_session()
        for char in text:
            await session.dispatch_key_event("keyDown", key=char, text=char)
            await session.dispatch_key_event("keyUp", key=char)

    async def press_key(self, key: str) -> None:
        params = key_params(key)
        session = self._get_session()
        await session.dispatch_key_event("keyDown", **params)
        params.pop("text", None)
        await session.dispatch_key_event("keyUp", **params)

    # =====================================================================
    # Form controls
    # =====================================================================

    async def select(self, raw: str, option: Any, cardinality: Cardinality = STRICT) -> list[str]:
        """Select option(s) in a <select>; a list replaces the whole selection.

        Returns:
            Values of the options selected afterwards.
        """
        options = normalize_options(option)
        return await self.query(raw, select_options(options), cardinality)

    async def set_checked(self, raw: str, checked: bool, cardinality: Cardinality = STRICT) -> None:
        state = await self.query(raw, toggle_checked(checked), cardinality)
        if not state.get("changed"):
            logger.debug(f"`{raw}` already {'checked' if checked else 'unchecked'}")
            return
        await self._press_release(Rect.from_dict(state["rect"]).center())

    async def check(self, raw: str, cardinality: Cardinality = STRICT) -> None:
        await self.set_checked(raw, True, cardinality)

    async def uncheck(self, raw: str, cardinality: Cardinality = STRICT) -> None:
        await self.set_checked(raw, False, cardinality)

    # =====================================================================
    # Reads
    # =====================================================================

    async def text_content(self, raw: str, cardinality: Cardinality = STRICT) -> str:
        return await self.query(raw, READ_TEXT, cardinality)

    async def get_attribute(self, raw: str, name: str, cardinality: Cardinality = STRICT) -> str:
        return await self.query(raw, read_attribute(name), cardinality)

    async def is_visible(self, raw: str, cardinality: Cardinality = STRICT) -> bool:
        return bool(await self.query(raw, IS_VISIBLE, cardinality))

    async def is_disabled(self, raw: str, cardinality: Cardinality = STRICT) -> bool:
        return bool(await self.query(raw, IS_DISABLED, cardinality))

    async def is_editable(self, raw: str, cardinality: Cardinality = STRICT) -> bool:
        return bool(await self.query(raw, IS_EDITABLE, cardinality))

    async def is_selected(self, raw: str, cardinality: Cardinality = STRICT) -> bool:
        return bool(await self.query(raw, IS_SELECTED, cardinality))

    async def evaluate(self, expression: str) -> Any:
        """Evaluate caller code in the page, or in the innermost frame's window."""
        if not self.frames:
            return await self._get_session().evaluate(expression)
        chain = self._chain()
        value = await self._get_session().evaluate(build_frame_evaluate(expression, chain))
        return raise_for_outcome(parse_outcome(value, None, chain)).value

    async def content(self) -> str:
        """Serialized HTML of the page, or of the innermost frame's document."""
        if not self.frames:
            return await self._get_session().evaluate("document.documentElement.outerHTML")
        chain = self._chain()
        value = await self._get_session().evaluate(build_frame_content(chain))
        return raise_for_outcome(parse_outcome(value, None, chain)).value

    # =====================================================================
    # Waits
    # =====================================================================

    async def wait_for_selector(self, raw: str, timeout: int | None = None) -> int:
        """Wait until ``raw`` matches at least one element.

        Frames that are missing or still loading count as "not yet".

        Returns:
            Number of matching elements when the wait succeeded.

        Raises:
            WaitTimeout: If nothing matched within the timeout.
        """
        timeout = self.config.selector_timeout if timeout is None else timeout
        selector = resolve(raw)
        script = build_presence(selector, self._chain())

        async def present() -> tuple[bool, Any]:
            state = await self._get_session().evaluate(script) or {}
            if not state.get("frameReady", True):
                return False, f"frame not ready: {describe_chain(self._chain())}"
            count = int(state.get("count", 0))
            return count > 0, count

        where = " in frame" if self.frames else ""
        return await poll_until(
            present, timeout, self.config.poll_interval, f"selector `{raw}`{where}"
        )
