"""Core protocols and data types for pagepilot.

This module defines the foundational types and protocols that all other
components depend on. It includes:
- Selector and cardinality types used to address DOM elements
- Query outcome types returned by every DOM-facing script
- Dialog and target data classes
- Protocol definitions for the injected session and target registry
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Generic, Protocol, TypeVar, Union

T = TypeVar("T")


class SelectorKind(Enum):
    """Query language a canonical selector is written in."""

    STRUCTURAL = auto()  # CSS
    PATH = auto()  # XPath


@dataclass(frozen=True)
class Selector:
    """A caller-authored selector and its canonical query.

    Attributes:
        raw: The selector exactly as the caller wrote it.
        canonical: The query sent to the page after shorthand rewriting.
        kind: Which query language ``canonical`` uses.
    """

    raw: str
    canonical: str
    kind: SelectorKind

    @property
    def is_path(self) -> bool:
        return self.kind is SelectorKind.PATH


class CardinalityKind(Enum):
    """How to pick an element when a selector may match several."""

    STRICT = auto()
    FIRST = auto()
    LAST = auto()
    NTH = auto()


@dataclass(frozen=True)
class Cardinality:
    """Element pick policy for a locator.

    ``STRICT`` requires exactly one match. The other kinds pick an explicit
    element among several matches.
    """

    kind: CardinalityKind = CardinalityKind.STRICT
    index: int = 0

    @classmethod
    def strict(cls) -> Cardinality:
        return cls(CardinalityKind.STRICT)

    @classmethod
    def first(cls) -> Cardinality:
        return cls(CardinalityKind.FIRST)

    @classmethod
    def last(cls) -> Cardinality:
        return cls(CardinalityKind.LAST)

    @classmethod
    def nth(cls, index: int) -> Cardinality:
        if isinstance(index, bool) or not isinstance(index, int):
            raise TypeError(f"nth() expects an integer index, got {type(index).__name__}")
        return cls(CardinalityKind.NTH, index)

    def describe(self) -> str:
        """Return the locator suffix this cardinality corresponds to."""
        if self.kind is CardinalityKind.FIRST:
            return ".first()"
        if self.kind is CardinalityKind.LAST:
            return ".last()"
        if self.kind is CardinalityKind.NTH:
            return f".nth({self.index})"
        return ""


STRICT = Cardinality.strict()


@dataclass(frozen=True)
class Rect:
    """Element bounding box in top-level viewport coordinates."""

    x: float
    y: float
    width: float
    height: float

    def center(self) -> Point:
        return Point(self.x + self.width / 2, self.y + self.height / 2)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Rect:
        return cls(
            x=float(data["x"]),
            y=float(data["y"]),
            width=float(data["width"]),
            height=float(data["height"]),
        )


@dataclass(frozen=True)
class Point:
    """A viewport coordinate."""

    x: float
    y: float


# =====================================================================
# Query outcomes
# =====================================================================


@dataclass(frozen=True)
class Found(Generic[T]):
    """The selector resolved and the operation produced ``value``."""

    value: T
    count: int = 1
    index: int = 0


@dataclass(frozen=True)
class NotFound:
    """The selector matched no element."""

    selector: Selector
    count: int = 0


@dataclass(frozen=True)
class Ambiguous:
    """The selector matched several elements under strict cardinality."""

    selector: Selector
    count: int


@dataclass(frozen=True)
class OutOfRange:
    """The requested index is outside ``[0, count)``."""

    selector: Selector
    count: int
    index: int


@dataclass(frozen=True)
class FrameUnreachable:
    """A frame chain step did not lead to an accessible nested document."""

    frame_selector: Selector
    frame_index: int
    count: int = 0


@dataclass(frozen=True)
class Rejected:
    """The element was found but cannot take the requested operation.

    Attributes:
        reason: One of ``not-selectable``, ``not-checkable``, ``option-not-found``.
        detail: Extra context from the page (e.g. the missing option).
    """

    selector: Selector
    reason: str
    detail: str | None = None


QueryOutcome = Union[Found[Any], NotFound, Ambiguous, OutOfRange, FrameUnreachable, Rejected]


# =====================================================================
# Select options
# =====================================================================


@dataclass(frozen=True)
class SelectOption:
    """Identifies one <option> by visible label, value, or position.

    Exactly one of the fields must be set.
    """

    label: str | None = None
    value: str | None = None
    index: int | None = None

    def __post_init__(self) -> None:
        given = [f for f in (self.label, self.value, self.index) if f is not None]
        if len(given) != 1:
            raise ValueError("SelectOption needs exactly one of label, value or index")
        if self.index is not None and (
            isinstance(self.index, bool) or not isinstance(self.index, int)
        ):
            raise TypeError("SelectOption index must be an integer")

    def to_dict(self) -> dict[str, Any]:
        if self.label is not None:
            return {"label": self.label}
        if self.value is not None:
            return {"value": self.value}
        return {"index": self.index}

    def describe(self) -> str:
        key, val = next(iter(self.to_dict().items()))
        return f"{key}={val!r}"


SelectOptionSpec = Union[SelectOption, Mapping[str, Any], str, int]


# =====================================================================
# Dialogs
# =====================================================================


class DialogKind(Enum):
    """Native JavaScript dialog types."""

    ALERT = "alert"
    CONFIRM = "confirm"
    PROMPT = "prompt"
    BEFOREUNLOAD = "beforeunload"


@dataclass(frozen=True)
class DialogRequest:
    """A dialog the page opened, delivered to exactly one handler call."""

    kind: DialogKind
    message: str
    url: str = ""
    default_prompt: str = ""


@dataclass(frozen=True)
class DialogDecision:
    """How to resolve a dialog: accept (OK) or dismiss, plus prompt text."""

    accept: bool
    prompt_text: str | None = None


DialogHandler = Callable[[DialogRequest], "DialogDecision | Awaitable[DialogDecision]"]


# =====================================================================
# Targets and sessions
# =====================================================================


@dataclass(frozen=True)
class TargetInfo:
    """An open page-type browsing context."""

    id: str
    url: str = ""
    title: str = ""


TargetSnapshot = tuple[TargetInfo, ...]


class ProtocolSession(Protocol):
    """One connected channel bound to a single page target.

    The engine issues one command at a time per session and awaits its
    result before issuing the next.
    """

    @property
    def target_id(self) -> str:
        """Id of the target this session is bound to."""
        ...

    async def navigate(self, url: str, timeout: int | None = None) -> None:
        """Navigate the page and wait for its load event.

        Args:
            url: The URL to navigate to.
            timeout: Maximum time to wait for load in milliseconds.
        """
        ...

    async def wait_for_load(self, timeout: int | None = None) -> None:
        """Wait for the next load event of the page."""
        ...

    async def evaluate(self, expression: str) -> Any:
        """Evaluate a script in the page and return its JSON-safe value."""
        ...

    async def dispatch_mouse_event(
        self,
        type: str,
        x: float,
        y: float,
        button: str = "none",
        click_count: int = 0,
    ) -> None:
        """Dispatch one pointer event at viewport coordinates."""
        ...

    async def dispatch_key_event(self, type: str, **params: Any) -> None:
        """Dispatch one key event (``keyDown``/``keyUp``)."""
        ...

    def on_dialog_opening(
        self, callback: Callable[[dict[str, Any]], Awaitable[None]]
    ) -> None:
        """Subscribe to the dialog-opened event."""
        ...

    async def handle_dialog(self, accept: bool, prompt_text: str | None = None) -> None:
        """Resolve the currently open dialog."""
        ...

    async def close(self) -> None:
        """Close the connection."""
        ...


class TargetRegistry(Protocol):
    """The browser's list of targets plus the ability to attach to one."""

    async def list_targets(self) -> list[TargetInfo]:
        """List open page targets that can be attached to, in registry order."""
        ...

    async def attach(self, target_id: str) -> ProtocolSession:
        """Open a new session bound to the given target."""
        ...


@dataclass
class AutomationSession:
    """The live binding between the engine and one target."""

    session: ProtocolSession
    target_id: str
