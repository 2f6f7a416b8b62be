"""Exception hierarchy for pagepilot."""


class PagePilotError(Exception):
    """Base exception for all pagepilot errors."""


class TransientError(PagePilotError):
    """Retry-able errors such as timeouts or elements that have not rendered yet."""


class PermanentError(PagePilotError):
    """Non-retry-able errors that require a change to the test or its setup."""


class ConfigurationError(PermanentError):
    """Invalid or missing configuration."""


class LocatorError(PagePilotError):
    """A selector did not resolve to exactly the element that was asked for.

    Attributes:
        selector: The selector as the caller wrote it.
        resolved: The canonical query the selector was rewritten to.
        count: Number of elements the query matched.
        index: Requested index, when one was given.
    """

    def __init__(
        self,
        message: str,
        selector: str,
        resolved: str,
        count: int = 0,
        index: int | None = None,
    ) -> None:
        self.selector = selector
        self.resolved = resolved
        self.count = count
        self.index = index
        super().__init__(message)


class ElementNotFound(LocatorError, TransientError):  # noqa: N818
    """Selector matched no element, may succeed on retry."""

    def __init__(self, selector: str, resolved: str) -> None:
        super().__init__(
            f"Locator failed: No element found for `{selector}` "
            f"(resolved to selector: {resolved})",
            selector=selector,
            resolved=resolved,
        )


class AmbiguousSelector(LocatorError, PermanentError):
    """Selector matched several elements under strict mode."""

    def __init__(self, selector: str, resolved: str, count: int) -> None:
        super().__init__(
            f"Locator failed: Selector `{selector}` resolved to {count} elements. "
            "Use .first(), .last(), or .nth(n).",
            selector=selector,
            resolved=resolved,
            count=count,
        )


class IndexOutOfRange(LocatorError, PermanentError):
    """Requested element index is outside the matched range."""

    def __init__(self, selector: str, resolved: str, count: int, index: int) -> None:
        if count:
            hint = f"use 0 to {count - 1}"
        else:
            hint = "no element matched"
        super().__init__(
            f"Locator failed: .nth({index}) out of range for `{selector}`: "
            f"selector matched {count} elements ({hint}).",
            selector=selector,
            resolved=resolved,
            count=count,
            index=index,
        )


class ElementStateError(PermanentError):
    """The matched element cannot take the requested action."""

    def __init__(self, message: str, selector: str) -> None:
        self.selector = selector
        super().__init__(message)


class NotSelectable(ElementStateError):  # noqa: N818
    """select() was called on an element that is not a <select>."""

    def __init__(self, selector: str) -> None:
        super().__init__(
            f"Select failed: element is not a <select>: `{selector}`", selector
        )


class NotCheckable(ElementStateError):  # noqa: N818
    """check()/uncheck() was called on something other than a checkbox or radio."""

    def __init__(self, selector: str, detail: str | None = None) -> None:
        message = f"Check failed: element is not a checkbox or radio: `{selector}`"
        if detail:
            message = f"Check failed: {detail}: `{selector}`"
        super().__init__(message, selector)


class OptionNotFound(ElementStateError):  # noqa: N818
    """A requested <option> does not exist in the <select>."""

    def __init__(self, selector: str, option: str) -> None:
        self.option = option
        super().__init__(
            f"Select failed: no option matching {option} in `{selector}`", selector
        )


class FrameNotAccessible(PermanentError):  # noqa: N818
    """An iframe in a frame chain is missing, ambiguous or cross-origin.

    Attributes:
        frame_selector: The frame selector as the caller wrote it.
        frame_index: Position of the failing step in the chain (0 = outermost).
    """

    def __init__(self, frame_selector: str, frame_index: int, count: int = 0) -> None:
        self.frame_selector = frame_selector
        self.frame_index = frame_index
        self.count = count
        super().__init__(
            f"Frame not accessible: `{frame_selector}` (frame {frame_index} in chain) "
            f"matched {count} element(s) or is cross-origin"
        )


class WaitTimeout(TransientError):
    """A wait did not succeed within its time bound.

    Attributes:
        timeout_ms: The bound that elapsed, in milliseconds.
        last_observed: The last state seen before giving up (e.g. current URL).
    """

    def __init__(self, message: str, timeout_ms: int, last_observed: object = None) -> None:
        self.timeout_ms = timeout_ms
        self.last_observed = last_observed
        detail = f"{message} within {timeout_ms}ms"
        if last_observed is not None:
            detail += f" (last observed: {last_observed})"
        super().__init__(detail)


class NavigationError(TransientError):
    """Page navigation failed, may succeed on retry."""


class EvaluationError(PermanentError):
    """A script evaluated in the page threw or returned an unusable value."""


class TargetNotFound(PermanentError):  # noqa: N818
    """No browsing-context target matches the requested index or id."""


class SessionClosed(PermanentError):  # noqa: N818
    """The protocol session was closed while a command was pending."""


class ProtocolError(PermanentError):
    """The browser answered a protocol command with an error.

    Attributes:
        method: The protocol method that failed.
        code: The protocol error code.
    """

    def __init__(self, method: str, code: int, message: str) -> None:
        self.method = method
        self.code = code
        super().__init__(f"{method} failed ({code}): {message}")


class BrowserLaunchError(PermanentError):
    """The browser process could not be started or did not open its debugging port."""


class CDPConnectionError(PermanentError):
    """Cannot connect to Chrome via CDP (Chrome DevTools Protocol).

    This error occurs when the engine cannot reach the browser's debugging
    endpoint or open a WebSocket to one of its targets.
    """

    def __init__(self, url: str) -> None:
        """Initialize CDPConnectionError with the target URL.

        Args:
            url: The CDP URL that could not be connected to.
        """
        self.url = url
        super().__init__(
            f"Cannot connect to Chrome at {url}. "
            "Is Chrome running with --remote-debugging-port?"
        )
