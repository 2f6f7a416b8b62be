"""Wait engine: poll a condition until it holds or a timeout elapses."""

from __future__ import annotations

import asyncio
import logging
import re
import time
from collections.abc import Awaitable, Callable
from typing import Any, Union

from pagepilot.utils.exceptions import EvaluationError, ProtocolError, WaitTimeout

logger = logging.getLogger(__name__)

# A condition reports whether it holds and what it saw while checking.
Condition = Callable[[], Awaitable[tuple[bool, Any]]]

UrlPattern = Union[str, re.Pattern[str]]


async def poll_until(
    condition: Condition,
    timeout_ms: int,
    interval_ms: int,
    description: str,
) -> Any:
    """Evaluate ``condition`` now, then every ``interval_ms`` until it holds.

    The condition is checked one last time at the deadline, so a wait
    never overruns its timeout by more than one poll interval. Protocol and
    evaluation errors raised by the condition (a document being replaced
    mid-navigation) count as "not yet" and become the last observed state.

    Args:
        condition: Async callable returning ``(ok, observed)``.
        timeout_ms: Upper bound for the whole wait.
        interval_ms: Pause between checks.
        description: What is being waited for, used in the timeout message.

    Returns:
        The ``observed`` value of the successful check.

    Raises:
        WaitTimeout: If the condition did not hold within ``timeout_ms``.
    """
    deadline = time.monotonic() + timeout_ms / 1000
    polls = 0
    while True:
        try:
            ok, observed = await condition()
        except (ProtocolError, EvaluationError) as e:
            logger.debug(f"{description}: check failed, retrying: {e}")
            ok, observed = False, str(e)
        polls += 1
        if ok:
            logger.debug(f"{description}: satisfied after {polls} check(s)")
            return observed

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise WaitTimeout(f"Timed out waiting for {description}", timeout_ms, observed)
        await asyncio.sleep(min(interval_ms / 1000, remaining))


def glob_to_regex(glob: str) -> re.Pattern[str]:
    """Translate a URL glob: ``**`` matches anything, ``*`` anything but ``/``."""
    parts = []
    i = 0
    while i < len(glob):
        if glob.startswith("**", i):
            parts.append(".*")
            i += 2
        elif glob[i] == "*":
            parts.append("[^/]*")
            i += 1
        else:
            parts.append(re.escape(glob[i]))
            i += 1
    return re.compile("".join(parts))


def url_matcher(pattern: UrlPattern) -> Callable[[str], bool]:
    """Build a predicate for ``wait_for_url``.

    - a compiled pattern is searched in the URL as given,
    - a string containing ``**`` is a glob that must match the whole URL,
    - any other string is a substring test.
    """
    if isinstance(pattern, re.Pattern):
        return lambda url: pattern.search(url) is not None
    if not isinstance(pattern, str):
        raise TypeError(
            f"URL pattern must be a string or compiled regex, got {type(pattern).__name__}"
        )
    if "**" in pattern:
        regex = glob_to_regex(pattern)
        return lambda url: regex.fullmatch(url) is not None
    return lambda url: pattern in url


def describe_pattern(pattern: UrlPattern) -> str:
    if isinstance(pattern, re.Pattern):
        return f"/{pattern.pattern}/"
    return repr(pattern)
