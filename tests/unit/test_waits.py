"""Unit tests for the wait engine."""

import re
import time

import pytest

from pagepilot.core.waits import describe_pattern, glob_to_regex, poll_until, url_matcher
from pagepilot.utils.exceptions import (
    EvaluationError,
    ProtocolError,
    SessionClosed,
    WaitTimeout,
)


class Counter:
    """Condition that becomes true on the k-th check."""

    def __init__(self, succeed_on: int | None) -> None:
        self.succeed_on = succeed_on
        self.calls = 0

    async def __call__(self) -> tuple[bool, int]:
        self.calls += 1
        return self.succeed_on is not None and self.calls >= self.succeed_on, self.calls


class TestPollUntil:
    """Tests for poll_until."""

    @pytest.mark.asyncio
    async def test_immediate_success_checks_once(self) -> None:
        """A condition already true is checked exactly once."""
        condition = Counter(1)
        assert await poll_until(condition, 1000, 10, "thing") == 1
        assert condition.calls == 1

    @pytest.mark.asyncio
    async def test_success_after_k_polls_stops(self) -> None:
        """Polling stops as soon as the condition holds."""
        condition = Counter(4)
        assert await poll_until(condition, 1000, 5, "thing") == 4
        assert condition.calls == 4

    @pytest.mark.asyncio
    async def test_timeout_is_bounded(self) -> None:
        """A never-true condition fails within about one interval of the timeout."""
        condition = Counter(None)
        start = time.monotonic()
        with pytest.raises(WaitTimeout) as exc_info:
            await poll_until(condition, 100, 20, "thing")
        elapsed_ms = (time.monotonic() - start) * 1000
        assert 100 <= elapsed_ms < 100 + 20 + 100  # scheduling slack
        assert exc_info.value.timeout_ms == 100
        assert exc_info.value.last_observed == condition.calls

    @pytest.mark.asyncio
    async def test_timeout_message(self) -> None:
        """The message names what was awaited, the bound and the last state."""
        async def never() -> tuple[bool, str]:
            return False, "https://x/app"

        with pytest.raises(WaitTimeout, match=r"URL matching '/done' within 30ms") as exc_info:
            await poll_until(never, 30, 10, "URL matching '/done'")
        assert "last observed: https://x/app" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_zero_timeout_checks_once(self) -> None:
        """A zero timeout still evaluates the condition once."""
        condition = Counter(None)
        with pytest.raises(WaitTimeout):
            await poll_until(condition, 0, 10, "thing")
        assert condition.calls == 1

    @pytest.mark.asyncio
    async def test_destroyed_context_keeps_polling(self) -> None:
        """A check that fails mid-navigation is retried on the next poll."""
        results = [
            (False, "https://x/app/start"),
            ProtocolError("Runtime.evaluate", -32000, "Execution context was destroyed."),
            EvaluationError("Evaluation failed: Cannot find context"),
            (True, "https://x/app/login"),
        ]

        async def condition() -> tuple[bool, str]:
            result = results.pop(0)
            if isinstance(result, Exception):
                raise result
            return result

        assert await poll_until(condition, 1000, 5, "thing") == "https://x/app/login"
        assert results == []

    @pytest.mark.asyncio
    async def test_failing_check_reported_on_timeout(self) -> None:
        """The last error becomes the last observed state."""
        async def condition() -> tuple[bool, str]:
            raise ProtocolError("Runtime.evaluate", -32000, "Cannot find context with specified id")

        with pytest.raises(WaitTimeout) as exc_info:
            await poll_until(condition, 30, 10, "thing")
        assert "Cannot find context" in str(exc_info.value.last_observed)

    @pytest.mark.asyncio
    async def test_closed_session_is_not_retried(self) -> None:
        """Errors other than protocol or evaluation failures end the wait."""
        condition_calls = []

        async def condition() -> tuple[bool, str]:
            condition_calls.append(1)
            raise SessionClosed("Session closed")

        with pytest.raises(SessionClosed):
            await poll_until(condition, 1000, 5, "thing")
        assert len(condition_calls) == 1


class TestUrlMatcher:
    """Tests for URL pattern matching."""

    def test_glob_matches_suffix(self) -> None:
        """'**/login' matches any URL ending in /login."""
        assert url_matcher("**/login")("https://x/app/login")

    def test_glob_must_match_whole_url(self) -> None:
        """Globs are anchored at both ends."""
        assert not url_matcher("**/login")("https://x/app/login2")

    def test_substring(self) -> None:
        """Plain strings are substring matches."""
        assert url_matcher("/login")("https://x/app/login")
        assert not url_matcher("/logout")("https://x/app/login")

    def test_compiled_pattern_end_anchored(self) -> None:
        """An end-anchored regex rejects a longer path."""
        assert not url_matcher(re.compile(r"/login$"))("https://x/app/login2")
        assert url_matcher(re.compile(r"/login$"))("https://x/app/login")

    def test_single_star_stops_at_slash(self) -> None:
        """'*' matches within one path segment."""
        matcher = url_matcher("**/users/*/edit")
        assert matcher("https://x/users/42/edit")
        assert not matcher("https://x/users/42/x/edit")

    def test_glob_escapes_regex_characters(self) -> None:
        """Dots and question marks in globs are literal."""
        assert glob_to_regex("**/a.b?c").fullmatch("https://x/a.b?c")
        assert not glob_to_regex("**/a.b").fullmatch("https://x/aXb")

    def test_non_string_pattern(self) -> None:
        """Other types are a programming error."""
        with pytest.raises(TypeError):
            url_matcher(42)  # type: ignore[arg-type]

    def test_describe_pattern(self) -> None:
        """Patterns render readably in messages."""
        assert describe_pattern(re.compile("a+")) == "/a+/"
        assert describe_pattern("**/x") == "'**/x'"
