"""Integration tests for nested same-origin iframes."""

import pytest

from pagepilot import Browser
from pagepilot.utils.exceptions import FrameNotAccessible

pytestmark = pytest.mark.integration


@pytest.fixture
async def frames(browser: Browser, page_server) -> Browser:
    await browser.goto(page_server.url("frames.html"))
    return browser


class TestFrameChain:
    """Verbs two frames deep."""

    async def test_click_two_frames_deep(self, frames: Browser, steps: list[str]) -> None:
        """Clicks land on the element inside the nested frame."""
        inner = frames.frame("#outer").frame("#inner")
        await inner.click("#deep")
        assert await inner.text_content("#status") == "clicked"
        assert "Click #deep (in frame)" in steps

    async def test_type_in_frame(self, frames: Browser) -> None:
        """Keyboard input reaches the focused frame input."""
        inner = frames.frame("#outer").frame("#inner")
        await inner.type("#field", "deep")
        assert await inner.evaluate("document.getElementById('field').value") == "deep"

    async def test_evaluate_in_frame_window(self, frames: Browser) -> None:
        """evaluate runs in the innermost frame's window."""
        assert await frames.frame("#outer").frame("#inner").evaluate("frameName") == "inner"
        assert await frames.evaluate("typeof frameName") == "undefined"

    async def test_frame_content(self, frames: Browser) -> None:
        """content() serializes the frame's document."""
        html = await frames.frame("#outer").content()
        assert "Outer frame" in html
        assert "Deep" not in html

    async def test_top_level_selectors_do_not_see_frames(self, frames: Browser) -> None:
        """Selectors are scoped to one document."""
        assert await frames.frame("#outer").text_content("#label") == "Outer frame"
        assert await frames.wait_for_selector("#outer") == 1

    async def test_missing_frame(self, frames: Browser) -> None:
        """A chain step matching nothing reports its position."""
        with pytest.raises(FrameNotAccessible) as exc_info:
            await frames.frame("#outer").frame("#nope").click("#deep")
        assert exc_info.value.frame_index == 1
        assert exc_info.value.frame_selector == "#nope"
