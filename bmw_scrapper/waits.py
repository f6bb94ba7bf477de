"""
Readiness and retry primitives: bounded polling, count debouncing and
click-when-topmost. They report success as a bool and never let a Playwright
error escape.
"""

from __future__ import annotations

import time
from typing import Awaitable, Callable

from playwright.async_api import Error as PlaywrightError

from bmw_scrapper.browser import probe, safe_count, sleep_ms
from utils.logger import Logger

logger = Logger(__name__).get_logger()

# True when the element at (x, y) is, or sits inside, a node matching selector
HIT_TEST_JS = """({x, y, selector}) => {
    const top = document.elementFromPoint(x, y);
    if (!top) return false;
    return !!top.closest(selector);
}"""


async def poll_until(
    predicate: Callable[[], Awaitable[bool]],
    timeout_ms: int,
    interval_ms: int = 150,
) -> bool:
    """Evaluate ``predicate`` every ``interval_ms`` until it holds or time runs out."""
    deadline = time.monotonic() + timeout_ms / 1000
    while True:
        try:
            if await predicate():
                return True
        except PlaywrightError as e:
            logger.debug(f"poll predicate raised: {e}")
        if time.monotonic() >= deadline:
            return False
        await sleep_ms(interval_ms)


async def wait_for_stable_count(locator, timeout_ms: int = 1000, interval_ms: int = 200) -> bool:
    """Wait until two consecutive samples of ``locator.count()`` agree and are non-zero."""
    previous = await safe_count(locator)
    deadline = time.monotonic() + timeout_ms / 1000
    while time.monotonic() < deadline:
        await sleep_ms(interval_ms)
        current = await safe_count(locator)
        if current > 0 and current == previous:
            return True
        previous = current
    return False


async def element_center(locator):
    box = (await probe(locator.bounding_box)).value
    if not box:
        return None
    return box["x"] + box["width"] / 2, box["y"] + box["height"] / 2


async def is_topmost(page, locator, selector: str) -> bool:
    center = await element_center(locator)
    if center is None:
        return False
    x, y = center
    result = await probe(page.evaluate, HIT_TEST_JS, {"x": x, "y": y, "selector": selector})
    return bool(result.value)


async def click_when_topmost(
    page,
    locator,
    selector: str,
    timeout_ms: int = 1750,
    interval_ms: int = 120,
    click_timeout_ms: int = 1500,
    before_attempt: Callable[[], Awaitable[None]] | None = None,
) -> bool:
    """Click ``locator`` only once nothing overlays its centre.

    ``selector`` identifies the element family for the hit test (the topmost
    node must be inside a match). Falls back to a raw mouse down/up at the
    centre when the element never surfaces within ``timeout_ms``.
    """
    deadline = time.monotonic() + timeout_ms / 1000
    while time.monotonic() < deadline:
        if before_attempt is not None:
            await before_attempt()
        if await is_topmost(page, locator, selector):
            clicked = await probe(locator.click, timeout=click_timeout_ms)
            if clicked.ok:
                return True
            if clicked.unexpected and "intercepts pointer events" not in str(clicked.error):
                logger.debug(f"click on topmost element failed: {clicked.error}")
        await sleep_ms(interval_ms)

    center = await element_center(locator)
    if center is None:
        return False
    x, y = center
    moved = await probe(page.mouse.move, x, y)
    if not moved.ok:
        return False
    pressed = await probe(page.mouse.down)
    released = await probe(page.mouse.up)
    return pressed.ok and released.ok
