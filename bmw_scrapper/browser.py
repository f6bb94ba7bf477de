"""
Guarded access to the Playwright page.

Every read or action that may hit a detached, hidden or not-yet-rendered node
goes through :func:`probe`, which separates the expected "not there yet"
outcome (a Playwright timeout) from any other automation error. The latter is
still absorbed but logged, so flaky selectors show up under ``--log-level DEBUG``.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from bmw_scrapper.selectors import UX
from utils.logger import Logger

logger = Logger(__name__).get_logger()


@dataclass(frozen=True)
class Probe:
    """Outcome of one guarded automation call."""

    ok: bool
    value: Any = None
    error: Optional[BaseException] = None

    @property
    def unexpected(self) -> bool:
        return self.error is not None


async def probe(action: Callable[..., Awaitable[Any]], *args, default: Any = None, **kwargs) -> Probe:
    try:
        value = await action(*args, **kwargs)
    except PlaywrightTimeoutError:
        return Probe(False, default)
    except PlaywrightError as e:
        logger.debug(f"{getattr(action, '__name__', action)} failed: {e}")
        return Probe(False, default, e)
    return Probe(True, value)


async def sleep_ms(ms: int) -> None:
    await asyncio.sleep(ms / 1000)


async def safe_count(locator) -> int:
    return (await probe(locator.count, default=0)).value or 0


async def safe_visible(locator) -> bool:
    return bool((await probe(locator.is_visible, default=False)).value)


async def safe_text(locator) -> str:
    text = (await probe(locator.inner_text, default="")).value
    return (text or "").strip()


async def safe_attr(locator, name: str) -> Optional[str]:
    return (await probe(locator.get_attribute, name)).value


async def safe_click(locator, **kwargs) -> bool:
    return (await probe(locator.click, **kwargs)).ok


async def wait_for_state(locator, state: str = "visible", timeout: int = 1000) -> bool:
    return (await probe(locator.wait_for, state=state, timeout=timeout)).ok


async def any_visible(page, selectors: Iterable[str]) -> bool:
    for selector in selectors:
        if await safe_visible(page.locator(selector).first):
            return True
    return False


async def accept_cookies(page) -> bool:
    button = page.locator(UX.COOKIE_ACCEPT).first
    if await safe_visible(button) and await safe_click(button):
        logger.info("Accepted cookies.")
        return True
    return False


async def scroll_to_bottom(page, steps: int = 12, delay_ms: int = 150) -> None:
    """Scroll in viewport-sized steps so lazy sections get rendered."""
    for _ in range(steps):
        await probe(page.evaluate, "() => window.scrollBy(0, Math.floor(window.innerHeight * 0.9))")
        await sleep_ms(delay_ms)


async def press_page_down(page, presses: int = 5, delay_ms: int = 120) -> None:
    for _ in range(presses):
        await probe(page.keyboard.press, "PageDown")
        await sleep_ms(delay_ms)
