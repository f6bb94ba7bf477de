"""
Pass 1 traversal: all-models grid -> trim line -> engine variant.

The configurator shows engines either as inline tiles ("classic") or inside a
"Change engine" chooser modal ("modal"); which one appears differs by model and
sometimes by render. :class:`ConfiguratorWalker` tries both, captures the
build identity after each engine click and lets the run's
:class:`~bmw_scrapper.identity.DedupContext` decide whether it is new.
"""

from __future__ import annotations

import re
import time
from typing import AsyncIterator, Dict, List, Optional, Set, Tuple

from playwright.async_api import Error as PlaywrightError

from bmw_scrapper.browser import (
    any_visible,
    press_page_down,
    probe,
    safe_attr,
    safe_click,
    safe_count,
    safe_text,
    safe_visible,
    sleep_ms,
    wait_for_state,
)
from bmw_scrapper.codes import collect_candidate_links, forge_urls
from bmw_scrapper.config import Settings
from bmw_scrapper.grid import enumerate_grid
from bmw_scrapper.identity import DedupContext
from bmw_scrapper.items import BuildIdentity, BuildRecord, GridUnit
from bmw_scrapper.selectors import UX, Timing
from bmw_scrapper.waits import click_when_topmost, poll_until, wait_for_stable_count
from utils.logger import Logger
from utils.perf import perf_group

logger = Logger(__name__).get_logger()

MODAL = "modal"
CLASSIC = "classic"


def engine_path_plan(prefer_modal: bool) -> Tuple[str, ...]:
    """Preferred engine UI, then the other one, then the preferred one once more."""
    first, second = (MODAL, CLASSIC) if prefer_modal else (CLASSIC, MODAL)
    return first, second, first


def has_class_word(class_attr: Optional[str], word: str) -> bool:
    # "tile--selected" counts, "unselected" does not
    return bool(re.search(rf"(?<![a-z]){word}(?![a-z])", class_attr or "", re.I))


def first_line(text: str) -> str:
    for line in (text or "").split("\n"):
        if line.strip():
            return line.strip()
    return ""


class ConfiguratorWalker:
    """Walks every model card of the grid on a single Playwright page."""

    def __init__(
        self,
        page,
        dedup: DedupContext,
        settings: Optional[Settings] = None,
        timing: Optional[Timing] = None,
    ):
        self.page = page
        self.dedup = dedup
        self.settings = settings or Settings()
        self.timing = timing or Timing()
        self.logger = logger

    # ------------------------------------------------------------------ grid

    async def walk_grid(self) -> AsyncIterator[BuildRecord]:
        if not await wait_for_state(self.page.locator(UX.ALL_MODEL_CARD).first, "visible", self.timing.grid_return):
            self.logger.warning("No model cards visible on the grid.")
        units = await enumerate_grid(self.page)
        limit = len(units)
        if self.settings.max_cars:
            limit = min(limit, self.settings.max_cars)

        processed: Set[str] = set()
        for idx, unit in enumerate(units[:limit], start=1):
            if unit.key in processed:
                continue

            with perf_group(f"{unit} (order={unit.order})") as group:
                self.logger.info(f"[{idx}/{limit}] {unit} (order={unit.order})")
                records: List[BuildRecord] = []
                try:
                    await self.walk_unit(unit, records)
                except Exception as e:
                    # rows admitted before the failure are already in the dedup sets
                    self.logger.error(f"Model {unit} failed after {len(records)} row(s): {e}")
                    await self.return_to_grid()

                if records:
                    processed.add(unit.key)
                else:
                    group.note = "no rows"
                    self.logger.warning(
                        f"No rows saved for {unit} - a later card with the same name may retry."
                    )

            for record in records:
                yield record
            await sleep_ms(self.timing.grid_settle)

    async def walk_unit(self, unit: GridUnit, records: List[BuildRecord]) -> None:
        if not await self.open_unit(unit):
            await self.return_to_grid()
            return
        await self.wait_for_configurator()
        await self.walk_lines(unit, records)
        await self.return_to_grid()

    async def open_unit(self, unit: GridUnit) -> bool:
        t = self.timing
        card = self.page.locator(f"{UX.ALL_MODEL_CARD}[data-counter='{unit.order}']").first
        try:
            await card.scroll_into_view_if_needed()
            await sleep_ms(t.scroll_settle)
            await card.click(timeout=t.build_button)
            await sleep_ms(t.card_settle)

            build = self.page.locator(UX.CARD_EXPAND_BUILD).locator(UX.BUILD_BTN).first
            await build.wait_for(state="visible", timeout=t.build_button)
            await build.click(timeout=t.build_button)
        except PlaywrightError as e:
            self.logger.warning(f"Could not open configurator for {unit}: {e}")
            return False
        self.logger.info(f"Opened configurator for {unit}.")
        return True

    async def wait_for_configurator(self) -> bool:
        async def ready() -> bool:
            for selector, must_be_visible in UX.CONFIGURATOR_READY:
                found = self.page.locator(selector)
                if must_be_visible:
                    if await safe_visible(found.first):
                        return True
                elif await safe_count(found) > 0:
                    return True
            return False

        return await poll_until(ready, self.timing.configurator_ready, self.timing.poll_interval)

    async def return_to_grid(self) -> bool:
        t = self.timing
        logo = self.page.locator(UX.LOGO_LINK).first
        if await safe_visible(logo) and await safe_click(logo, timeout=t.click):
            self.logger.info("Returned via BMW logo.")

        cards = self.page.locator(UX.ALL_MODEL_CARD).first
        if await wait_for_state(cards, "visible", t.grid_return):
            return True

        self.logger.info("Light reload of All Models page...")
        loaded = await probe(
            self.page.goto, self.settings.grid_url, wait_until="domcontentloaded", timeout=t.grid_reload
        )
        if not loaded.ok:
            self.logger.error(f"Reload of {self.settings.grid_url} failed: {loaded.error}")
            return False
        return await wait_for_state(cards, "visible", t.grid_return)

    # ----------------------------------------------------------------- lines

    async def walk_lines(self, unit: GridUnit, records: List[BuildRecord]) -> None:
        t = self.timing
        await press_page_down(self.page, t.page_down_presses, t.page_down_delay)
        await self.wait_for_configurator()

        labels = await self.line_labels()
        if not labels:
            selected = await self.selected_line_label()
            if selected:
                labels = [selected]
        self.logger.info(f"Lines for {unit}: {' | '.join(labels)}")

        seen_engines: Dict[str, Set[str]] = {}
        for label in labels:
            try:
                await self.walk_line(unit, label, seen_engines.setdefault(label, set()), records)
            except Exception as e:
                self.logger.error(f"Line '{label}' failed: {e}")
                await self.return_to_line_list()

    async def _tile_label(self, tile) -> str:
        name = tile.locator(UX.LINE_NAME)
        text = ""
        if await safe_count(name) > 0:
            text = await safe_text(name.first)
        if not text:
            text = await safe_text(tile)
        return first_line(text)

    async def line_labels(self) -> List[str]:
        tiles, count = None, 0
        for selector in UX.LINE_TILE_SELECTORS:
            tiles = self.page.locator(selector)
            count = await safe_count(tiles)
            if count:
                break

        labels: List[str] = []
        for i in range(count):
            label = await self._tile_label(tiles.nth(i))
            if label:
                labels.append(label)
        return list(dict.fromkeys(labels))

    async def selected_line_label(self) -> Optional[str]:
        for selector in UX.SELECTED_LINE_SELECTORS:
            tile = self.page.locator(selector).first
            if await safe_count(tile) > 0:
                label = await self._tile_label(tile)
                if label:
                    return label
        return None

    async def find_line_tile(self, label: str):
        wanted = label.casefold()
        for selector in UX.LINE_TILE_SELECTORS:
            tiles = self.page.locator(selector)
            for i in range(await safe_count(tiles)):
                tile = tiles.nth(i)
                if (await self._tile_label(tile)).casefold() == wanted:
                    return tile
        return None

    async def walk_line(
        self,
        unit: GridUnit,
        label: str,
        seen_engines: Set[str],
        records: List[BuildRecord],
    ) -> int:
        await self.close_engine_modal()

        tile = await self.find_line_tile(label)
        if tile is None:
            self.logger.info(f"Line not found: {label}")
            return 0
        if not await self.select_line(tile, label):
            self.logger.info(f"Couldn't select line (strict): {label}")
            return 0

        await self.handle_interstitial()

        saved = 0
        for path in engine_path_plan(await self.change_engine_usable()):
            if path == MODAL:
                if not await self.change_engine_usable():
                    continue
                saved += await self.walk_modal_engines(unit, label, seen_engines, records)
            else:
                saved += await self.walk_classic_engines(unit, label, seen_engines, records)
            if saved:
                break

        await self.return_to_line_list()
        if saved:
            self.logger.info(f"'{label}' scraped: {saved} engine(s).")
        else:
            self.logger.warning(f"'{label}' yielded 0 engines.")
        return saved

    async def is_line_selected(self, tile) -> bool:
        if has_class_word(await safe_attr(tile, "class"), "selected"):
            return True
        return (await safe_attr(tile, "aria-pressed") or "").lower() == "true"

    async def is_tile_unselectable(self, tile) -> bool:
        classes = await safe_attr(tile, "class")
        if has_class_word(classes, "disabled") or has_class_word(classes, "unselectable"):
            return True
        hotspot = tile.locator(UX.LINE_HOTSPOT).first
        if await safe_visible(hotspot):
            if (await safe_attr(hotspot, "aria-disabled") or "").lower() == "true":
                return True
            if await safe_attr(hotspot, "disabled") is not None:
                return True
        return False

    async def select_line(self, tile, label: str) -> bool:
        """Click ``tile`` until it reports itself selected, within the line budget."""
        t = self.timing
        if await self.is_tile_unselectable(tile):
            self.logger.info(f"'{label}' looks unselectable (disabled) - skipping.")
            return False

        deadline = time.monotonic() + t.line_select_budget / 1000
        for _ in range(t.line_select_attempts):
            if await self.is_line_selected(tile):
                self.logger.info(f"'{label}' already selected.")
                return True

            await probe(tile.scroll_into_view_if_needed)
            await self._click_line_tile(tile)
            await self.handle_interstitial()
            await sleep_ms(t.settle)

            if await self.is_line_selected(tile):
                self.logger.info(f"Selected line: {label}")
                return True
            if time.monotonic() >= deadline:
                self.logger.info(
                    f"'{label}' did not become selected within {t.line_select_budget}ms - skipping."
                )
                return False
            await sleep_ms(t.settle)

        self.logger.info(f"Could not select '{label}' - skipping.")
        return False

    async def _click_line_tile(self, tile) -> bool:
        strategies = (
            ("hotspot", self._click_hotspot),
            ("click", self._click_plain),
            ("force", self._click_forced),
            ("keyboard", self._press_select_keys),
        )
        for name, strategy in strategies:
            if await strategy(tile):
                self.logger.debug(f"line tile activated via {name}")
                return True
        return False

    async def _click_hotspot(self, tile) -> bool:
        hotspot = tile.locator(UX.LINE_HOTSPOT).first
        return await safe_visible(hotspot) and await safe_click(hotspot, timeout=self.timing.click)

    async def _click_plain(self, tile) -> bool:
        return await safe_click(tile, timeout=self.timing.click)

    async def _click_forced(self, tile) -> bool:
        return await safe_click(tile, force=True, timeout=self.timing.click)

    async def _press_select_keys(self, tile) -> bool:
        if not (await probe(tile.focus)).ok:
            return False
        enter = await probe(self.page.keyboard.press, "Enter")
        space = await probe(self.page.keyboard.press, "Space")
        return enter.ok and space.ok

    async def handle_interstitial(self) -> None:
        """Dismiss "Configure in current tab" or wait until the next state shows."""
        t = self.timing
        button = self.page.locator(UX.CONFIGURE_IN_TAB).first

        async def settled() -> bool:
            if await safe_visible(button):
                self.logger.info("Clicked 'Configure in current tab' dialog.")
                await safe_click(button, timeout=t.click)
                await wait_for_state(self.page.locator(UX.ENGINE_MODAL).first, "detached", t.interstitial_detach)
                return True
            return await any_visible(self.page, UX.NEXT_STATE_SIGNALS)

        await poll_until(settled, t.interstitial, t.interstitial_poll)

    async def return_to_line_list(self) -> None:
        t = self.timing
        lines = self.page.locator(UX.LINES_LIST).first
        if await wait_for_state(lines, "visible", t.line_list_quick):
            return

        back = self.page.locator(UX.BACK_TO_CONFIG).first
        if await safe_visible(back):
            await safe_click(back, timeout=t.click)
            await wait_for_state(lines, "visible", t.line_list_back)
            return

        if (await probe(self.page.go_back)).ok:
            await wait_for_state(lines, "visible", t.line_list_back)
            return

        self.logger.warning("Could not get back to the line list - reloading the grid.")
        await self.return_to_grid()

    # --------------------------------------------------------------- engines

    async def change_engine_usable(self) -> bool:
        button = self.page.locator(UX.CHANGE_ENGINE_BTN).first
        if not await safe_visible(button):
            return False
        return await safe_attr(button, "disabled") is None

    async def engine_modal_open(self) -> bool:
        if await safe_visible(self.page.locator(UX.ENGINE_MODAL_TILE).first):
            return True
        return await safe_visible(self.page.locator(UX.ENGINE_MODAL).first)

    async def close_engine_modal(self) -> None:
        t = self.timing
        if not await self.engine_modal_open():
            return
        self.logger.info("Engine chooser open - closing it.")
        close = self.page.locator(UX.MODAL_CLOSE).first
        if await safe_visible(close):
            await safe_click(close, timeout=t.click)
        else:
            await probe(self.page.keyboard.press, "Escape")
        await wait_for_state(self.page.locator(UX.ENGINE_MODAL_TILE).first, "detached", t.modal_close_tiles)
        await wait_for_state(self.page.locator(UX.ENGINE_MODAL).first, "detached", t.modal_close_shell)

    async def open_engine_chooser(self, timeout: Optional[int] = None) -> bool:
        t = self.timing
        button = self.page.locator(UX.CHANGE_ENGINE_BTN).first
        if not await safe_visible(button) or not await safe_click(button, timeout=t.click):
            return False
        tiles = self.page.locator(UX.ENGINE_MODAL_TILE)
        if not await wait_for_state(tiles.first, "visible", timeout or t.modal_open):
            self.logger.info("Engine chooser did not show any engines.")
            return False
        await wait_for_stable_count(tiles, t.modal_stable, t.modal_stable_interval)
        return True

    async def reopen_chooser(self) -> bool:
        if await self.engine_modal_open():
            return True
        if not await self.open_engine_chooser(self.timing.modal_reopen):
            self.logger.warning("Couldn't reopen engine chooser; ending modal loop.")
            return False
        await self.handle_interstitial()
        return True

    async def hard_reset_chooser(self) -> bool:
        await self.close_engine_modal()
        if not await self.open_engine_chooser(self.timing.modal_reopen):
            return False
        await self.handle_interstitial()
        return True

    async def _steady_modal(self) -> None:
        t = self.timing
        await wait_for_stable_count(
            self.page.locator(UX.ENGINE_MODAL_TILE), t.modal_stable, t.modal_stable_interval
        )
        await self.handle_interstitial()

    async def _modal_engine_name(self, tile) -> str:
        name = tile.locator(UX.ENGINE_MODAL_NAME).first
        if await safe_visible(name):
            return await safe_text(name) or "Engine"
        return "Engine"

    async def walk_modal_engines(
        self,
        unit: GridUnit,
        label: str,
        seen_engines: Set[str],
        records: List[BuildRecord],
    ) -> int:
        t = self.timing
        if not await self.open_engine_chooser():
            return 0

        count = await safe_count(self.page.locator(UX.ENGINE_MODAL_TILE))
        self.logger.info(f"Modal shows {count} engines for '{label}'.")

        saved, streak = 0, 0
        limit = self.settings.duplicate_streak
        for i in range(count):
            tile = self.page.locator(UX.ENGINE_MODAL_TILE).nth(i)
            engine = await self._modal_engine_name(tile)

            if engine in seen_engines:
                self.logger.info(f"Already scraped in this line: {engine}")
                streak += 1
                if streak >= limit:
                    self.logger.info("Mostly duplicates - moving on.")
                    break
                continue

            await probe(tile.scroll_into_view_if_needed)
            clicked = await click_when_topmost(
                self.page,
                tile,
                UX.ENGINE_MODAL_TILE,
                timeout_ms=t.topmost,
                interval_ms=t.topmost_interval,
                click_timeout_ms=t.click,
                before_attempt=self._steady_modal,
            )
            if not clicked:
                self.logger.warning("Couldn't click engine - hard reset of the chooser.")
                await self.hard_reset_chooser()
                continue

            continue_btn = self.page.locator(UX.CONTINUE_BTN).first
            if await safe_visible(continue_btn):
                await safe_click(continue_btn, timeout=t.click)
                await self.handle_interstitial()

            record = await self.capture(unit, label, engine)
            if record is None:
                streak += 1
                reopened = await self.reopen_chooser()
                if streak >= limit or not reopened:
                    break
                continue

            records.append(record)
            seen_engines.add(engine)
            saved += 1
            streak = 0
            if not await self.reopen_chooser():
                break

        await self.close_engine_modal()
        return saved

    async def walk_classic_engines(
        self,
        unit: GridUnit,
        label: str,
        seen_engines: Set[str],
        records: List[BuildRecord],
    ) -> int:
        t = self.timing
        tiles = self.page.locator(UX.CLASSIC_ENGINE_TILE)
        if not await wait_for_state(tiles.first, "visible", t.classic_engines):
            self.logger.info(f"No classic engines visible for '{label}'.")
            return 0

        saved = 0
        for i in range(await safe_count(tiles)):
            tile = self.page.locator(UX.CLASSIC_ENGINE_TILE).nth(i)
            engine = await safe_text(tile.locator(UX.PRODUCT_NAME).first) or "Engine"
            if engine in seen_engines:
                self.logger.info(f"Already scraped in this line: {engine}")
                continue
            if not await safe_click(tile, timeout=t.click):
                self.logger.info(f"Couldn't click engine tile: {engine}")
                continue
            await self.handle_interstitial()

            record = await self.capture(unit, label, engine)
            if record is None:
                continue
            records.append(record)
            seen_engines.add(engine)
            saved += 1
        return saved

    # --------------------------------------------------------------- capture

    async def capture_identity(self) -> BuildIdentity:
        html = (await probe(self.page.content, default="")).value or ""
        current = self.page.url
        forged = forge_urls(
            collect_candidate_links(html, current),
            current,
            configure_host=self.settings.configure_host,
            fallback_host=self.settings.fallback_host,
        )
        if not forged.configure_url:
            self.logger.warning("No configure URL found in DOM; used fallback (if any).")
        return forged.to_identity()

    async def hero_image(self) -> str:
        image = self.page.locator(UX.HERO_IMAGE).first
        if await safe_visible(image):
            return await safe_attr(image, "src") or ""
        return ""

    async def capture(self, unit: GridUnit, label: str, engine: str) -> Optional[BuildRecord]:
        """Read the current build and keep it if the run has not seen it yet."""
        identity = await self.capture_identity()
        admission = self.dedup.admit(identity)
        if not admission.accepted:
            self.logger.info(f"Skipping {label} - {engine}: {admission.reason}")
            return None

        record = BuildRecord.from_identity(unit, label, engine, identity, await self.hero_image())
        self.logger.info(f"Saved: {label} - {engine} [{identity.display_code}]")
        if record.configure_url:
            self.logger.debug(f"  configure: {record.configure_url}")
        if record.summary_url:
            self.logger.debug(f"  summary:   {record.summary_url}")
        return record
