"""
Pass 2: turn a configuration summary page into one flat row.

The spec sheet is a heterogeneous list of ``span.item-value[data-valuekey]``
items whose keys are normalized into column names; the price panel is reduced
to seven fixed GBP columns, two of them derived.
"""

from __future__ import annotations

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Dict, Iterable, List, Mapping, NamedTuple, Optional, Sequence, Tuple

from bmw_scrapper.browser import (
    accept_cookies,
    probe,
    safe_attr,
    safe_count,
    safe_text,
    safe_visible,
    scroll_to_bottom,
    sleep_ms,
    wait_for_state,
)
from bmw_scrapper.codes import CONFIGURE_HOST, FALLBACK_HOST, clean_url, extract_summary_codes
from bmw_scrapper.identity import url_key
from bmw_scrapper.items import PRICE_COLUMNS
from bmw_scrapper.selectors import UX, Timing
from utils.logger import Logger

logger = Logger(__name__).get_logger()

# Keys are in normalized form (lower case, single spaces)
KEY_SYNONYMS: Dict[str, str] = {
    "battery size value": "Battery Capacity",
    "charging time ac short value": "AC Charging Time",
    "emission wlt": "CO2 Emissions",
    "charging time dc short value": "DC Charging Time",
    "td weight permitted axle load front rear value": "Permitted Axle Load (Front/Rear)",
}

# Columns copied from the Pass 1 row before anything is read off the page
CARRIED_COLUMNS = ("Car", "BodyType", "Model", "Engine", "SeriesCode", "LineCode", "ModelCode", "SummaryUrl")

_SEPARATORS = re.compile(r"[_\s\-]+")
_WORD_START = re.compile(r"(?<![\w'])\w")


def normalize_key(raw: str) -> str:
    """Map a raw ``data-valuekey`` to a column name.

    >>> normalize_key("td_engine_power_value")
    'Engine Power'
    """
    key = _SEPARATORS.sub(" ", (raw or "").lower()).strip()
    if key in KEY_SYNONYMS:
        return KEY_SYNONYMS[key]
    if key.startswith("td "):
        key = key[3:]
    if key.endswith(" value"):
        key = key[: -len(" value")]
    return _WORD_START.sub(lambda m: m.group(0).upper(), key.strip())


def parse_money(text: Optional[str]) -> Decimal:
    """Amount in a price string; anything unparseable is zero."""
    cleaned = re.sub(r"[^\d.\-]", "", text or "")
    if not cleaned:
        return Decimal(0)
    try:
        return Decimal(cleaned)
    except InvalidOperation:
        return Decimal(0)


def format_gbp(amount: Decimal) -> str:
    """Whole pounds with thousands separators, e.g. ``£54,985``."""
    whole = int(amount.quantize(Decimal(1), rounding=ROUND_HALF_UP))
    sign = "-" if whole < 0 else ""
    return f"{sign}£{abs(whole):,}"


class PriceBreakdown(NamedTuple):
    base: Decimal = Decimal(0)
    options: Decimal = Decimal(0)
    vat: Decimal = Decimal(0)
    otr_fee: Decimal = Decimal(0)
    otr_price: Decimal = Decimal(0)

    @staticmethod
    def lookup(prices: Mapping[str, str], label: str) -> str:
        """Value for ``label``: exact (case-insensitive) match first, then substring."""
        wanted = label.lower()
        for key, value in prices.items():
            if key.lower() == wanted:
                return value
        for key, value in prices.items():
            if wanted in key.lower():
                return value
        return ""

    @classmethod
    def from_pairs(cls, pairs: Iterable[Tuple[str, str]]) -> "PriceBreakdown":
        prices: Dict[str, str] = {}
        for label, value in pairs:
            prices[re.sub(r"\s+", " ", label).strip()] = value.strip()
        return cls(
            base=parse_money(cls.lookup(prices, "Base price")),
            options=parse_money(cls.lookup(prices, "Selected optional equipment")),
            vat=parse_money(cls.lookup(prices, "VAT")),
            otr_fee=parse_money(cls.lookup(prices, "On the Road Fee")),
            otr_price=parse_money(cls.lookup(prices, "OTR price")),
        )

    @property
    def subtotal_ex_vat(self) -> Decimal:
        return self.base + self.options

    @property
    def subtotal_incl_vat(self) -> Decimal:
        return self.subtotal_ex_vat + self.vat

    def as_fields(self) -> Dict[str, str]:
        amounts = (
            self.base,
            self.options,
            self.subtotal_ex_vat,
            self.vat,
            self.subtotal_incl_vat,
            self.otr_fee,
            self.otr_price,
        )
        return {column: format_gbp(amount) for column, amount in zip(PRICE_COLUMNS, amounts)}


def build_summary_row(
    build: Mapping[str, str],
    final_url: str,
    hero_image: str,
    spec_pairs: Sequence[Tuple[str, str]],
    price_pairs: Sequence[Tuple[str, str]],
) -> Dict[str, str]:
    row = {column: (build.get(column) or "") for column in CARRIED_COLUMNS}

    # Codes and image from Pass 1 win; the page only fills gaps
    series, line, model = extract_summary_codes(final_url)
    for column, found in (("SeriesCode", series), ("LineCode", line), ("ModelCode", model)):
        if not row[column].strip():
            row[column] = found
    row["ImageUrl"] = (build.get("ImageUrl") or "").strip() or hero_image

    for raw_key, value in spec_pairs:
        key = normalize_key(raw_key or "")
        if not key:
            continue
        row.setdefault(key, value)

    row.update(PriceBreakdown.from_pairs(price_pairs).as_fields())
    return row


class NavigationStep(NamedTuple):
    url: str
    wait_until: str


def navigation_plan(
    summary_url: str,
    configure_host: str = CONFIGURE_HOST,
    fallback_host: str = FALLBACK_HOST,
) -> List[NavigationStep]:
    """Clean URL with ``domcontentloaded`` then ``load``; same again on the alternate host."""
    clean = clean_url(summary_url)
    plan = [NavigationStep(clean, "domcontentloaded"), NavigationStep(clean, "load")]
    alternate = clean.replace(f"://{configure_host}", f"://{fallback_host}", 1)
    if alternate != clean:
        plan += [NavigationStep(alternate, "domcontentloaded"), NavigationStep(alternate, "load")]
    return plan


def unique_summary_targets(builds: Iterable[Mapping[str, str]]) -> List[Mapping[str, str]]:
    """One Pass 1 row per canonical summary URL, first occurrence kept."""
    targets: Dict[str, Mapping[str, str]] = {}
    for build in builds:
        key = url_key(build.get("SummaryUrl"))
        if key and key not in targets:
            targets[key] = build
    return list(targets.values())


async def expand_accordions(page, timing: Timing) -> int:
    accordions = page.locator(UX.SUMMARY_ACCORDIONS)
    expanded = 0
    for i in range(await safe_count(accordions)):
        header = accordions.nth(i).locator(UX.ACCORDION_HEADER)
        if (await probe(header.click, timeout=timing.click)).ok:
            expanded += 1
        await sleep_ms(timing.accordion_settle)
    return expanded


async def read_spec_pairs(page) -> List[Tuple[str, str]]:
    items = page.locator(UX.SUMMARY_ITEM_VALUES)
    pairs: List[Tuple[str, str]] = []
    for i in range(await safe_count(items)):
        item = items.nth(i)
        key = await safe_attr(item, UX.SPEC_KEY_ATTR) or ""
        if not key.strip():
            continue
        pairs.append((key, await safe_text(item)))
    return pairs


async def read_price_pairs(page) -> List[Tuple[str, str]]:
    labels = page.locator(UX.PRICE_LABELS)
    values = page.locator(UX.PRICE_VALUES)
    count = min(await safe_count(labels), await safe_count(values))
    return [(await safe_text(labels.nth(i)), await safe_text(values.nth(i))) for i in range(count)]


async def read_hero_image(page) -> str:
    image = page.locator(UX.HERO_IMAGE).first
    if await safe_visible(image):
        return await safe_attr(image, "src") or ""
    return ""


async def scrape_summary_page(page, build: Mapping[str, str], timing: Optional[Timing] = None) -> Dict[str, str]:
    """Read an already-loaded summary page into a Table 2 row."""
    t = timing or Timing()
    await accept_cookies(page)
    await scroll_to_bottom(page, t.scroll_steps, t.scroll_delay)
    await expand_accordions(page, t)
    await wait_for_state(page.locator(UX.SUMMARY_ITEM_VALUES).first, "attached", t.spec_values)

    spec_pairs = await read_spec_pairs(page)
    price_pairs = await read_price_pairs(page)
    row = build_summary_row(build, page.url, await read_hero_image(page), spec_pairs, price_pairs)
    logger.info(f"Scraped {len(spec_pairs)} spec fields and {len(price_pairs)} price lines from {page.url}")
    return row
