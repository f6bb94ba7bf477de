"""
All-models grid enumeration.

Model name and body type are resolved by ordered lists of named matchers:
each matcher reads either a child element or the whole card text and runs a
parser over it; the first non-empty result wins.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from bmw_scrapper.browser import safe_attr, safe_count, safe_text, safe_visible
from bmw_scrapper.items import GridUnit
from bmw_scrapper.selectors import UX
from utils.logger import Logger

logger = Logger(__name__).get_logger()

# Order matters: "Gran Coupé" must be tried before "Coupé"
BODY_TYPES = ("SUV", "Saloon", "Touring", "Gran Coupé", "Gran Coupe", "Coupé", "Coupe", "Convertible")
BODY_TYPE_ALIASES = {"Gran Coupe": "Gran Coupé", "Coupe": "Coupé"}
UNKNOWN_BODY_TYPE = "Unknown"

# Card text lines that are never the model name
_NOT_A_NAME = (
    re.compile(r"^(SUV|Saloon|Touring|Gran Coup[eé]|Coup[eé]|Convertible|M Model|New)$", re.I),
    re.compile(r"^From\s*£", re.I),
    re.compile(r"^Electric$", re.I),
)


def find_body_type(text: str) -> str:
    """First vocabulary body type found on word boundaries, or empty."""
    for candidate in BODY_TYPES:
        if re.search(rf"\b{re.escape(candidate)}\b", text or "", re.I):
            return BODY_TYPE_ALIASES.get(candidate, candidate)
    return ""


def model_name_from_text(text: str) -> str:
    for line in (text or "").split("\n"):
        line = line.strip()
        if not line:
            continue
        if any(p.match(line) for p in _NOT_A_NAME):
            continue
        return line
    return ""


@dataclass(frozen=True)
class Matcher:
    name: str
    selector: Optional[str]  # None reads the whole card
    parse: Callable[[str], str]


MODEL_NAME_MATCHERS: Sequence[Matcher] = (
    *(Matcher(sel, sel, str.strip) for sel in UX.MODEL_NAME_SELECTORS),
    Matcher("card-text", None, model_name_from_text),
)

BODY_TYPE_MATCHERS: Sequence[Matcher] = (
    *(Matcher(sel, sel, find_body_type) for sel in UX.BODY_TYPE_SELECTORS),
    Matcher("card-text", None, find_body_type),
)


async def resolve(card, matchers: Sequence[Matcher]) -> str:
    for matcher in matchers:
        if matcher.selector is None:
            text = await safe_text(card)
        else:
            found = card.locator(matcher.selector)
            if await safe_count(found) == 0:
                continue
            text = await safe_text(found.first)
        value = matcher.parse(text)
        if value:
            return value
    return ""


async def read_card(card) -> Optional[GridUnit]:
    raw_order = await safe_attr(card, "data-counter")
    try:
        order = int((raw_order or "").strip())
    except ValueError:
        return None

    model_name = await resolve(card, MODEL_NAME_MATCHERS)
    if not model_name:
        return None
    body_type = await resolve(card, BODY_TYPE_MATCHERS) or UNKNOWN_BODY_TYPE
    return GridUnit(order=order, model_name=model_name, body_type=body_type)


async def enumerate_grid(page, card_selector: str = UX.ALL_MODEL_CARD) -> List[GridUnit]:
    """Visible model cards as units, sorted by their ``data-counter`` order."""
    cards = page.locator(card_selector)
    total = await safe_count(cards)
    units: List[GridUnit] = []
    for i in range(total):
        card = cards.nth(i)
        if not await safe_visible(card):
            continue
        unit = await read_card(card)
        if unit is not None:
            units.append(unit)

    units.sort(key=lambda u: u.order)
    logger.info(
        "Models in order: " + ", ".join(f"{u}:{u.order}" for u in units)
    )
    return units
