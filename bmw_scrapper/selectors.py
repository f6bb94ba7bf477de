"""
Selectors and timing budgets for the BMW UK all-models grid, configurator and
summary pages. Everything that depends on the site's markup lives here so the
traversal code only talks in terms of named targets.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace


class UX:
    # All-models grid
    ALL_MODEL_CARD = "div.allmodelscard.container.responsivegrid[role='button']"
    CARD_EXPAND_BUILD = (
        ".cmp-allmodelscarddetail__expandview-buttons-animated:has(a:has-text('Build & Price'))"
    )
    BUILD_BTN = "a.cmp-button:has-text('Build & Price')"
    LOGO_LINK = "a.cmp-logo__link"

    # Card text matchers, tried in order
    MODEL_NAME_SELECTORS = (
        ".cmp-allmodelscarddetail__series",
        ".cmp-allmodelscarddetail__title",
        ".cmp-title__text",
        "h2",
        "h3",
    )
    BODY_TYPE_SELECTORS = (
        ".cmp-allmodelscarddetail__tags",
        ".cmp-allmodelscarddetail__category",
        ".cmp-tag",
        ".cmp-title__eyebrow",
    )

    # Configurator: trim lines
    LINES_LIST = "con-lines-list .con-tile-line"
    LINE_TILE_SELECTORS = (
        LINES_LIST,
        "con-lines-list con-tile-line",
        ".con-tile-line",
        "con-tile-line",
    )
    SELECTED_LINE_SELECTORS = (
        ".con-tile-line.selected",
        ".con-tile-line[aria-pressed='true']",
        "con-tile-line.selected",
    )
    LINE_NAME = "p.line-name, .line-name, [data-test-id='line-name']"
    LINE_HOTSPOT = ".price-click-area, .tile-detail-focus-area, [role='button']"

    # Configurator: engines
    CHANGE_ENGINE_BTN = (
        "button:has-text('Change Engine'), button:has-text('Change powertrain')"
    )
    ENGINE_MODAL = "con-modal-logic"
    ENGINE_MODAL_TILE = "con-tile-engine.engine-tile"
    ENGINE_MODAL_NAME = "p.product-name, h3.engine-title"
    MODAL_CLOSE = "button[aria-label='Close'], con-modal-logic button:has-text('Close')"
    CLASSIC_ENGINE_TILE = "div.selection-tile.checkbox-wrapper:has(p.product-name)"
    PRODUCT_NAME = "p.product-name"
    CONTINUE_BTN = "button.button-primary:has-text('Continue')"
    SUMMARY_BTN = "button.button-summary:has-text('Summary')"
    BACK_TO_CONFIG = "a:has-text('Back to configuration')"
    CONFIGURE_IN_TAB = (
        "button:has-text('Configure in current tab'), "
        "button[aria-label='Configure in current tab']"
    )
    HERO_IMAGE = "#heroVisualsSection img#image"

    # Summary page
    SUMMARY_ACCORDIONS = "con-accordion"
    ACCORDION_HEADER = "[slot='header']"
    SUMMARY_ITEM_VALUES = "span.item-value"
    SPEC_KEY_ATTR = "data-valuekey"
    PRICE_LABELS = "#priceSection .price-label p"
    PRICE_VALUES = "#priceSection .price-value"

    COOKIE_ACCEPT = (
        "#onetrust-accept-btn-handler, "
        "button.accept-button:has-text('Accept all'), "
        "button:has-text('Accept all'), "
        "#truste-consent-button"
    )

    # Any of these means the configurator finished booting: (selector, must be visible)
    CONFIGURATOR_READY = (
        (LINES_LIST, False),
        ("con-tile-line", False),
        (CHANGE_ENGINE_BTN, True),
        (CLASSIC_ENGINE_TILE, False),
    )
    # Any of these visible means a selection click has landed
    NEXT_STATE_SIGNALS = (LINES_LIST, ENGINE_MODAL_TILE, SUMMARY_BTN, CHANGE_ENGINE_BTN)


# Budgets that count things rather than milliseconds
_UNSCALED = {"line_select_attempts", "scroll_steps", "page_down_presses"}


@dataclass(frozen=True)
class Timing:
    """Per-operation budgets in milliseconds. Every timeout is a soft failure."""

    poll_interval: int = 150
    settle: int = 150
    scroll_settle: int = 250
    card_settle: int = 800
    grid_settle: int = 400
    click: int = 1500

    build_button: int = 12000
    configurator_ready: int = 10000

    line_select_budget: int = 2500
    line_select_attempts: int = 4

    interstitial: int = 2000
    interstitial_poll: int = 100
    interstitial_detach: int = 1200

    classic_engines: int = 6000
    modal_open: int = 2000
    modal_reopen: int = 3000
    modal_stable: int = 1000
    modal_stable_interval: int = 200
    modal_close_tiles: int = 1000
    modal_close_shell: int = 500
    topmost: int = 1750
    topmost_interval: int = 120

    line_list_quick: int = 1500
    line_list_back: int = 4000
    grid_return: int = 10000
    grid_reload: int = 15000

    navigation: int = 60000
    spec_values: int = 15000
    accordion_settle: int = 100

    scroll_steps: int = 12
    scroll_delay: int = 150
    page_down_presses: int = 5
    page_down_delay: int = 120

    def scaled(self, factor: float) -> "Timing":
        """Copy with every millisecond budget multiplied by ``factor``."""
        changes = {
            f.name: max(1, int(getattr(self, f.name) * factor))
            for f in fields(self)
            if f.name not in _UNSCALED
        }
        return replace(self, **changes)
