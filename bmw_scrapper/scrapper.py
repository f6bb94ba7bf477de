import datetime
import os
from abc import ABC, abstractmethod
from dataclasses import replace
from pathlib import Path
from typing import Optional

from scrapy.spiders import Spider
from scrapy_playwright.page import PageMethod

from bmw_scrapper.config import Settings
from bmw_scrapper.selectors import Timing

CONFIGURATOR_CONTEXT = "configurator"
SUMMARY_CONTEXT = "summary"


class Scrapper(Spider, ABC):
    """
    Abstract base class for the two BMW passes.
    Holds the run configuration, the Playwright request plumbing and HTML sampling.
    """

    # "build" or "summary"; tells the table pipeline which layout to write
    table_kind: str = ""

    # Logging is configured at the application entrypoint; Scrapy's
    # LOG_LEVEL is passed via CrawlerProcess(settings=...).

    @classmethod
    def settings_for_mode(cls, dev_mode: bool, log_level: str = "INFO") -> dict:
        """Return Scrapy settings for the requested mode (DEV or PROD).

        Both modes drive a real Chromium through scrapy-playwright; DEV shows
        the browser window.
        """
        browser_context = {
            "viewport": {"width": 1366, "height": 768},
            "locale": "en-GB",
        }
        return {
            "LOG_LEVEL": log_level,
            "ROBOTSTXT_OBEY": False,
            "RETRY_ENABLED": False,
            "DEFAULT_REQUEST_HEADERS": {
                "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
                "Accept-Language": "en-GB,en;q=0.9",
            },
            "USER_AGENT": (
                "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
                "AppleWebKit/537.36 (KHTML, like Gecko) "
                "Chrome/125.0 Safari/537.36"
            ),
            "DOWNLOAD_HANDLERS": {
                "http": "scrapy_playwright.handler.ScrapyPlaywrightDownloadHandler",
                "https": "scrapy_playwright.handler.ScrapyPlaywrightDownloadHandler",
            },
            "TWISTED_REACTOR": "twisted.internet.asyncioreactor.AsyncioSelectorReactor",
            "PLAYWRIGHT_BROWSER_TYPE": "chromium",
            "PLAYWRIGHT_LAUNCH_OPTIONS": {"headless": not dev_mode},
            "PLAYWRIGHT_DEFAULT_NAVIGATION_TIMEOUT": Timing().navigation,
            "PLAYWRIGHT_CONTEXTS": {
                CONFIGURATOR_CONTEXT: dict(browser_context),
                SUMMARY_CONTEXT: dict(browser_context),
            },
            "AUTOTHROTTLE_ENABLED": True,
            "AUTOTHROTTLE_START_DELAY": 1.0,
            "AUTOTHROTTLE_MAX_DELAY": 10.0,
            "CONCURRENT_REQUESTS": 1,
            "ITEM_PIPELINES": {"bmw_scrapper.pipelines.CsvTablePipeline": 300},
        }

    @property
    @abstractmethod
    def spider_name(self) -> str:
        """Spider name - must be implemented by child classes"""
        pass

    @property
    @abstractmethod
    def output_path(self) -> Path:
        """Table written when the spider closes - must be implemented by child classes"""
        pass

    def __init__(
        self,
        save_html: bool = False,
        dev_mode: Optional[bool] = None,
        config: Optional[Settings] = None,
        timing: Optional[Timing] = None,
        *args,
        **kwargs,
    ):
        config = config or Settings()
        if dev_mode is not None:
            config = replace(config, dev_mode=bool(dev_mode))
        self.config = config
        self.dev_mode = config.dev_mode
        self.timing = timing or Timing()

        # Set spider name based on mode before calling super().__init__
        self.name = self.spider_name

        self.save_html = save_html
        super().__init__(*args, **kwargs)

    @property
    def mode_suffix(self) -> str:
        return "_DEV" if self.dev_mode else "_PROD"

    def playwright_meta(self, context: str, page_methods=None, **goto_kwargs) -> dict:
        """Request meta for a Playwright-rendered page that the callback drives itself."""
        meta = {
            "playwright": True,
            "playwright_context": context,
            "playwright_include_page": True,
        }
        if goto_kwargs:
            meta["playwright_page_goto_kwargs"] = goto_kwargs
        if page_methods:
            meta["playwright_page_methods"] = list(page_methods)
        return meta

    @staticmethod
    def wait_for_dom() -> PageMethod:
        return PageMethod("wait_for_load_state", "domcontentloaded")

    async def errback_close_page(self, failure):
        """Close the page of a failed Playwright request."""
        page = failure.request.meta.get("playwright_page")
        if page is not None:
            await page.close()
        self.logger.error(f"Request failed: {failure.request.url} ({failure.value!r})")

    def save_response_html(self, body, url):
        """Save HTML content to samples directory."""
        if not self.save_html:
            return

        # Create filename based on URL
        url_parts = url.split("?")[0].rstrip("/").split("/")
        filename = url_parts[-1] or "page"

        # Add timestamp to avoid overwriting
        timestamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
        filename = f"{filename.split('.')[0]}_{timestamp}.html"

        # Get path to samples directory
        samples_dir = os.path.join(
            os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "samples"
        )
        os.makedirs(samples_dir, exist_ok=True)

        file_path = os.path.join(samples_dir, filename)
        if isinstance(body, str):
            body = body.encode("utf-8")
        with open(file_path, "wb") as f:
            f.write(body)

        self.logger.info(f"Saved HTML content to {file_path}")
        return file_path

    @abstractmethod
    async def parse(self, response):
        """Main parsing method - must be implemented by child classes"""
        pass
