from pathlib import Path

from scrapy import Request

from bmw_scrapper.browser import accept_cookies
from bmw_scrapper.identity import DedupContext
from bmw_scrapper.pipelines import BUILD_TABLE
from bmw_scrapper.scrapper import CONFIGURATOR_CONTEXT, Scrapper
from bmw_scrapper.traversal import ConfiguratorWalker
from utils.perf import perf_group


class BuildSpider(Scrapper):
    """Pass 1: walk the all-models grid and collect one row per unique build."""

    table_kind = BUILD_TABLE

    @property
    def spider_name(self) -> str:
        return "bmw_build" + self.mode_suffix

    @property
    def output_path(self) -> Path:
        return self.config.urls_path

    async def start(self):
        self.logger.info(f"Opening {self.config.grid_url}")
        yield Request(
            self.config.grid_url,
            callback=self.parse,
            errback=self.errback_close_page,
            dont_filter=True,
            meta=self.playwright_meta(
                CONFIGURATOR_CONTEXT,
                page_methods=[self.wait_for_dom()],
                wait_until="domcontentloaded",
            ),
        )

    async def parse(self, response):
        page = response.meta["playwright_page"]
        self.save_response_html(response.body, response.url)

        # One context per run; never reset between models
        walker = ConfiguratorWalker(page, DedupContext(), self.config, self.timing)
        saved = 0
        try:
            await accept_cookies(page)
            with perf_group("Pass 1: collect build URLs", self.logger) as group:
                async for record in walker.walk_grid():
                    saved += 1
                    yield record.as_row()
                group.note = f"{saved} builds"
        finally:
            await page.close()

        self.logger.info(f"Pass 1 collected {saved} builds.")
