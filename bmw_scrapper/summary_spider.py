from pathlib import Path
from typing import List, Mapping

from scrapy import Request

from bmw_scrapper.pipelines import SUMMARY_TABLE, read_table
from bmw_scrapper.scrapper import SUMMARY_CONTEXT, Scrapper
from bmw_scrapper.summary import NavigationStep, navigation_plan, scrape_summary_page, unique_summary_targets
from utils.perf import perf_group


class SummarySpider(Scrapper):
    """Pass 2: open every unique summary URL from the build table and read its spec sheet."""

    table_kind = SUMMARY_TABLE

    @property
    def spider_name(self) -> str:
        return "bmw_summary" + self.mode_suffix

    @property
    def output_path(self) -> Path:
        return self.config.data_path

    async def start(self):
        path = self.config.urls_path
        if not path.exists():
            self.logger.error(f"Build table {path} not found - run the build phase first.")
            return

        targets = unique_summary_targets(read_table(path))
        self.logger.info(f"Summary targets: {len(targets)}")
        for index, build in enumerate(targets, start=1):
            plan = navigation_plan(
                build["SummaryUrl"],
                configure_host=self.config.configure_host,
                fallback_host=self.config.fallback_host,
            )
            yield self.summary_request(build, plan, index, len(targets))

    def summary_request(
        self,
        build: Mapping[str, str],
        plan: List[NavigationStep],
        index: int,
        total: int,
        attempt: int = 0,
    ) -> Request:
        step = plan[attempt]
        meta = self.playwright_meta(SUMMARY_CONTEXT, wait_until=step.wait_until)
        meta.update(
            {
                "build": dict(build),
                "plan": plan,
                "attempt": attempt,
                "index": index,
                "total": total,
            }
        )
        return Request(
            step.url,
            callback=self.parse,
            errback=self.errback_next_step,
            dont_filter=True,
            meta=meta,
        )

    async def errback_next_step(self, failure):
        """Close the failed page and move on to the next step of the navigation plan."""
        request = failure.request
        page = request.meta.get("playwright_page")
        if page is not None:
            await page.close()

        plan = request.meta["plan"]
        attempt = request.meta["attempt"] + 1
        if attempt >= len(plan):
            self.logger.error(f"Failed to open summary on every host: {plan[0].url}. Skipping.")
            return []

        step = plan[attempt]
        if step.url != plan[attempt - 1].url:
            self.logger.info(f"Retrying on {step.url}")
        else:
            self.logger.info(f"Retrying {step.url} waiting for '{step.wait_until}'")
        return [
            self.summary_request(
                request.meta["build"],
                plan,
                request.meta["index"],
                request.meta["total"],
                attempt=attempt,
            )
        ]

    async def parse(self, response):
        page = response.meta["playwright_page"]
        build = response.meta["build"]
        self.logger.info(f"[{response.meta['index']}/{response.meta['total']}] {response.url}")

        try:
            with perf_group(f"summary {response.url}", self.logger):
                row = await scrape_summary_page(page, build, self.timing)
            if self.save_html:
                self.save_response_html(await page.content(), page.url)
        finally:
            await page.close()

        yield row
