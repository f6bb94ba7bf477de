import os

import click
from rich.console import Console
from rich.table import Table
from scrapy.crawler import CrawlerProcess
from twisted.internet import defer

from bmw_scrapper.build_spider import BuildSpider
from bmw_scrapper.config import Settings
from bmw_scrapper.pipelines import read_table
from bmw_scrapper.scrapper import Scrapper
from bmw_scrapper.summary_spider import SummarySpider
from utils.logger import Logger

logger = Logger(__name__).get_logger()
console = Console()

PHASES = ("all", "build", "summary")


def render_tables_summary(config: Settings) -> Table:
    """Row counts of the tables on disk after the run."""
    table = Table(title="Output tables", show_header=True, header_style="bold magenta")
    table.add_column("Table")
    table.add_column("Path", overflow="fold")
    table.add_column("Rows", justify="right", width=8)
    for label, path in (("builds", config.urls_path), ("summaries", config.data_path)):
        rows = str(len(read_table(path))) if path.exists() else "-"
        table.add_row(label, str(path), rows)
    return table


@click.command()
@click.option(
    "--log-level",
    "-l",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default="INFO",
    help="Set the logging level",
)
@click.option(
    "--dev/--prod",
    default=False,
    help="DEV shows the browser window and writes *_DEV tables; PROD runs headless",
)
@click.option(
    "--phase",
    type=click.Choice(PHASES, case_sensitive=False),
    default="all",
    help="Run Pass 1 (build), Pass 2 (summary) or both in sequence",
)
@click.option("--max-cars", type=click.IntRange(min=1), default=None, help="Stop after this many model cards")
@click.option("--urls-csv", type=click.Path(dir_okay=False), default=None, help="Build table (Pass 1 output)")
@click.option("--data-csv", type=click.Path(dir_okay=False), default=None, help="Summary table (Pass 2 output)")
@click.option(
    "--save-html/--no-save-html",
    default=False,
    help="Keep a copy of every fetched page under samples/",
)
def main(log_level, dev, phase, max_cars, urls_csv, data_csv, save_html) -> None:
    """Scrape BMW UK configurator builds and their priced spec sheets."""
    Logger.configure(log_level=log_level.upper())

    os.environ["DEV"] = "true" if dev else "false"
    try:
        config = Settings(dev_mode=dev)
    except ValueError as e:
        raise click.UsageError(str(e))
    if max_cars is not None:
        config.max_cars = max_cars
    if urls_csv:
        config.urls_csv = urls_csv
    if data_csv:
        config.data_csv = data_csv

    logger.info(f"Mode: {config.mode}")
    logger.info(f"Phase: {phase}")
    logger.info(f"Build table: {config.urls_path}")
    logger.info(f"Summary table: {config.data_path}")

    process = CrawlerProcess(
        settings=Scrapper.settings_for_mode(dev, log_level.upper()),
        install_root_handler=False,
    )

    @defer.inlineCallbacks
    def run_phases():
        if phase.lower() in ("all", "build"):
            yield process.crawl(BuildSpider, config=config, save_html=save_html)
        if phase.lower() in ("all", "summary"):
            yield process.crawl(SummarySpider, config=config, save_html=save_html)

    run_phases()
    process.start()

    console.print(render_tables_summary(config))


if __name__ == "__main__":
    main()
