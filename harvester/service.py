from __future__ import annotations

import argparse
import asyncio
import datetime as dt
import logging
import sys
from typing import Optional

from .config import HarvestSettings, load_config
from .datasource import ApiDataSource, HtmlDataSource, TransportClient
from .orchestrator import HarvestOrchestrator
from .store import JsonDrawStore
from .types import RunReport

CHANGED_EXIT_CODE = 10


def configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )


def build_orchestrator(settings: HarvestSettings) -> HarvestOrchestrator:
    api_source = ApiDataSource(settings, TransportClient(settings.retry, settings.http))
    html_source = None
    if settings.html.urls:
        html_source = HtmlDataSource(settings, TransportClient(settings.retry, settings.http))
    return HarvestOrchestrator(
        settings,
        api_source,
        html_source,
        JsonDrawStore(settings.store_file),
        logger=logging.getLogger("bingo.harvester"),
    )


def log_report(report: RunReport, logger: logging.Logger) -> None:
    logger.info(
        "Run %s for %s: source=%s fetched=%s rejected=%s conflicts=%s added=%s total=%s "
        "max_period %s -> %s written=%s",
        report.state.value,
        report.target_date,
        report.source or "-",
        report.fetched,
        report.rejected,
        report.conflicts,
        report.added,
        report.total,
        report.previous_max_period,
        report.new_max_period,
        report.written,
    )
    if report.pinned_shape is not None:
        logger.info("Pinned request shape: %s", report.pinned_shape.describe())


async def run(args: argparse.Namespace) -> RunReport:
    settings = load_config(args.env_file)
    configure_logging(args.verbose)
    logger = logging.getLogger("bingo.harvester")

    if args.date:
        settings = settings.copy(target_date=dt.date.fromisoformat(args.date))
    if args.store:
        settings = settings.copy(store_file=args.store)

    orchestrator = build_orchestrator(settings)
    report = await orchestrator.run_once(dry_run=args.dry_run)
    log_report(report, logger)
    return report


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Bingo draw harvester")
    parser.add_argument("--env-file", type=str, default=None, help="Path to .env file with settings")
    parser.add_argument("--date", type=str, default=None, help="Target draw date (YYYY-MM-DD).")
    parser.add_argument("--store", type=str, default=None, help="Path of the JSON draw store.")
    parser.add_argument("--dry-run", action="store_true", help="Fetch and merge but never write.")
    parser.add_argument(
        "--exit-code-on-change",
        action="store_true",
        help=f"Exit with status {CHANGED_EXIT_CODE} when the store changed.",
    )
    parser.add_argument(
        "--verbose", action="store_true", help="Enable debug logging (default INFO)."
    )
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    try:
        report = asyncio.run(run(args))
    except KeyboardInterrupt:
        print("Harvester stopped by user.")
        return 130
    except Exception:
        logging.getLogger("bingo.harvester").exception("Harvest run failed")
        return 1
    if args.exit_code_on_change and report.changed:
        return CHANGED_EXIT_CODE
    return 0


if __name__ == "__main__":
    sys.exit(main())
