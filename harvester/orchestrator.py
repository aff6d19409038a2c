from __future__ import annotations

import datetime as dt
import logging
from typing import Optional

from .config import HarvestSettings
from .datasource import ResultDataSource
from .store import JsonDrawStore, MergeStats, max_period, reconcile
from .types import FetchBatch, RunReport, RunState


class HarvestOrchestrator:
    """Runs one acquisition: API search, HTML fallback, merge, single write.

    The store is loaded once and written at most once; a run that finds no
    draws ends in ``EXHAUSTED`` without touching the store. Concurrent runs
    against the same store file must be serialized by the caller.
    """

    def __init__(
        self,
        settings: HarvestSettings,
        api_source: ResultDataSource,
        html_source: Optional[ResultDataSource],
        store: JsonDrawStore,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._settings = settings
        self._api_source = api_source
        self._html_source = html_source
        self._store = store
        self._logger = logger or logging.getLogger("bingo.harvester")

    async def run_once(self, target_date: Optional[dt.date] = None, dry_run: bool = False) -> RunReport:
        try:
            return await self._run(target_date or self._settings.resolve_target_date(), dry_run)
        finally:
            await self._api_source.close()
            if self._html_source is not None:
                await self._html_source.close()

    async def _run(self, target_date: dt.date, dry_run: bool) -> RunReport:
        existing = self._store.load()
        report = RunReport(
            target_date=target_date,
            state=RunState.TRY_API,
            total=len(existing),
            previous_max_period=max_period(existing),
            new_max_period=max_period(existing),
        )

        batch = await self._acquire(target_date, report)
        if report.state is RunState.EXHAUSTED:
            self._logger.info(
                "No draws published for %s yet; store left untouched (%s records)",
                target_date,
                report.total,
            )
            return report

        stats = MergeStats()
        merged, changed = reconcile(existing, batch.records, stats=stats, logger=self._logger)
        report.added = stats.added
        report.conflicts = stats.conflicts
        report.total = len(merged)
        report.new_max_period = max_period(merged)
        report.changed = changed

        if not changed:
            self._logger.info("Fetched rows already stored; nothing to write")
        elif dry_run:
            self._logger.info("Dry run: %s new record(s) not written", stats.added)
        else:
            self._store.save(merged)
            report.written = True
            self._logger.info("Wrote %s record(s) to %s", len(merged), self._store.path)
        return report

    async def _acquire(self, target_date: dt.date, report: RunReport) -> FetchBatch:
        self._logger.info("Fetching draws for %s from the API", target_date)
        batch = await self._api_source.fetch_draws(target_date)
        report.rejected += batch.rejected
        if batch.records:
            return self._finish(report, batch)

        report.state = RunState.TRY_HTML
        if self._html_source is not None:
            self._logger.info("API yielded nothing; falling back to HTML result pages")
            batch = await self._html_source.fetch_draws(target_date)
            report.rejected += batch.rejected
            if batch.records:
                return self._finish(report, batch)

        report.state = RunState.EXHAUSTED
        return FetchBatch()

    def _finish(self, report: RunReport, batch: FetchBatch) -> FetchBatch:
        report.state = RunState.DONE
        report.source = batch.source
        report.pinned_shape = batch.pinned_shape
        report.fetched = len(batch.records)
        self._logger.info(
            "Collected %s draw(s) via %s (%s rejected)", len(batch.records), batch.source, batch.rejected
        )
        return batch
