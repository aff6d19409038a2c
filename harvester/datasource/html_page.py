from __future__ import annotations

import asyncio
import datetime as dt
import logging
import re
import time
from typing import Any, Callable, Optional

from bs4 import BeautifulSoup

from ..config import HarvestSettings
from ..types import BALL_COUNT, FetchBatch, FetchOutcome, is_ball
from .base import ResultDataSource
from .normalize import RecordNormalizer, digit_tokens, parse_date_text, DATE_RE
from .transport import TransportClient

_PERIOD_RE = re.compile(r"(?<![0-9])[0-9]{8,10}(?![0-9])")
_TIME_RE = re.compile(r"(?<![0-9])[0-9]{1,2}:[0-9]{2}(?::[0-9]{2})?(?![0-9])")
_MAX_REGION_TOKENS = BALL_COUNT + 1


def html_to_lines(document: str) -> list[str]:
    soup = BeautifulSoup(document, "html.parser")
    for tag in soup(["script", "style", "noscript", "template"]):
        tag.decompose()
    text = soup.get_text("\n")
    lines = (line.replace("\xa0", " ").strip() for line in text.splitlines())
    return [line for line in lines if line]


def find_draw_regions(lines: list[str]) -> list[dict[str, Any]]:
    """Split page text into regions that start at a period-like token.

    Each region keeps the in-range numbers that follow its period (at most 21:
    20 balls and a super number) and the first date seen. Regions with fewer
    than 20 numbers are dropped.
    """
    regions: list[dict[str, Any]] = []
    current: Optional[dict[str, Any]] = None

    def close() -> None:
        if current is not None and len(current["winNo"]) >= BALL_COUNT:
            regions.append(current)

    for line in lines:
        match = _PERIOD_RE.search(line)
        if match:
            close()
            current = {"period": match.group(0), "date": None, "winNo": []}
            line = line[: match.start()] + " " + line[match.end():]
        if current is None or len(current["winNo"]) >= _MAX_REGION_TOKENS:
            continue

        date_match = DATE_RE.search(line)
        if date_match:
            if current["date"] is None:
                current["date"] = parse_date_text(date_match.group(0))
            line = line[: date_match.start()] + " " + line[date_match.end():]
        line = _TIME_RE.sub(" ", line)

        for number in digit_tokens(line):
            if is_ball(number):
                current["winNo"].append(number)
                if len(current["winNo"]) >= _MAX_REGION_TOKENS:
                    break
    close()
    return regions


class HtmlDataSource(ResultDataSource):
    """Lower-confidence fallback that reads draw results off the public result pages."""

    name = "html"

    def __init__(
        self,
        settings: HarvestSettings,
        transport: Optional[TransportClient] = None,
        normalizer: Optional[RecordNormalizer] = None,
        sleep: Callable[[float], None] = time.sleep,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._settings = settings
        self._transport = transport or TransportClient(settings.retry, settings.http)
        self._normalizer = normalizer or RecordNormalizer(settings.super_fallback_last_ball)
        self._sleep = sleep
        self._logger = logger or logging.getLogger("bingo.harvester.html")

    async def fetch_draws(self, target_date: dt.date) -> FetchBatch:
        return await asyncio.to_thread(self._scrape)

    async def close(self) -> None:
        self._transport.close()

    def parse_document(self, document: str) -> FetchBatch:
        batch = FetchBatch(source=self.name)
        records, rejected = self._normalizer.normalize_many(find_draw_regions(html_to_lines(document)))
        seen: set[str] = set()
        for record in records:
            if record.period in seen:
                continue
            seen.add(record.period)
            batch.records.append(record)
        batch.rejected = rejected
        return batch

    def _scrape(self) -> FetchBatch:
        html = self._settings.html
        rejected = 0
        for url in html.urls:
            for attempt in range(html.poll_retries + 1):
                result = self._transport.fetch_text(url)
                if result.ok:
                    batch = self.parse_document(result.payload)
                    rejected += batch.rejected
                    if batch.records:
                        self._logger.info("Parsed %s draw(s) from %s", len(batch.records), url)
                        batch.rejected = rejected
                        return batch
                elif result.outcome is FetchOutcome.CLIENT_ERROR:
                    self._logger.debug("HTML page %s returned %s", url, result.status)
                    break
                if attempt < html.poll_retries:
                    self._logger.debug(
                        "No draws on %s yet; re-checking in %.1fs", url, html.poll_wait_seconds
                    )
                    self._sleep(html.poll_wait_seconds)
        return FetchBatch(source=self.name, rejected=rejected)
