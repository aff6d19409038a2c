from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from ..config import PagingSettings
from ..types import CandidateRequestShape, DrawRecord, FetchAttemptResult
from .extract import extract_items, total_count_hint
from .normalize import RecordNormalizer

PageFetcher = Callable[[CandidateRequestShape, dt.date, int], FetchAttemptResult]


class StopReason(Enum):
    TOTAL_REACHED = "total_reached"
    SHORT_PAGE = "short_page"
    MAX_PAGES = "max_pages"
    EMPTY_PAGE = "empty_page"
    FETCH_FAILED = "fetch_failed"
    STALLED = "stalled"


@dataclass
class PaginationResult:
    records: list[DrawRecord] = field(default_factory=list)
    rejected: int = 0
    pages: int = 0
    stop_reason: Optional[StopReason] = None


def decide_stop(
    payload: Any,
    page: int,
    rows_on_page: int,
    rows_so_far: int,
    paging: PagingSettings,
) -> Optional[StopReason]:
    """Stop decision after zero-based ``page``; None means fetch the next page.

    An explicit total-count hint wins over the short-page heuristic, which wins
    over the max-page ceiling.
    """
    hint = total_count_hint(payload)
    if hint is not None:
        if rows_so_far >= hint:
            return StopReason.TOTAL_REACHED
    elif rows_on_page < paging.page_size:
        return StopReason.SHORT_PAGE
    if page + 1 >= paging.max_pages:
        return StopReason.MAX_PAGES
    return None


class PaginationController:
    """Walks the pages of one pinned request shape."""

    def __init__(
        self,
        fetch_page: PageFetcher,
        normalizer: RecordNormalizer,
        paging: PagingSettings,
        on_page: Optional[Callable[[int, Any], None]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._fetch_page = fetch_page
        self._normalizer = normalizer
        self._paging = paging
        self._on_page = on_page
        self._logger = logger or logging.getLogger("bingo.harvester.pagination")

    def run(
        self,
        shape: CandidateRequestShape,
        target_date: dt.date,
        first_payload: Any = None,
    ) -> PaginationResult:
        """Collect records page by page; ``first_payload`` reuses an already fetched page 0."""
        result = PaginationResult()
        seen_periods: set[str] = set()
        rows_so_far = 0

        for page in range(max(self._paging.max_pages, 0)):
            if page == 0 and first_payload is not None:
                payload = first_payload
            else:
                attempt = self._fetch_page(shape, target_date, page)
                if not attempt.ok:
                    self._logger.debug(
                        "Page %s of %s ended with %s", page, shape.describe(), attempt.outcome.value
                    )
                    result.stop_reason = StopReason.FETCH_FAILED
                    break
                payload = attempt.payload
            result.pages += 1
            if self._on_page is not None:
                self._on_page(page, payload)

            items = extract_items(payload)
            if not items:
                result.stop_reason = StopReason.EMPTY_PAGE
                break

            records, rejected = self._normalizer.normalize_many(items)
            result.rejected += rejected
            fresh = [r for r in records if r.period not in seen_periods]
            if page > 0 and not fresh:
                result.stop_reason = StopReason.STALLED
                break
            seen_periods.update(r.period for r in fresh)
            result.records.extend(fresh)
            rows_so_far += len(items)

            reason = decide_stop(payload, page, len(items), rows_so_far, self._paging)
            if reason is not None:
                result.stop_reason = reason
                break

        self._logger.debug(
            "Pagination of %s stopped after %s page(s): %s",
            shape.describe(),
            result.pages,
            result.stop_reason.value if result.stop_reason else "none",
        )
        return result
