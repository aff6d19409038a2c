from __future__ import annotations

import asyncio
import datetime as dt
import json
import logging
import pathlib
from typing import Any, Iterable, Optional

from ..config import HarvestSettings
from ..explorer import CandidateSpace
from ..types import CandidateRequestShape, FetchAttemptResult, FetchBatch
from .base import ResultDataSource
from .extract import extract_items
from .normalize import RecordNormalizer
from .pagination import PaginationController
from .transport import TransportClient, build_request_params


class ApiDataSource(ResultDataSource):
    """Searches the candidate request space of the JSON API.

    The first candidate whose first page yields at least one valid record is
    pinned and paginated to the end; the remaining candidates are skipped.
    """

    name = "api"

    def __init__(
        self,
        settings: HarvestSettings,
        transport: Optional[TransportClient] = None,
        candidates: Optional[Iterable[CandidateRequestShape]] = None,
        normalizer: Optional[RecordNormalizer] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._settings = settings
        self._transport = transport or TransportClient(settings.retry, settings.http)
        self._candidates = candidates if candidates is not None else CandidateSpace(settings.search)
        self._normalizer = normalizer or RecordNormalizer(settings.super_fallback_last_ball)
        self._logger = logger or logging.getLogger("bingo.harvester.api")

    async def fetch_draws(self, target_date: dt.date) -> FetchBatch:
        return await asyncio.to_thread(self._search, target_date)

    async def close(self) -> None:
        self._transport.close()

    def fetch_page(
        self, shape: CandidateRequestShape, target_date: dt.date, page: int
    ) -> FetchAttemptResult:
        params = build_request_params(
            shape,
            target_date,
            page,
            self._settings.paging.page_size,
            self._settings.search.page_size_key,
        )
        return self._transport.fetch_json(shape.endpoint, method=shape.method, params=params)

    def _search(self, target_date: dt.date) -> FetchBatch:
        batch = FetchBatch(source=self.name)
        for index, shape in enumerate(self._candidates):
            attempt = self.fetch_page(shape, target_date, 0)
            if not attempt.ok:
                self._logger.debug(
                    "Candidate %s abandoned: %s %s",
                    shape.describe(),
                    attempt.outcome.value,
                    attempt.status or attempt.cause or "",
                )
                continue

            items = extract_items(attempt.payload)
            probe, rejected = self._normalizer.normalize_many(items)
            if not probe:
                batch.rejected += rejected
                self._logger.debug(
                    "Candidate %s returned %s item(s), none valid", shape.describe(), len(items)
                )
                continue

            self._logger.info("Pinned request shape #%s: %s", index, shape.describe())
            controller = PaginationController(
                self.fetch_page,
                self._normalizer,
                self._settings.paging,
                on_page=lambda page, payload, _i=index: self._save_artifact(
                    target_date, _i, page, payload
                ),
                logger=self._logger,
            )
            result = controller.run(shape, target_date, first_payload=attempt.payload)
            batch.extend(result.records, result.rejected)
            batch.pinned_shape = shape
            return batch

        self._logger.info("API candidate space exhausted without records for %s", target_date)
        return batch

    def _save_artifact(self, target_date: dt.date, index: int, page: int, payload: Any) -> None:
        artifacts_dir = self._settings.artifacts_dir
        if not artifacts_dir:
            return
        path = pathlib.Path(artifacts_dir) / f"bingo_{target_date.isoformat()}_{index}_p{page}.json"
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        except (OSError, TypeError) as exc:
            self._logger.warning("Could not write artifact %s: %s", path, exc)
