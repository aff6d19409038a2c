from __future__ import annotations

import datetime as dt
import logging
import time
from typing import Any, Callable, Mapping, Optional

import requests

from ..config import HttpSettings, RetrySettings
from ..types import CandidateRequestShape, FetchAttemptResult, FetchOutcome


def build_request_params(
    shape: CandidateRequestShape,
    target_date: dt.date,
    page: int,
    page_size: int,
    page_size_key: str,
) -> dict[str, Any]:
    """Parameters for the zero-based ``page`` of ``shape`` on ``target_date``."""
    params: dict[str, Any] = {
        shape.date_key: shape.date_format.render(target_date),
        shape.page_key: shape.page_index_origin + page,
    }
    if page_size_key:
        params[page_size_key] = page_size
    return params


def _is_empty_payload(payload: Any) -> bool:
    return payload is None or payload == "" or payload == [] or payload == {}


class TransportClient:
    """Executes single HTTP calls and classifies their outcome.

    Server errors and transport failures are retried on the same request with
    fixed or linear backoff, client errors are returned immediately. A fixed
    pacing delay separates consecutive requests.
    """

    def __init__(
        self,
        retry: RetrySettings,
        http: Optional[HttpSettings] = None,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._retry = retry
        self._session = session or requests.Session()
        if http is not None:
            self._session.headers.update(http.headers())
        self._sleep = sleep
        self._clock = clock
        self._last_request_at: Optional[float] = None
        self._logger = logger or logging.getLogger("bingo.harvester.transport")

    def close(self) -> None:
        self._session.close()

    def fetch_json(
        self, url: str, method: str = "GET", params: Optional[Mapping[str, Any]] = None
    ) -> FetchAttemptResult:
        return self._with_retries(lambda: self._call(url, method, params, expect_json=True))

    def fetch_text(self, url: str) -> FetchAttemptResult:
        return self._with_retries(lambda: self._call(url, "GET", None, expect_json=False))

    def _with_retries(self, call: Callable[[], FetchAttemptResult]) -> FetchAttemptResult:
        retry = self._retry
        attempt = 0
        while True:
            attempt += 1
            result = call()
            if not result.retryable or attempt > retry.max_retries:
                return FetchAttemptResult(
                    outcome=result.outcome,
                    payload=result.payload,
                    status=result.status,
                    cause=result.cause,
                    attempts=attempt,
                )
            delay = retry.backoff_seconds * (attempt if retry.linear_backoff else 1)
            self._logger.debug(
                "Attempt %s failed (%s %s); retrying in %.1fs",
                attempt,
                result.outcome.value,
                result.status or result.cause,
                delay,
            )
            self._sleep(delay)

    def _pace(self) -> None:
        delay = self._retry.request_delay_seconds
        if self._last_request_at is not None and delay > 0:
            elapsed = self._clock() - self._last_request_at
            if elapsed < delay:
                self._sleep(delay - elapsed)
        self._last_request_at = self._clock()

    def _call(
        self,
        url: str,
        method: str,
        params: Optional[Mapping[str, Any]],
        expect_json: bool,
    ) -> FetchAttemptResult:
        self._pace()
        kwargs: dict[str, Any] = {"timeout": self._retry.timeout_seconds}
        if method.upper() == "GET":
            kwargs["params"] = dict(params or {})
        else:
            kwargs["json"] = dict(params or {})
        try:
            resp = self._session.request(method.upper(), url, **kwargs)
        except requests.RequestException as exc:
            return FetchAttemptResult(FetchOutcome.TRANSPORT_FAILURE, cause=repr(exc))

        status = int(resp.status_code)
        if status >= 500:
            return FetchAttemptResult(FetchOutcome.SERVER_ERROR, status=status)
        if status >= 400:
            return FetchAttemptResult(FetchOutcome.CLIENT_ERROR, status=status)

        if not expect_json:
            text = resp.text or ""
            if not text.strip():
                return FetchAttemptResult(FetchOutcome.EMPTY, status=status)
            return FetchAttemptResult(FetchOutcome.SUCCESS, payload=text, status=status)

        try:
            payload = resp.json()
        except ValueError:
            # Soft error pages (HTML with a 200) carry no records.
            return FetchAttemptResult(FetchOutcome.EMPTY, status=status)
        if _is_empty_payload(payload):
            return FetchAttemptResult(FetchOutcome.EMPTY, status=status)
        return FetchAttemptResult(FetchOutcome.SUCCESS, payload=payload, status=status)
