from __future__ import annotations

import datetime as dt
import os
import pathlib
from dataclasses import dataclass, replace
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

from .types import DateFormat

DEFAULT_ENDPOINT = "https://api.taiwanlottery.com/TLCAPIWeB/Lottery/BingoResult"
DEFAULT_HTML_URL = "https://www.taiwanlottery.com/lotto/result/bingo_bingo/"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/139.0.0.0 Safari/537.36"
)


def _bool_from_env(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _int_from_env(value: Optional[str], default: int) -> int:
    if value is None or value == "":
        return default
    return int(value)


def _float_from_env(value: Optional[str], default: float) -> float:
    if value is None or value == "":
        return default
    return float(value)


def _list_from_env(value: Optional[str], default: tuple[str, ...]) -> tuple[str, ...]:
    if value is None or value.strip() == "":
        return default
    return tuple(part.strip() for part in value.split(",") if part.strip())


@dataclass(frozen=True)
class SearchSpace:
    """Dimension lists the explorer multiplies into candidate request shapes."""

    endpoints: tuple[str, ...] = (DEFAULT_ENDPOINT,)
    date_keys: tuple[str, ...] = ("openDate", "drawDate", "date")
    date_formats: tuple[DateFormat, ...] = (DateFormat.ISO, DateFormat.SLASH, DateFormat.ROC)
    page_keys: tuple[str, ...] = ("pageNum", "page", "pageIndex")
    methods: tuple[str, ...] = ("GET", "POST")
    page_origins: tuple[int, ...] = (1, 0)
    page_size_key: str = "pageSize"


@dataclass(frozen=True)
class PagingSettings:
    page_size: int = 50
    max_pages: int = 20


@dataclass(frozen=True)
class RetrySettings:
    max_retries: int = 2
    backoff_seconds: float = 1.0
    linear_backoff: bool = True
    request_delay_seconds: float = 0.5
    timeout_seconds: int = 10


@dataclass(frozen=True)
class HttpSettings:
    user_agent: str = DEFAULT_USER_AGENT
    origin: str = "https://www.taiwanlottery.com"
    referer: str = "https://www.taiwanlottery.com/"
    accept: str = "application/json, text/plain, */*"

    def headers(self) -> dict[str, str]:
        headers = {"User-Agent": self.user_agent, "Accept": self.accept}
        if self.origin:
            headers["Origin"] = self.origin
        if self.referer:
            headers["Referer"] = self.referer
        return headers


@dataclass(frozen=True)
class HtmlSettings:
    urls: tuple[str, ...] = (DEFAULT_HTML_URL,)
    poll_retries: int = 2
    poll_wait_seconds: float = 5.0


@dataclass(frozen=True)
class HarvestSettings:
    store_file: str = "data/draws.json"
    timezone_offset_hours: int = 8
    target_date: Optional[dt.date] = None
    artifacts_dir: Optional[str] = None
    super_fallback_last_ball: bool = True
    search: SearchSpace = SearchSpace()
    paging: PagingSettings = PagingSettings()
    retry: RetrySettings = RetrySettings()
    http: HttpSettings = HttpSettings()
    html: HtmlSettings = HtmlSettings()

    def copy(self, **updates) -> "HarvestSettings":
        return replace(self, **updates)

    def resolve_target_date(self, now: Optional[dt.datetime] = None) -> dt.date:
        if self.target_date is not None:
            return self.target_date
        tz = dt.timezone(dt.timedelta(hours=self.timezone_offset_hours))
        current = now.astimezone(tz) if now is not None else dt.datetime.now(tz)
        return current.date()


def load_from_environment() -> HarvestSettings:
    defaults = HarvestSettings()

    target_date_raw = os.getenv("TARGET_DATE") or os.getenv("OPEN_DATE")
    target_date = dt.date.fromisoformat(target_date_raw) if target_date_raw else None

    search = SearchSpace(
        endpoints=_list_from_env(os.getenv("SEARCH__ENDPOINTS"), defaults.search.endpoints),
        date_keys=_list_from_env(os.getenv("SEARCH__DATE_KEYS"), defaults.search.date_keys),
        date_formats=tuple(
            DateFormat(name.lower())
            for name in _list_from_env(
                os.getenv("SEARCH__DATE_FORMATS"),
                tuple(fmt.value for fmt in defaults.search.date_formats),
            )
        ),
        page_keys=_list_from_env(os.getenv("SEARCH__PAGE_KEYS"), defaults.search.page_keys),
        methods=tuple(
            method.upper()
            for method in _list_from_env(os.getenv("SEARCH__METHODS"), defaults.search.methods)
        ),
        page_origins=tuple(
            int(origin)
            for origin in _list_from_env(
                os.getenv("SEARCH__PAGE_ORIGINS"),
                tuple(str(origin) for origin in defaults.search.page_origins),
            )
        ),
        page_size_key=os.getenv("SEARCH__PAGE_SIZE_KEY", defaults.search.page_size_key),
    )

    paging = PagingSettings(
        page_size=_int_from_env(os.getenv("PAGING__PAGE_SIZE") or os.getenv("PAGE_SIZE"), 50),
        max_pages=_int_from_env(os.getenv("PAGING__MAX_PAGES"), 20),
    )

    retry = RetrySettings(
        max_retries=_int_from_env(os.getenv("RETRY__MAX_RETRIES"), 2),
        backoff_seconds=_float_from_env(os.getenv("RETRY__BACKOFF_SECONDS"), 1.0),
        linear_backoff=_bool_from_env(os.getenv("RETRY__LINEAR_BACKOFF"), True),
        request_delay_seconds=_float_from_env(os.getenv("RETRY__REQUEST_DELAY_SECONDS"), 0.5),
        timeout_seconds=_int_from_env(os.getenv("RETRY__TIMEOUT_SECONDS"), 10),
    )

    http = HttpSettings(
        user_agent=os.getenv("HTTP__USER_AGENT", DEFAULT_USER_AGENT),
        origin=os.getenv("HTTP__ORIGIN", defaults.http.origin),
        referer=os.getenv("HTTP__REFERER", defaults.http.referer),
        accept=os.getenv("HTTP__ACCEPT", defaults.http.accept),
    )

    html = HtmlSettings(
        urls=_list_from_env(os.getenv("HTML__URLS"), defaults.html.urls),
        poll_retries=_int_from_env(os.getenv("HTML__POLL_RETRIES"), 2),
        poll_wait_seconds=_float_from_env(os.getenv("HTML__POLL_WAIT_SECONDS"), 5.0),
    )

    return HarvestSettings(
        store_file=os.getenv("STORE_FILE", defaults.store_file),
        timezone_offset_hours=_int_from_env(os.getenv("TIMEZONE_OFFSET_HOURS"), 8),
        target_date=target_date,
        artifacts_dir=os.getenv("ARTIFACTS_DIR") or None,
        super_fallback_last_ball=_bool_from_env(
            os.getenv("NORMALIZE__SUPER_FALLBACK_LAST_BALL"), True
        ),
        search=search,
        paging=paging,
        retry=retry,
        http=http,
        html=html,
    )


@lru_cache(maxsize=1)
def load_config(dotenv_path: Optional[str] = None) -> HarvestSettings:
    if dotenv_path:
        load_dotenv(dotenv_path)
    else:
        default_path = pathlib.Path(".env")
        if default_path.exists():
            load_dotenv(default_path)
    return load_from_environment()
