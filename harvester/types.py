from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Sequence

from .errors import RecordRejected

BALL_COUNT = 20
MIN_BALL = 1
MAX_BALL = 80


def is_ball(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and MIN_BALL <= value <= MAX_BALL


def period_sort_key(period: str) -> tuple[int, str]:
    digits = "".join(ch for ch in period if "0" <= ch <= "9")
    return (int(digits) if digits else -1, period)


@dataclass(frozen=True)
class DrawRecord:
    """One validated draw: 20 distinct balls in 1..80 and an optional super number."""

    period: str
    balls: tuple[int, ...]
    super_number: Optional[int] = None
    date: Optional[dt.date] = None

    def __post_init__(self) -> None:
        if not self.period or not self.period.strip():
            raise RecordRejected("empty period")
        balls = tuple(self.balls)
        if len(balls) != BALL_COUNT or len(set(balls)) != BALL_COUNT:
            raise RecordRejected(f"expected {BALL_COUNT} distinct balls, got {len(set(balls))}")
        if not all(is_ball(b) for b in balls):
            raise RecordRejected("ball out of range")
        if self.super_number is not None and not is_ball(self.super_number):
            raise RecordRejected(f"super number out of range: {self.super_number}")
        object.__setattr__(self, "balls", tuple(sorted(balls)))

    @property
    def is_complete(self) -> bool:
        return len(self.balls) == BALL_COUNT and self.super_number is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "period": self.period,
            "date": self.date.isoformat() if self.date else "",
            "balls": list(self.balls),
            "super": self.super_number,
        }


class DateFormat(str, Enum):
    ISO = "iso"
    SLASH = "slash"
    ROC = "roc"
    COMPACT = "compact"

    def render(self, day: dt.date) -> str:
        if self is DateFormat.ISO:
            return day.isoformat()
        if self is DateFormat.SLASH:
            return day.strftime("%Y/%m/%d")
        if self is DateFormat.ROC:
            # Minguo calendar: year 1 == 1912.
            return f"{day.year - 1911}/{day.month:02d}/{day.day:02d}"
        return day.strftime("%Y%m%d")


@dataclass(frozen=True)
class CandidateRequestShape:
    endpoint: str
    date_key: str
    date_format: DateFormat
    page_key: str
    method: str = "GET"
    page_index_origin: int = 1

    def describe(self) -> str:
        return (
            f"{self.method} {self.endpoint} {self.date_key}={self.date_format.value} "
            f"{self.page_key}@{self.page_index_origin}"
        )


class FetchOutcome(Enum):
    SUCCESS = "success"
    EMPTY = "empty"
    CLIENT_ERROR = "client_error"
    SERVER_ERROR = "server_error"
    TRANSPORT_FAILURE = "transport_failure"


@dataclass(frozen=True)
class FetchAttemptResult:
    outcome: FetchOutcome
    payload: Any = None
    status: Optional[int] = None
    cause: Optional[str] = None
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return self.outcome is FetchOutcome.SUCCESS

    @property
    def retryable(self) -> bool:
        return self.outcome in (FetchOutcome.SERVER_ERROR, FetchOutcome.TRANSPORT_FAILURE)


class RunState(Enum):
    TRY_API = "try_api"
    TRY_HTML = "try_html"
    DONE = "done"
    EXHAUSTED = "exhausted"


@dataclass
class FetchBatch:
    """Records gathered by one data source for one target date."""

    records: list[DrawRecord] = field(default_factory=list)
    rejected: int = 0
    pinned_shape: Optional[CandidateRequestShape] = None
    source: str = ""

    def extend(self, records: Sequence[DrawRecord], rejected: int = 0) -> None:
        self.records.extend(records)
        self.rejected += rejected


@dataclass
class RunReport:
    target_date: dt.date
    state: RunState
    source: str = ""
    pinned_shape: Optional[CandidateRequestShape] = None
    fetched: int = 0
    rejected: int = 0
    conflicts: int = 0
    added: int = 0
    total: int = 0
    previous_max_period: Optional[str] = None
    new_max_period: Optional[str] = None
    changed: bool = False
    written: bool = False
