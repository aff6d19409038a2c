from __future__ import annotations

import datetime as dt
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

from ..errors import RecordRejected
from ..types import BALL_COUNT, DrawRecord, is_ball

# ASCII only: str.isdigit()/\d would also accept full-width and other scripts.
_DIGITS_RE = re.compile(r"[0-9]+")
DATE_RE = re.compile(r"(?<![0-9])([0-9]{3,4})\s*[-/.年]\s*([0-9]{1,2})\s*[-/.月]\s*([0-9]{1,2})")
_COMPACT_DATE_RE = re.compile(r"^([0-9]{4})([0-9]{2})([0-9]{2})$")


def digit_tokens(text: str) -> list[int]:
    return [int(tok) for tok in _DIGITS_RE.findall(text)]


def coerce_int(value: Any) -> Optional[int]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        tokens = digit_tokens(value)
        return tokens[0] if len(tokens) == 1 else None
    return None


def coerce_ball(value: Any) -> Optional[int]:
    number = coerce_int(value)
    return number if is_ball(number) else None


def coerce_period(value: Any) -> Optional[str]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        match = _DIGITS_RE.search(value)
        return match.group(0) if match else None
    return None


def parse_date_text(text: str) -> Optional[dt.date]:
    text = text.strip()
    compact = _COMPACT_DATE_RE.match(text)
    match = compact or DATE_RE.search(text)
    if not match:
        return None
    year, month, day = (int(part) for part in match.groups())
    if year < 1000:
        year += 1911
    try:
        return dt.date(year, month, day)
    except ValueError:
        return None


def coerce_date(value: Any) -> Optional[dt.date]:
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if isinstance(value, str):
        return parse_date_text(value)
    return None


def coerce_tokens(value: Any) -> Optional[list[int]]:
    """All numeric tokens of a ball-list value, in document order."""
    tokens: list[int] = []
    if isinstance(value, str):
        tokens = digit_tokens(value)
    elif isinstance(value, (list, tuple)):
        for element in value:
            if isinstance(element, bool):
                continue
            if isinstance(element, int):
                tokens.append(element)
            elif isinstance(element, str):
                tokens.extend(digit_tokens(element))
    else:
        return None
    return tokens or None


@dataclass(frozen=True)
class FieldRule:
    """Ordered source keys for one logical field and the coercion applied to each."""

    name: str
    keys: tuple[str, ...]
    coerce: Callable[[Any], Any]

    def resolve(self, item: Mapping[str, Any]) -> tuple[Optional[str], Any]:
        for key in self.keys:
            if key not in item:
                continue
            value = self.coerce(item[key])
            if value is not None:
                return key, value
        return None, None


PERIOD_RULE = FieldRule(
    "period",
    ("drawTerm", "period", "term", "issue", "issueNo", "drawIssue", "drawNo", "periodNo", "round"),
    coerce_period,
)
DATE_RULE = FieldRule(
    "date",
    ("openDate", "drawDate", "date", "lotteryDate", "draw_date", "drawDt", "openTime"),
    coerce_date,
)
BALLS_RULE = FieldRule(
    "balls",
    (
        "openShowOrder",
        "bigShowOrder",
        "winNo",
        "winNos",
        "winningNumbers",
        "drawNumbers",
        "numbers",
        "balls",
        "result",
    ),
    coerce_tokens,
)
SUPER_RULE = FieldRule(
    "super",
    ("superNo", "starNo", "superNumber", "starNumber", "bullEyeTop", "super", "specialNo", "special"),
    coerce_ball,
)

SLOT_TEMPLATES: tuple[str, ...] = (
    "no{}",
    "no.{}",
    "no_{}",
    "ball{}",
    "ball_{}",
    "num{}",
    "number{}",
    "n{}",
    "drwtNo{}",
    "normalNum{}",
)


def slot_tokens(item: Mapping[str, Any]) -> Optional[list[int]]:
    """Balls spread over numbered fields like ``no1`` .. ``no20`` (plus optional 21st)."""
    for template in SLOT_TEMPLATES:
        values = [coerce_ball(item.get(template.format(i))) for i in range(1, BALL_COUNT + 1)]
        if any(v is None for v in values):
            continue
        extra = coerce_ball(item.get(template.format(BALL_COUNT + 1)))
        if extra is not None:
            values.append(extra)
        return values
    return None


def scan_tokens(item: Mapping[str, Any], skip_keys: Iterable[Optional[str]] = ()) -> list[int]:
    """Every numeric token in the item's string and array values, in document order."""
    skip = {key for key in skip_keys if key}
    tokens: list[int] = []

    def visit(value: Any) -> None:
        if isinstance(value, bool):
            return
        if isinstance(value, str):
            tokens.extend(digit_tokens(value))
        elif isinstance(value, int):
            tokens.append(value)
        elif isinstance(value, (list, tuple)):
            for element in value:
                visit(element)

    for key, value in item.items():
        if key in skip:
            continue
        if isinstance(value, (str, list, tuple)):
            visit(value)
    return tokens


def assemble_balls(tokens: Sequence[int]) -> tuple[list[int], Optional[int]]:
    """First 20 distinct in-range balls and, when 21 raw tokens exist, the 21st."""
    in_range = [t for t in tokens if is_ball(t)]
    balls: list[int] = []
    seen: set[int] = set()
    for number in in_range:
        if number in seen:
            continue
        seen.add(number)
        balls.append(number)
        if len(balls) == BALL_COUNT:
            break
    extra = in_range[BALL_COUNT] if len(in_range) > BALL_COUNT else None
    return balls, extra


class RecordNormalizer:
    """Maps heterogeneous raw items onto :class:`DrawRecord`."""

    def __init__(
        self,
        super_fallback_last_ball: bool = True,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._super_fallback_last_ball = super_fallback_last_ball
        self._logger = logger or logging.getLogger("bingo.harvester.normalize")

    def normalize(self, item: Any) -> DrawRecord:
        if not isinstance(item, Mapping):
            raise RecordRejected("item is not an object")

        period_key, period = PERIOD_RULE.resolve(item)
        if not period:
            raise RecordRejected("empty period")
        date_key, date = DATE_RULE.resolve(item)

        super_key, super_number = SUPER_RULE.resolve(item)

        _, tokens = BALLS_RULE.resolve(item)
        if tokens is None:
            tokens = slot_tokens(item)
        if tokens is None:
            tokens = scan_tokens(item, skip_keys=(period_key, date_key, super_key))

        balls, extra = assemble_balls(tokens)
        if len(balls) < BALL_COUNT:
            raise RecordRejected(f"only {len(balls)} distinct valid balls for period {period}")

        if super_number is None:
            if extra is not None:
                super_number = extra
            elif self._super_fallback_last_ball:
                super_number = balls[-1]

        return DrawRecord(period=period, balls=tuple(balls), super_number=super_number, date=date)

    def normalize_many(self, items: Iterable[Any]) -> tuple[list[DrawRecord], int]:
        records: list[DrawRecord] = []
        rejected = 0
        for item in items:
            try:
                records.append(self.normalize(item))
            except RecordRejected as exc:
                rejected += 1
                self._logger.debug("Rejected item: %s", exc.reason)
        return records, rejected
