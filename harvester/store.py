from __future__ import annotations

import json
import logging
import os
import pathlib
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from .datasource.normalize import parse_date_text
from .errors import PersistenceWriteError, RecordRejected
from .types import BALL_COUNT, DrawRecord, is_ball, period_sort_key

Store = dict[str, DrawRecord]


class StoredDraw(BaseModel):
    """One persisted row: ``{period, date, balls, super}``."""

    model_config = ConfigDict(populate_by_name=True)

    period: str = Field(..., validation_alias=AliasChoices("period", "term"))
    date: str = ""
    balls: list[int] = Field(..., validation_alias=AliasChoices("balls", "numbers"))
    super_number: Optional[int] = Field(
        None, validation_alias=AliasChoices("super", "super_number"), serialization_alias="super"
    )

    @field_validator("period", mode="before")
    @classmethod
    def period_as_text(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("date", mode="before")
    @classmethod
    def date_as_text(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("balls")
    @classmethod
    def validate_balls(cls, value: list[int]) -> list[int]:
        if len(value) != BALL_COUNT or len(set(value)) != BALL_COUNT:
            raise ValueError(f"Draws require exactly {BALL_COUNT} distinct balls.")
        if not all(is_ball(n) for n in value):
            raise ValueError("Balls must be between 1 and 80.")
        return value

    @field_validator("super_number")
    @classmethod
    def validate_super(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and not is_ball(value):
            raise ValueError("Super number must be between 1 and 80.")
        return value

    def to_record(self) -> DrawRecord:
        return DrawRecord(
            period=self.period.strip(),
            balls=tuple(self.balls),
            super_number=self.super_number,
            date=parse_date_text(self.date) if self.date else None,
        )


@dataclass
class MergeStats:
    added: int = 0
    replaced: int = 0
    conflicts: int = 0


def serialize_store(store: Mapping[str, DrawRecord]) -> list[dict[str, Any]]:
    ordered = sorted(store.values(), key=lambda r: period_sort_key(r.period))
    return [record.to_dict() for record in ordered]


def max_period(store: Mapping[str, DrawRecord]) -> Optional[str]:
    if not store:
        return None
    return max(store, key=period_sort_key)


def reconcile(
    existing: Mapping[str, DrawRecord],
    incoming: Iterable[DrawRecord],
    stats: Optional[MergeStats] = None,
    logger: Optional[logging.Logger] = None,
) -> tuple[Store, bool]:
    """Merge ``incoming`` into a copy of ``existing``.

    Absent periods are inserted. A stored record is only replaced by a strictly
    more complete one, so a complete record never regresses. When two complete
    records disagree the stored one wins and the conflict is logged.
    Returns the merged store in ascending period order and whether its
    serialized form differs from that of ``existing``.
    """
    stats = stats if stats is not None else MergeStats()
    logger = logger or logging.getLogger("bingo.harvester.store")
    merged: Store = dict(existing)

    for record in incoming:
        current = merged.get(record.period)
        if current is None:
            merged[record.period] = record
            stats.added += 1
            continue
        if not current.is_complete and record.is_complete:
            merged[record.period] = record
            stats.replaced += 1
            continue
        if current.is_complete and record.is_complete and (
            current.balls != record.balls or current.super_number != record.super_number
        ):
            stats.conflicts += 1
            logger.warning(
                "Conflicting complete draws for period %s; keeping stored %s/%s over %s/%s",
                record.period,
                list(current.balls),
                current.super_number,
                list(record.balls),
                record.super_number,
            )

    ordered: Store = {
        period: merged[period] for period in sorted(merged, key=period_sort_key)
    }
    changed = serialize_store(ordered) != serialize_store(existing)
    return ordered, changed


class JsonDrawStore:
    """Persists the draw store as an ascending JSON list."""

    def __init__(self, path: str, logger: Optional[logging.Logger] = None) -> None:
        self._path = pathlib.Path(path)
        self._logger = logger or logging.getLogger("bingo.harvester.store")

    @property
    def path(self) -> pathlib.Path:
        return self._path

    def load(self) -> Store:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            self._logger.warning("Could not read %s (%s); starting from an empty store", self._path, exc)
            return {}
        if not isinstance(data, list):
            self._logger.warning("%s does not hold a list; starting from an empty store", self._path)
            return {}

        rows: list[DrawRecord] = []
        for index, raw in enumerate(data):
            try:
                rows.append(StoredDraw.model_validate(raw).to_record())
            except (ValidationError, RecordRejected) as exc:
                self._logger.warning("Skipping invalid stored row #%s: %s", index, exc)
        store, _ = reconcile({}, rows, logger=self._logger)
        return store

    def save(self, store: Mapping[str, DrawRecord]) -> None:
        payload = json.dumps(serialize_store(store), ensure_ascii=False, indent=2)
        tmp_path = self._path.with_name(self._path.name + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(payload + "\n", encoding="utf-8")
            os.replace(tmp_path, self._path)
        except OSError as exc:
            tmp_path.unlink(missing_ok=True)
            raise PersistenceWriteError(f"Failed to write draw store {self._path}: {exc}") from exc
