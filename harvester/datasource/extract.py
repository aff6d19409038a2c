from __future__ import annotations

from typing import Any, Optional, Sequence

from .normalize import coerce_int

# Ordered container locations; "" is the payload itself (bare top-level array).
CONTAINER_PATHS: tuple[str, ...] = (
    "content.bingoQueryResult",
    "content.list",
    "content.rows",
    "content.items",
    "content",
    "data.list",
    "data.rows",
    "data.items",
    "data.content",
    "data",
    "result.list",
    "result",
    "list",
    "rows",
    "items",
    "",
)

TOTAL_COUNT_PATHS: tuple[str, ...] = (
    "content.totalSize",
    "content.total",
    "content.totalCount",
    "data.totalSize",
    "data.total",
    "data.totalCount",
    "totalSize",
    "total",
    "totalCount",
)


def get_by_path(obj: Any, path: str) -> Any:
    """Value at dotted ``path`` (digit segments index lists) or None."""
    if path == "":
        return obj
    cur = obj
    for seg in path.split("."):
        if isinstance(cur, list) and seg.isdigit():
            idx = int(seg)
            if 0 <= idx < len(cur):
                cur = cur[idx]
                continue
            return None
        if isinstance(cur, dict) and seg in cur:
            cur = cur[seg]
            continue
        return None
    return cur


def extract_items(payload: Any, paths: Sequence[str] = CONTAINER_PATHS) -> list[Any]:
    """First non-empty list found at one of ``paths``; empty list when none match."""
    for path in paths:
        value = get_by_path(payload, path)
        if isinstance(value, list) and value:
            return value
    return []


def total_count_hint(payload: Any, paths: Sequence[str] = TOTAL_COUNT_PATHS) -> Optional[int]:
    for path in paths:
        value = get_by_path(payload, path)
        if isinstance(value, bool):
            continue
        count = coerce_int(value)
        if count is not None and count >= 0:
            return count
    return None
