from __future__ import annotations

import itertools
from typing import Iterator

from .config import SearchSpace
from .types import CandidateRequestShape


class CandidateSpace:
    """Lazy, restartable cartesian product over the configured search dimensions.

    Iteration order is endpoint-major: for each endpoint every date key is
    tried, for each date key every date format, then page key, HTTP method and
    page index origin. Iterating twice yields the same sequence.
    """

    def __init__(self, space: SearchSpace) -> None:
        self._space = space

    def __iter__(self) -> Iterator[CandidateRequestShape]:
        space = self._space
        product = itertools.product(
            space.endpoints,
            space.date_keys,
            space.date_formats,
            space.page_keys,
            space.methods,
            space.page_origins,
        )
        for endpoint, date_key, date_format, page_key, method, origin in product:
            yield CandidateRequestShape(
                endpoint=endpoint,
                date_key=date_key,
                date_format=date_format,
                page_key=page_key,
                method=method.upper(),
                page_index_origin=origin,
            )

    def __len__(self) -> int:
        space = self._space
        size = 1
        for dimension in (
            space.endpoints,
            space.date_keys,
            space.date_formats,
            space.page_keys,
            space.methods,
            space.page_origins,
        ):
            size *= len(dimension)
        return size
