from __future__ import annotations

import abc
import datetime as dt

from ..types import FetchBatch


class ResultDataSource(abc.ABC):
    """Abstract draw provider."""

    name: str = "source"

    @abc.abstractmethod
    async def fetch_draws(self, target_date: dt.date) -> FetchBatch:
        """Return every draw record this source can find for ``target_date``.

        An empty batch means the source had nothing usable; implementations
        must not raise for network or payload problems.
        """

    async def close(self) -> None:
        """Optional hook for connectors that require cleanup."""
        return None
