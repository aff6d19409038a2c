from __future__ import annotations


class HarvestError(RuntimeError):
    """Base class for failures that abort a harvest run."""


class PersistenceWriteError(HarvestError):
    """The draw store could not be written; the run must fail loudly."""


class RecordRejected(ValueError):
    """Raised when a raw item cannot be turned into a valid draw record."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason
