"""Result values for fallback-chain lap fetches.

Lap-fetch paths never raise for upstream trouble; they return one of these
records with the laps they did manage to collect plus an error annotation,
so the caller decides whether to fall back.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from paddock.exceptions import RateLimitError
from paddock.models.lap import LapRecord

PRIMARY_SOURCE = "jolpica"
SECONDARY_SOURCE = "openf1"


class LapError(StrEnum):
    RATE_LIMITED = "rate_limited"
    FETCH_FAILED = "fetch_failed"


def error_kind(exc: BaseException) -> LapError:
    """Map an exception to the soft error annotation carried by lap results."""
    if isinstance(exc, RateLimitError):
        return LapError.RATE_LIMITED
    return LapError.FETCH_FAILED


@dataclass(frozen=True)
class LapFetch:
    """Laps for one driver in one race.

    ``total`` is the record count the upstream declared (or the number of laps
    when the source gives no count); ``source`` names the provider that
    supplied the laps.
    """

    laps: tuple[LapRecord, ...] = ()
    total: int = 0
    error: LapError | None = None
    source: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class RaceLapFetch:
    """Laps for every driver in one race, keyed by primary-provider driver id."""

    laps_by_driver: dict[str, tuple[LapRecord, ...]] = field(default_factory=dict)
    total: int = 0
    error: LapError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def __bool__(self) -> bool:
        return bool(self.laps_by_driver)
