"""Capability interfaces implemented by the provider clients.

A provider advertises what it can do by the interfaces it subclasses, so the
reconciliation engine decides at construction time which fallback steps exist.
"""

from __future__ import annotations

import datetime as dt
from abc import ABC, abstractmethod
from typing import TypeAlias

from paddock.models.lap import LapRecord
from paddock.models.race import RaceEvent
from paddock.results import LapFetch, RaceLapFetch

# A season year, or the provider sentinel "current"
Season: TypeAlias = int | str


class ScheduleSource(ABC):
    @abstractmethod
    async def get_schedule(self, season: Season = "current") -> list[RaceEvent]: ...


class DriverLapSource(ABC):
    """Per-driver lap times for one race."""

    @abstractmethod
    async def get_driver_laps(self, season: Season, round: int, driver_id: str) -> LapFetch: ...


class RaceLapSource(ABC):
    """Lap times for every driver of a race in one request stream."""

    @abstractmethod
    async def get_race_laps(self, season: Season, round: int) -> RaceLapFetch: ...


class TelemetrySource(ABC):
    """A provider keyed by sessions and car numbers instead of driver ids.

    Every method returns None or an empty list when data is absent. Car-number
    lookups fall back to a built-in table; other transport failures propagate.
    """

    @abstractmethod
    async def resolve_session(
        self, season: Season, round: int, race_date: dt.date | None = None,
    ) -> int | None: ...

    @abstractmethod
    async def get_driver_number(
        self, driver_id: str, season: Season, session_key: int | None = None,
    ) -> int | None: ...

    @abstractmethod
    async def get_laps_for_driver(self, session_key: int, driver_number: int) -> list[LapRecord]: ...
