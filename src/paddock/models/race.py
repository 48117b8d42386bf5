"""Race calendar and classification models."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal

from pydantic import Field

from paddock.models._base import ProviderModel
from paddock.models.constructor import ConstructorRef
from paddock.models.driver import DriverRef


class Circuit(ProviderModel):
    circuit_id: str
    circuit_name: str | None = None
    url: str | None = None


class RaceEvent(ProviderModel):
    """A single round of a season's calendar."""

    season: int
    round: int = Field(gt=0)
    race_name: str
    circuit: Circuit = Field(alias="Circuit")
    date: dt.date
    time: str | None = None
    url: str | None = None

    @property
    def circuit_id(self) -> str:
        return self.circuit.circuit_id

    @property
    def starts_at(self) -> dt.datetime:
        """Scheduled start in UTC; midnight when the provider gives no time."""
        start = dt.time(0, 0)
        if self.time:
            try:
                start = dt.time.fromisoformat(self.time.replace("Z", "+00:00"))
            except ValueError:
                pass
        moment = dt.datetime.combine(self.date, start)
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=dt.timezone.utc)
        return moment.astimezone(dt.timezone.utc)

    @property
    def is_past(self) -> bool:
        """Whether the race has started, evaluated at read time."""
        return self.starts_at < dt.datetime.now(dt.timezone.utc)


class TimeValue(ProviderModel):
    millis: int | None = None
    time: str | None = None


class FastestLap(ProviderModel):
    rank: int | None = None
    lap: int | None = None
    time: TimeValue | None = Field(default=None, alias="Time")

    @property
    def lap_time(self) -> str | None:
        return self.time.time if self.time else None


class ResultEntry(ProviderModel):
    """One driver's classification in a race, sprint or qualifying session."""

    number: int | None = None
    position: int | None = None
    position_text: str | None = None
    points: Decimal = Decimal(0)
    grid: int | None = None
    laps: int | None = None
    status: str | None = None
    driver: DriverRef = Field(alias="Driver")
    constructor: ConstructorRef | None = Field(default=None, alias="Constructor")
    time: TimeValue | None = Field(default=None, alias="Time")
    fastest_lap: FastestLap | None = Field(default=None, alias="FastestLap")
    q1: str | None = Field(default=None, alias="Q1")
    q2: str | None = Field(default=None, alias="Q2")
    q3: str | None = Field(default=None, alias="Q3")


class RaceResult(RaceEvent):
    """A race event together with whichever classification was requested."""

    results: list[ResultEntry] = Field(default_factory=list, alias="Results")
    qualifying_results: list[ResultEntry] = Field(default_factory=list, alias="QualifyingResults")
    sprint_results: list[ResultEntry] = Field(default_factory=list, alias="SprintResults")

    @property
    def driver_ids(self) -> list[str]:
        entries = self.results or self.sprint_results or self.qualifying_results
        return [entry.driver.driver_id for entry in entries]
