"""paddock data models."""

from paddock.models.constructor import ConstructorRef
from paddock.models.driver import DriverRef, SessionDriver
from paddock.models.lap import LapRecord, TelemetryLap
from paddock.models.race import Circuit, FastestLap, RaceEvent, RaceResult, ResultEntry, TimeValue
from paddock.models.session import Session
from paddock.models.standings import ConstructorSeason, ConstructorStanding, DriverStanding

__all__ = [
    "Circuit",
    "ConstructorRef",
    "ConstructorSeason",
    "ConstructorStanding",
    "DriverRef",
    "DriverStanding",
    "FastestLap",
    "LapRecord",
    "RaceEvent",
    "RaceResult",
    "ResultEntry",
    "Session",
    "SessionDriver",
    "TelemetryLap",
    "TimeValue",
]
