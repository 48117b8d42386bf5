"""Shared test fixtures and sample API responses."""

from __future__ import annotations

from typing import Any

import pytest

from paddock._http import RateLimitedTransport

JOLPICA_URL = "https://api.jolpi.ca/ergast/f1"
OPENF1_URL = "https://api.openf1.org/v1"
WIKI_URL = "https://en.wikipedia.org/api/rest_v1"


SAMPLE_DRIVER_REF = {
    "driverId": "max_verstappen",
    "permanentNumber": "33",
    "code": "VER",
    "url": "http://en.wikipedia.org/wiki/Max_Verstappen",
    "givenName": "Max",
    "familyName": "Verstappen",
    "dateOfBirth": "1997-09-30",
    "nationality": "Dutch",
}

SAMPLE_DRIVER_REF_2 = {
    "driverId": "leclerc",
    "permanentNumber": "16",
    "code": "LEC",
    "url": "http://en.wikipedia.org/wiki/Charles_Leclerc",
    "givenName": "Charles",
    "familyName": "Leclerc",
    "dateOfBirth": "1997-10-16",
    "nationality": "Monegasque",
}

SAMPLE_CONSTRUCTOR = {
    "constructorId": "red_bull",
    "url": "http://en.wikipedia.org/wiki/Red_Bull_Racing",
    "name": "Red Bull",
    "nationality": "Austrian",
}

SAMPLE_CONSTRUCTOR_2 = {
    "constructorId": "ferrari",
    "url": "http://en.wikipedia.org/wiki/Scuderia_Ferrari",
    "name": "Ferrari",
    "nationality": "Italian",
}

SAMPLE_RACE = {
    "season": "2024",
    "round": "1",
    "url": "https://en.wikipedia.org/wiki/2024_Bahrain_Grand_Prix",
    "raceName": "Bahrain Grand Prix",
    "Circuit": {
        "circuitId": "bahrain",
        "url": "http://en.wikipedia.org/wiki/Bahrain_International_Circuit",
        "circuitName": "Bahrain International Circuit",
        "Location": {"lat": "26.0325", "long": "50.5106", "locality": "Sakhir", "country": "Bahrain"},
    },
    "date": "2024-03-02",
    "time": "15:00:00Z",
}

SAMPLE_RACE_2 = {
    **SAMPLE_RACE,
    "round": "2",
    "raceName": "Saudi Arabian Grand Prix",
    "Circuit": {"circuitId": "jeddah", "circuitName": "Jeddah Corniche Circuit"},
    "date": "2024-03-09",
    "time": "17:00:00Z",
}

SAMPLE_RESULT = {
    "number": "1",
    "position": "1",
    "positionText": "1",
    "points": "26",
    "Driver": SAMPLE_DRIVER_REF,
    "Constructor": SAMPLE_CONSTRUCTOR,
    "grid": "1",
    "laps": "57",
    "status": "Finished",
    "Time": {"millis": "5504742", "time": "1:31:44.742"},
    "FastestLap": {"rank": "1", "lap": "39", "Time": {"time": "1:32.608"}},
}

SAMPLE_RESULT_2 = {
    "number": "16",
    "position": "4",
    "positionText": "4",
    "points": "12",
    "Driver": SAMPLE_DRIVER_REF_2,
    "Constructor": SAMPLE_CONSTRUCTOR_2,
    "grid": "2",
    "laps": "57",
    "status": "Finished",
    "FastestLap": {"rank": "3", "lap": "42", "Time": {"time": "1:33.112"}},
}

SAMPLE_DRIVER_STANDING = {
    "position": "1",
    "positionText": "1",
    "points": "575",
    "wins": "19",
    "Driver": SAMPLE_DRIVER_REF,
    "Constructors": [SAMPLE_CONSTRUCTOR],
}

SAMPLE_CONSTRUCTOR_STANDING = {
    "position": "1",
    "positionText": "1",
    "points": "860",
    "wins": "21",
    "Constructor": SAMPLE_CONSTRUCTOR,
}

SAMPLE_SESSION = {
    "circuit_key": 63,
    "circuit_short_name": "Sakhir",
    "country_name": "Bahrain",
    "date_end": "2024-03-02T17:00:00+00:00",
    "date_start": "2024-03-02T15:00:00+00:00",
    "location": "Sakhir",
    "meeting_key": 1229,
    "session_key": 9472,
    "session_name": "Race",
    "session_type": "Race",
    "year": 2024,
}

SAMPLE_SESSION_2 = {
    **SAMPLE_SESSION,
    "circuit_short_name": "Jeddah",
    "country_name": "Saudi Arabia",
    "date_end": "2024-03-09T19:00:00+00:00",
    "date_start": "2024-03-09T17:00:00+00:00",
    "location": "Jeddah",
    "meeting_key": 1230,
    "session_key": 9480,
}

SAMPLE_SESSION_DRIVER = {
    "broadcast_name": "M VERSTAPPEN",
    "country_code": "NED",
    "driver_number": 1,
    "first_name": "Max",
    "full_name": "Max VERSTAPPEN",
    "headshot_url": "https://example.com/ver.png",
    "last_name": "Verstappen",
    "meeting_key": 1229,
    "name_acronym": "VER",
    "session_key": 9472,
    "team_colour": "3671C6",
    "team_name": "Red Bull Racing",
}

SAMPLE_SESSION_DRIVER_2 = {
    **SAMPLE_SESSION_DRIVER,
    "broadcast_name": "C LECLERC",
    "country_code": "MON",
    "driver_number": 16,
    "first_name": "Charles",
    "full_name": "Charles LECLERC",
    "last_name": "Leclerc",
    "name_acronym": "LEC",
    "team_name": "Ferrari",
}

SAMPLE_LAP = {
    "date_start": "2024-03-02T15:05:00+00:00",
    "driver_number": 1,
    "duration_sector_1": 30.2,
    "duration_sector_2": 40.1,
    "duration_sector_3": 27.6,
    "is_pit_out_lap": False,
    "lap_duration": 97.9,
    "lap_number": 2,
    "meeting_key": 1229,
    "session_key": 9472,
}


def mrdata(total: int | None = None, limit: int = 30, offset: int = 0, **tables: Any) -> dict[str, Any]:
    """Wrap tables in the primary provider's MRData envelope."""
    envelope: dict[str, Any] = {
        "xmlns": "",
        "series": "f1",
        "url": f"{JOLPICA_URL}/",
        "limit": str(limit),
        "offset": str(offset),
        "total": str(total if total is not None else 0),
    }
    envelope.update(tables)
    return {"MRData": envelope}


def race_table(*races: dict[str, Any], season: str = "2024") -> dict[str, Any]:
    return {"RaceTable": {"season": season, "Races": list(races)}}


def lap_page(
    timings: list[tuple[int, str, str]], total: int, offset: int = 0, limit: int = 100,
) -> dict[str, Any]:
    """Build a lap-times page from ``(lap_number, driver_id, time)`` triples."""
    laps: dict[int, list[dict[str, str]]] = {}
    for number, driver_id, time in timings:
        laps.setdefault(number, []).append({"driverId": driver_id, "position": "1", "time": time})
    race = {
        **SAMPLE_RACE,
        "Laps": [{"number": str(n), "Timings": t} for n, t in laps.items()],
    }
    return mrdata(total=total, limit=limit, offset=offset, **race_table(race))


def lap_time(lap_number: int) -> str:
    """A plausible, distinct lap time for lap ``lap_number``."""
    return f"1:{30 + lap_number % 20:02d}.{lap_number % 1000:03d}"


class FakeClock:
    """Monotonic clock whose ``sleep`` advances time instantly."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def make_transport(base_url: str, clock: FakeClock, **kwargs: Any) -> RateLimitedTransport:
    kwargs.setdefault("min_interval", 0.0)
    return RateLimitedTransport(base_url, clock=clock, sleep=clock.sleep, **kwargs)
