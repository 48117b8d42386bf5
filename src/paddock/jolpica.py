"""Client for the primary historical-statistics provider (Ergast-compatible API)."""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from paddock._filters import build_query_params
from paddock._http import CurlFallback, RateLimitedTransport
from paddock._logging import log_api_call
from paddock.base import DriverLapSource, RaceLapSource, ScheduleSource, Season
from paddock.cache import (
    DRIVERS_TTL,
    LAST_RACE_TTL,
    RESULTS_TTL,
    SCHEDULE_TTL,
    STANDINGS_TTL,
    ResponseCache,
)
from paddock.config import settings
from paddock.exceptions import EndpointError, PaddockError, ResponseValidationError
from paddock.models._base import validate_list
from paddock.models.driver import DriverRef
from paddock.models.race import RaceEvent, RaceResult, ResultEntry
from paddock.models.standings import ConstructorSeason, ConstructorStanding, DriverStanding
from paddock.reconcile import Timing, group_by_driver, reconcile_laps
from paddock.results import PRIMARY_SOURCE, LapError, LapFetch, RaceLapFetch, error_kind

T = TypeVar("T")

logger = logging.getLogger(__name__)
TABLE_LIMIT = 100


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def timings_from(mrdata: dict[str, Any]) -> list[Timing]:
    """Flatten a lap-times page into timings, skipping malformed entries."""
    timings: list[Timing] = []
    for race in mrdata.get("RaceTable", {}).get("Races", []):
        for lap in race.get("Laps", []):
            number = _as_int(lap.get("number"), default=-1)
            if number <= 0:
                continue
            for timing in lap.get("Timings", []):
                driver_id = timing.get("driverId")
                if driver_id:
                    timings.append(Timing(number, driver_id, timing.get("time")))
    return timings


@dataclass
class _Pages:
    timings: list[Timing] = field(default_factory=list)
    total: int = 0
    pages: int = 0
    error: LapError | None = None


class JolpicaClient(ScheduleSource, DriverLapSource, RaceLapSource):
    """Asynchronous client for season schedules, standings, results and lap times.

    Schedule, standings and results failures raise ``EndpointError``. Lap-time
    methods never raise for upstream trouble; they return what they collected
    with an error annotation.

    Usage:
        async with JolpicaClient() as primary:
            standings = await primary.get_driver_standings(2024)
            laps = await primary.get_driver_laps(2024, 1, "max_verstappen")
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        *,
        transport: RateLimitedTransport | None = None,
        cache: ResponseCache | None = None,
        page_size: int | None = None,
        max_pages: int | None = None,
        rate_limit_retry_delay: float | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._transport = transport or RateLimitedTransport(
            base_url or settings.jolpica_base_url,
            min_interval=settings.jolpica_min_interval,
            timeout=timeout or settings.request_timeout,
            max_retries=settings.jolpica_max_retries,
            backoff_base=settings.backoff_base,
            fallback=CurlFallback.detect() if settings.use_curl_fallback else None,
        )
        self._cache = cache if cache is not None else ResponseCache()
        self.page_size = page_size or settings.lap_page_size
        self.max_pages = max_pages or settings.max_pages
        self.rate_limit_retry_delay = (
            settings.rate_limit_retry_delay if rate_limit_retry_delay is None
            else rate_limit_retry_delay
        )
        self._sleep = sleep

    async def __aenter__(self) -> JolpicaClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP connection."""
        await self._transport.close()

    async def _mrdata(self, path: str, **params: Any) -> dict[str, Any]:
        data = await self._transport.get(path, build_query_params(**params))
        try:
            return data["MRData"]
        except (KeyError, TypeError) as exc:
            raise ResponseValidationError(f"{path}: response has no MRData envelope") from exc

    async def _cached(
        self, key: str, ttl: float, endpoint: str, load: Callable[[], Awaitable[T]],
    ) -> T:
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        try:
            value = await load()
        except PaddockError as exc:
            raise EndpointError(endpoint, exc) from exc
        if value is not None:
            self._cache.set(key, value, ttl)
        return value

    async def _races(self, path: str, model: type[T]) -> tuple[T, ...]:
        mrdata = await self._mrdata(path, limit=TABLE_LIMIT)
        return tuple(validate_list(model, mrdata.get("RaceTable", {}).get("Races", [])))

    async def _first_race(self, path: str) -> RaceResult | None:
        races = await self._races(path, RaceResult)
        return races[0] if races else None

    async def _standings(self, path: str, key: str, model: type[T]) -> tuple[T, ...]:
        mrdata = await self._mrdata(path, limit=TABLE_LIMIT)
        lists = mrdata.get("StandingsTable", {}).get("StandingsLists", [])
        if not lists:
            return ()
        return tuple(validate_list(model, lists[0].get(key, [])))

    # ── Calendar ───────────────────────────────────────────────

    @log_api_call
    async def get_schedule(self, season: Season = "current") -> list[RaceEvent]:
        """Get the race calendar for a season."""
        races = await self._cached(
            f"schedule-{season}", SCHEDULE_TTL, "schedule",
            lambda: self._races(f"{season}.json", RaceEvent),
        )
        return list(races)

    async def get_next_race(self, now: dt.datetime | None = None) -> RaceEvent | None:
        """First race of the current season still to start, else the season's last race."""
        schedule = await self.get_schedule()
        now = now or dt.datetime.now(dt.timezone.utc)
        upcoming = (race for race in schedule if race.starts_at > now)
        return next(upcoming, schedule[-1] if schedule else None)

    # ── Standings ──────────────────────────────────────────────

    @log_api_call
    async def get_driver_standings(
        self, season: Season = "current", round: int | None = None,
    ) -> list[DriverStanding]:
        """Get driver standings, optionally as of a specific round."""
        scope = f"{season}/{round}" if round is not None else f"{season}"
        standings = await self._cached(
            f"driver-standings-{scope}", STANDINGS_TTL, "driver_standings",
            lambda: self._standings(f"{scope}/driverStandings.json", "DriverStandings", DriverStanding),
        )
        return list(standings)

    @log_api_call
    async def get_constructor_standings(
        self, season: Season = "current", round: int | None = None,
    ) -> list[ConstructorStanding]:
        """Get constructor standings, optionally as of a specific round."""
        scope = f"{season}/{round}" if round is not None else f"{season}"
        standings = await self._cached(
            f"constructor-standings-{scope}", STANDINGS_TTL, "constructor_standings",
            lambda: self._standings(
                f"{scope}/constructorStandings.json", "ConstructorStandings", ConstructorStanding,
            ),
        )
        return list(standings)

    async def get_constructor_history(
        self, constructor_id: str, years: int = 5, today: dt.date | None = None,
    ) -> list[ConstructorSeason]:
        """Final standings of one constructor over the last ``years`` seasons, oldest first.

        Seasons that fail to load or where the team did not compete are left out.
        """
        current = (today or dt.datetime.now(dt.timezone.utc).date()).year
        history: list[ConstructorSeason] = []
        for season in range(current - years + 1, current + 1):
            try:
                standings = await self.get_constructor_standings(season)
            except EndpointError as exc:
                logger.warning("No %s standings for %s: %s", season, constructor_id, exc)
                continue
            entry = next(
                (s for s in standings if s.constructor.constructor_id == constructor_id), None,
            )
            if entry is not None:
                history.append(ConstructorSeason(
                    season=season, position=entry.position, points=entry.points, wins=entry.wins,
                ))
        return history

    # ── Results ────────────────────────────────────────────────

    @log_api_call
    async def get_race_results(self, season: Season, round: int) -> RaceResult | None:
        return await self._cached(
            f"race-results-{season}-{round}", RESULTS_TTL, "race_results",
            lambda: self._first_race(f"{season}/{round}/results.json"),
        )

    @log_api_call
    async def get_last_race_results(self) -> RaceResult | None:
        return await self._cached(
            "last-race-results", LAST_RACE_TTL, "last_race_results",
            lambda: self._first_race("current/last/results.json"),
        )

    @log_api_call
    async def get_qualifying_results(self, season: Season, round: int) -> RaceResult | None:
        return await self._cached(
            f"qualifying-{season}-{round}", RESULTS_TTL, "qualifying_results",
            lambda: self._first_race(f"{season}/{round}/qualifying.json"),
        )

    @log_api_call
    async def get_sprint_results(self, season: Season, round: int) -> RaceResult | None:
        return await self._cached(
            f"sprint-{season}-{round}", RESULTS_TTL, "sprint_results",
            lambda: self._first_race(f"{season}/{round}/sprint.json"),
        )

    async def get_fastest_laps(self, season: Season, round: int) -> list[ResultEntry]:
        """Race classification entries that set a fastest lap, ordered by rank."""
        race = await self.get_race_results(season, round)
        if race is None:
            return []
        ranked = [entry for entry in race.results if entry.fastest_lap and entry.fastest_lap.rank]
        return sorted(ranked, key=lambda entry: entry.fastest_lap.rank)  # type: ignore[union-attr]

    async def get_previous_year_race(self, circuit_id: str, season: int) -> RaceResult | None:
        """Results of the previous season's race at the same circuit, if it was held."""
        schedule = await self.get_schedule(season - 1)
        race = next((r for r in schedule if r.circuit_id == circuit_id), None)
        if race is None:
            return None
        return await self.get_race_results(race.season, race.round)

    @log_api_call
    async def get_season_drivers(self, season: Season = "current") -> list[DriverRef]:
        async def load() -> tuple[DriverRef, ...]:
            mrdata = await self._mrdata(f"{season}/drivers.json", limit=TABLE_LIMIT)
            return tuple(validate_list(DriverRef, mrdata.get("DriverTable", {}).get("Drivers", [])))

        drivers = await self._cached(f"drivers-{season}", DRIVERS_TTL, "drivers", load)
        return list(drivers)

    # ── Lap times ──────────────────────────────────────────────

    async def _fetch_pages(self, path: str) -> _Pages:
        result = _Pages()
        offset = 0
        while result.pages < self.max_pages:
            try:
                mrdata = await self._mrdata(path, limit=self.page_size, offset=offset)
            except PaddockError as exc:
                result.error = error_kind(exc)
                logger.warning(
                    "Lap page %d of %s failed (%s); keeping %d records",
                    result.pages + 1, path, exc, len(result.timings),
                )
                return result
            result.pages += 1
            result.total = _as_int(mrdata.get("total"))
            page = timings_from(mrdata)
            if not page:
                break
            result.timings.extend(page)
            offset += self.page_size
            if len(result.timings) >= result.total:
                break
        else:
            if len(result.timings) < result.total:
                # Hitting the page cap short of the total is an incomplete fetch
                result.error = LapError.FETCH_FAILED
            logger.warning(
                "Stopped paging %s after %d pages with %d of %d records",
                path, result.pages, len(result.timings), result.total,
            )
        return result

    async def _paginate(self, path: str) -> _Pages:
        """Fetch every page of a lap-times endpoint in offset order.

        A fetch rate-limited on its very first page is re-run once after a
        longer pause.
        """
        pages = await self._fetch_pages(path)
        if pages.error is LapError.RATE_LIMITED and pages.pages == 0:
            logger.warning(
                "Rate limited on first page of %s; retrying in %.1fs",
                path, self.rate_limit_retry_delay,
            )
            await self._sleep(self.rate_limit_retry_delay)
            pages = await self._fetch_pages(path)
        return pages

    @log_api_call
    async def get_driver_laps(self, season: Season, round: int, driver_id: str) -> LapFetch:
        """Get one driver's lap times for a race, following pagination."""
        pages = await self._paginate(f"{season}/{round}/drivers/{driver_id}/laps.json")
        laps = reconcile_laps((t.lap_number, t.time) for t in pages.timings)
        return LapFetch(
            laps=tuple(laps),
            total=pages.total or len(laps),
            error=pages.error,
            source=PRIMARY_SOURCE,
        )

    @log_api_call
    async def get_race_laps(self, season: Season, round: int) -> RaceLapFetch:
        """Get every driver's lap times for a race in one paginated stream."""
        pages = await self._paginate(f"{season}/{round}/laps.json")
        grouped = group_by_driver(pages.timings)
        return RaceLapFetch(
            laps_by_driver={
                driver_id: tuple(reconcile_laps(entries))
                for driver_id, entries in grouped.items()
            },
            total=pages.total,
            error=pages.error,
        )
