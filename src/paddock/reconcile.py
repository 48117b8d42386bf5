"""Lap-time reconciliation across the primary and secondary providers.

``LapReconciler`` prefers one bulk fetch of a whole race from the primary
provider and fans the result out per driver. When that yields nothing for a
driver it walks the fallback chain: per-driver primary pagination, then the
secondary provider. A driver nobody has laps for gets an empty result, which
is cached like any other.

Only complete race aggregates are cached. A bulk fetch that failed part-way
is handed to the caller that triggered it and leaves a short-lived miss
marker so concurrent drivers do not each re-page the whole race.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
from collections import defaultdict
from collections.abc import Iterable
from typing import NamedTuple

from paddock.base import DriverLapSource, RaceLapSource, ScheduleSource, Season, TelemetrySource
from paddock.cache import LAPS_TTL, MISS_TTL, ResponseCache
from paddock.exceptions import PaddockError
from paddock.laptime import format_millis, lap_time_to_millis
from paddock.models.lap import LapRecord
from paddock.results import (
    PRIMARY_SOURCE,
    SECONDARY_SOURCE,
    LapError,
    LapFetch,
    RaceLapFetch,
    error_kind,
)

logger = logging.getLogger(__name__)

PARTIAL_RACE_TTL = 60.0


class Timing(NamedTuple):
    """One raw lap timing as the primary provider reports it."""

    lap_number: int
    driver_id: str
    time: str | None


def reconcile_laps(entries: Iterable[tuple[int, str | None]]) -> list[LapRecord]:
    """Turn raw ``(lap_number, time)`` pairs into a clean lap sequence.

    Unparsable times are dropped. A lap number reported more than once keeps
    its fastest time. The result is sorted by lap number.
    """
    fastest: dict[int, int] = {}
    for lap_number, text in entries:
        if lap_number is None or lap_number <= 0:
            continue
        millis = lap_time_to_millis(text)
        if millis is None:
            continue
        if lap_number not in fastest or millis < fastest[lap_number]:
            fastest[lap_number] = millis
    return [
        LapRecord(lap_number=number, time=format_millis(fastest[number]))
        for number in sorted(fastest)
    ]


def reconcile_records(records: Iterable[LapRecord | None]) -> list[LapRecord]:
    return reconcile_laps((r.lap_number, r.time) for r in records if r is not None)


def group_by_driver(timings: Iterable[Timing]) -> dict[str, list[tuple[int, str | None]]]:
    """Group raw timings into ``(lap_number, time)`` lists keyed by driver id."""
    grouped: dict[str, list[tuple[int, str | None]]] = defaultdict(list)
    for timing in timings:
        grouped[timing.driver_id].append((timing.lap_number, timing.time))
    return dict(grouped)


def race_key(season: Season, round: int) -> str:
    return f"laps:race:{season}:{round}"


def race_miss_key(season: Season, round: int) -> str:
    return f"laps:race-miss:{season}:{round}"


def driver_key(season: Season, round: int, driver_id: str) -> str:
    return f"laps:driver:{season}:{round}:{driver_id}"


class LapReconciler:
    """Single entry point for lap times, whichever provider has them.

    The fallback steps available are fixed at construction by the interfaces
    the providers implement.

    Usage:
        reconciler = LapReconciler(primary, secondary, cache)
        laps = await reconciler.get_laps_for_driver(2024, 1, "leclerc")
    """

    def __init__(
        self,
        primary: DriverLapSource | RaceLapSource | None,
        secondary: TelemetrySource | None = None,
        cache: ResponseCache | None = None,
        *,
        laps_ttl: float = LAPS_TTL,
        miss_ttl: float = MISS_TTL,
    ) -> None:
        self._bulk = primary if isinstance(primary, RaceLapSource) else None
        self._per_driver = primary if isinstance(primary, DriverLapSource) else None
        self._schedule = primary if isinstance(primary, ScheduleSource) else None
        self._secondary = secondary
        self._cache = cache if cache is not None else ResponseCache()
        self.laps_ttl = laps_ttl
        self.miss_ttl = miss_ttl
        self._race_locks: dict[str, asyncio.Lock] = {}

    @property
    def has_bulk(self) -> bool:
        return self._bulk is not None

    # ── Race level ─────────────────────────────────────────────

    async def _load_race(self, season: Season, round: int) -> RaceLapFetch | None:
        """Return the race aggregate, fetching it at most once at a time per race."""
        if self._bulk is None:
            return None
        key = race_key(season, round)
        lock = self._race_locks.setdefault(key, asyncio.Lock())
        try:
            async with lock:
                return await self._load_race_locked(season, round, key)
        finally:
            # Later callers are answered by the cached aggregate or the miss marker
            if self._race_locks.get(key) is lock and not lock.locked():
                del self._race_locks[key]

    async def _load_race_locked(self, season: Season, round: int, key: str) -> RaceLapFetch | None:
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        if self._cache.get(race_miss_key(season, round)) is not None:
            return None

        try:
            fetch = await self._bulk.get_race_laps(season, round)  # type: ignore[union-attr]
        except PaddockError as exc:
            logger.warning("Bulk lap fetch for %s/%s failed: %s", season, round, exc)
            self._cache.set(race_miss_key(season, round), True, PARTIAL_RACE_TTL)
            return None

        if not fetch.ok:
            logger.warning(
                "Bulk lap fetch for %s/%s incomplete (%s); %d drivers, not cached",
                season, round, fetch.error, len(fetch.laps_by_driver),
            )
            self._cache.set(race_miss_key(season, round), True, PARTIAL_RACE_TTL)
            return fetch
        if not fetch.laps_by_driver:
            self._cache.set(race_miss_key(season, round), True, self.miss_ttl)
            return None

        self._cache.set(key, fetch, self.laps_ttl)
        for driver_id, laps in fetch.laps_by_driver.items():
            self._cache.set(
                driver_key(season, round, driver_id),
                LapFetch(laps=laps, total=len(laps), source=PRIMARY_SOURCE),
                self.laps_ttl,
            )
        logger.info(
            "Cached bulk laps for %s/%s: %d drivers",
            season, round, len(fetch.laps_by_driver),
        )
        return fetch

    async def get_laps_for_race(
        self, season: Season, round: int,
    ) -> dict[str, list[LapRecord]] | None:
        """Every driver's laps for a race, or None when no bulk data exists."""
        fetch = await self._load_race(season, round)
        if fetch is None or not fetch.laps_by_driver:
            return None
        return {driver_id: list(laps) for driver_id, laps in fetch.laps_by_driver.items()}

    # ── Driver level ───────────────────────────────────────────

    async def fetch_driver_laps(self, season: Season, round: int, driver_id: str) -> LapFetch:
        """Walk the fallback chain for one driver and report where laps came from."""
        key = driver_key(season, round, driver_id)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        race = await self._load_race(season, round)
        if race is not None and race.ok and driver_id in race.laps_by_driver:
            return self._cache.get(key) or LapFetch(
                laps=race.laps_by_driver[driver_id],
                total=len(race.laps_by_driver[driver_id]),
                source=PRIMARY_SOURCE,
            )

        errors: list[LapError] = []
        partial: tuple[LapRecord, ...] = ()
        if race is not None and not race.ok:
            errors.append(race.error)  # type: ignore[arg-type]
            partial = race.laps_by_driver.get(driver_id, ())

        # A complete race without this driver means the primary has nothing for them
        if self._per_driver is not None and (race is None or not race.ok):
            fetch = await self._fetch_primary_driver(season, round, driver_id)
            if fetch.laps and fetch.ok:
                self._cache.set(key, fetch, self.laps_ttl)
                return fetch
            if fetch.laps:
                return fetch
            if fetch.error is not None:
                errors.append(fetch.error)

        if partial:
            return LapFetch(laps=partial, total=len(partial), error=errors[0], source=PRIMARY_SOURCE)

        if self._secondary is not None:
            fetch = await self._fetch_secondary(season, round, driver_id)
            if fetch.laps:
                self._cache.set(key, fetch, self.laps_ttl)
                return fetch
            if fetch.error is not None:
                errors.append(fetch.error)

        empty = LapFetch(error=errors[0] if errors else None)
        self._cache.set(key, empty, self.miss_ttl if errors else self.laps_ttl)
        logger.info("No lap data for %s in %s/%s", driver_id, season, round)
        return empty

    async def _fetch_primary_driver(self, season: Season, round: int, driver_id: str) -> LapFetch:
        try:
            return await self._per_driver.get_driver_laps(season, round, driver_id)  # type: ignore[union-attr]
        except PaddockError as exc:
            logger.warning("Per-driver laps for %s in %s/%s failed: %s", driver_id, season, round, exc)
            return LapFetch(error=error_kind(exc))

    async def _race_date(self, season: Season, round: int) -> dt.date | None:
        if self._schedule is None:
            return None
        try:
            schedule = await self._schedule.get_schedule(season)
        except PaddockError as exc:
            logger.debug("No schedule for session date check: %s", exc)
            return None
        event = next((race for race in schedule if race.round == round), None)
        return event.date if event else None

    async def _fetch_secondary(self, season: Season, round: int, driver_id: str) -> LapFetch:
        secondary = self._secondary
        assert secondary is not None
        try:
            session_key = await secondary.resolve_session(
                season, round, race_date=await self._race_date(season, round),
            )
            if session_key is None:
                return LapFetch()
            number = await secondary.get_driver_number(driver_id, season, session_key)
            if number is None:
                logger.info("No car number for %s in %s; skipping secondary laps", driver_id, season)
                return LapFetch()
            laps = await secondary.get_laps_for_driver(session_key, number)
        except PaddockError as exc:
            logger.warning("Secondary laps for %s in %s/%s failed: %s", driver_id, season, round, exc)
            return LapFetch(error=error_kind(exc))
        laps = reconcile_records(laps)
        return LapFetch(laps=tuple(laps), total=len(laps), source=SECONDARY_SOURCE)

    async def get_laps_for_driver(self, season: Season, round: int, driver_id: str) -> list[LapRecord]:
        """Laps for one driver in one race; empty when no provider has any."""
        try:
            fetch = await self.fetch_driver_laps(season, round, driver_id)
        except PaddockError as exc:
            logger.error("Lap lookup for %s in %s/%s failed: %s", driver_id, season, round, exc)
            return []
        return list(fetch.laps)

