"""Client for the secondary high-resolution telemetry provider (OpenF1)."""

from __future__ import annotations

import datetime as dt
import logging
from typing import Any, TypeVar

from paddock._filters import build_query_params
from paddock._http import CurlFallback, RateLimitedTransport
from paddock._logging import log_api_call
from paddock.base import Season, TelemetrySource
from paddock.cache import SESSIONS_TTL, ResponseCache
from paddock.config import settings
from paddock.exceptions import PaddockError, UpstreamError
from paddock.matching import match_driver_number, static_driver_number
from paddock.models._base import validate_list
from paddock.models.driver import SessionDriver
from paddock.models.lap import LapRecord, TelemetryLap
from paddock.models.session import Session
from paddock.reconcile import reconcile_records

T = TypeVar("T")

logger = logging.getLogger(__name__)

RACE_SESSION_NAME = "Race"
# Tolerance when matching a session start against the primary race date
SESSION_DATE_TOLERANCE = dt.timedelta(days=1)


def resolve_year(season: Season, today: dt.date | None = None) -> int:
    """Map a season (or the ``"current"`` sentinel) to a calendar year."""
    if isinstance(season, str) and season.lower() == "current":
        return (today or dt.datetime.now(dt.timezone.utc).date()).year
    return int(season)


class OpenF1Client(TelemetrySource):
    """Asynchronous client for sessions, session drivers and lap telemetry.

    A 404 from the provider means "no results" and is returned as an empty
    list. Session and lap failures propagate; car-number lookups fall back
    to the built-in table instead.

    Usage:
        async with OpenF1Client() as secondary:
            session_key = await secondary.resolve_session(2024, 5)
            number = await secondary.get_driver_number("leclerc", 2024, session_key)
            laps = await secondary.get_laps_for_driver(session_key, number)
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        *,
        transport: RateLimitedTransport | None = None,
        cache: ResponseCache | None = None,
    ) -> None:
        self._transport = transport or RateLimitedTransport(
            base_url or settings.openf1_base_url,
            min_interval=settings.openf1_min_interval,
            timeout=timeout or settings.request_timeout,
            max_retries=settings.openf1_max_retries,
            backoff_base=settings.backoff_base,
            fallback=CurlFallback.detect() if settings.use_curl_fallback else None,
        )
        self._cache = cache if cache is not None else ResponseCache()

    async def __aenter__(self) -> OpenF1Client:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP connection."""
        await self._transport.close()

    async def _get(self, endpoint: str, model: type[T], **kwargs: Any) -> list[T]:
        params = build_query_params(**kwargs)
        try:
            data = await self._transport.get(endpoint, params)
        except UpstreamError as exc:
            if exc.status_code == 404:
                return []
            raise
        if not isinstance(data, list):
            return []
        return validate_list(model, data)

    # ── Endpoints ──────────────────────────────────────────────

    async def sessions(self, **kwargs: Any) -> list[Session]:
        """Get session information (practice, qualifying, sprint, race)."""
        return await self._get("/sessions", Session, **kwargs)

    async def drivers(self, **kwargs: Any) -> list[SessionDriver]:
        """Get driver information for a session."""
        return await self._get("/drivers", SessionDriver, **kwargs)

    async def laps(self, **kwargs: Any) -> list[TelemetryLap]:
        """Get lap data with sector times."""
        return await self._get("/laps", TelemetryLap, **kwargs)

    # ── Lookups ────────────────────────────────────────────────

    @log_api_call
    async def get_race_sessions(self, season: Season) -> list[Session]:
        """Race sessions of a season in start order."""
        year = resolve_year(season)
        key = f"openf1-race-sessions-{year}"
        cached = self._cache.get(key)
        if cached is not None:
            return list(cached)
        sessions = await self.sessions(year=year, session_name=RACE_SESSION_NAME)
        ordered = sorted(
            (s for s in sessions if s.date_start is not None),
            key=lambda s: s.date_start,
        )
        self._cache.set(key, tuple(ordered), SESSIONS_TTL)
        return ordered

    async def resolve_session(
        self, season: Season, round: int, race_date: dt.date | None = None,
    ) -> int | None:
        """Session key of a season's ``round``-th race.

        Sessions are matched to rounds by position in the season's start-date
        order. When ``race_date`` is known it decides instead: the session
        starting within a day of it wins, a disagreement with the positional
        pick is logged, and no nearby session means no session.
        """
        sessions = await self.get_race_sessions(season)
        positional = sessions[round - 1] if 0 < round <= len(sessions) else None

        if race_date is not None:
            dated = next(
                (
                    s for s in sessions
                    if abs(s.date_start.date() - race_date) <= SESSION_DATE_TOLERANCE  # type: ignore[union-attr]
                ),
                None,
            )
            if dated is not None:
                if positional is not None and dated.session_key != positional.session_key:
                    logger.warning(
                        "Round %s of %s: session %s by position but %s by date; using date",
                        round, season, positional.session_key, dated.session_key,
                    )
                return dated.session_key
            logger.warning(
                "Round %s of %s: no race session near %s; not trusting position",
                round, season, race_date,
            )
            return None

        if positional is None:
            logger.info("No race session for round %s of %s (%d sessions)", round, season, len(sessions))
            return None
        return positional.session_key

    async def get_session_drivers(self, session_key: int) -> list[SessionDriver]:
        key = f"openf1-drivers-{session_key}"
        cached = self._cache.get(key)
        if cached is not None:
            return list(cached)
        drivers = await self.drivers(session_key=session_key)
        self._cache.set(key, tuple(drivers), SESSIONS_TTL)
        return drivers

    async def _latest_session_key(self, season: Season) -> int | None:
        now = dt.datetime.now(dt.timezone.utc)
        started = [
            s for s in await self.get_race_sessions(season)
            if s.date_start is not None and s.date_start <= now
        ]
        return started[-1].session_key if started else None

    async def get_driver_number(
        self, driver_id: str, season: Season, session_key: int | None = None,
    ) -> int | None:
        """Car number for a primary-provider driver id.

        Looks in the session's entry list (the season's most recent race when
        no session is given), then the built-in table.
        """
        try:
            if session_key is None:
                session_key = await self._latest_session_key(season)
            if session_key is not None:
                number = match_driver_number(driver_id, await self.get_session_drivers(session_key))
                if number is not None:
                    return number
        except PaddockError as exc:
            logger.warning("Driver lookup for %s failed (%s); using built-in numbers", driver_id, exc)

        number = static_driver_number(driver_id)
        if number is None:
            logger.info("No car number known for %s", driver_id)
        return number

    @log_api_call
    async def get_session_laps(self, session_key: int) -> dict[int, list[TelemetryLap]]:
        """Every timed lap of a session keyed by car number, each list in lap order.

        Laps keep their sector times and pit-out flag; laps without a duration
        are skipped.
        """
        key = f"openf1-session-laps-{session_key}"
        cached = self._cache.get(key)
        if cached is None:
            grouped: dict[int, list[TelemetryLap]] = {}
            for lap in await self.laps(session_key=session_key):
                if lap.driver_number is None or lap.lap_number is None or not lap.lap_duration:
                    continue
                grouped.setdefault(lap.driver_number, []).append(lap)
            cached = {
                number: tuple(sorted(laps, key=lambda lap: lap.lap_number))
                for number, laps in grouped.items()
            }
            self._cache.set(key, cached, SESSIONS_TTL)
        return {number: list(laps) for number, laps in cached.items()}

    @log_api_call
    async def get_laps_for_driver(self, session_key: int, driver_number: int) -> list[LapRecord]:
        """Timed laps of one car in a session, in canonical form and lap order."""
        laps = await self.laps(session_key=session_key, driver_number=driver_number)
        return reconcile_records(lap.to_record() for lap in laps)
