"""Tests for the primary-provider client."""

from __future__ import annotations

import datetime as dt

import httpx
import pytest
import respx

from paddock.cache import ResponseCache
from paddock.exceptions import EndpointError
from paddock.jolpica import JolpicaClient, timings_from
from paddock.models.race import RaceEvent
from paddock.reconcile import LapReconciler, race_key
from paddock.results import LapError
from tests.conftest import (
    JOLPICA_URL,
    SAMPLE_CONSTRUCTOR_2,
    SAMPLE_CONSTRUCTOR_STANDING,
    SAMPLE_DRIVER_REF,
    SAMPLE_DRIVER_REF_2,
    SAMPLE_DRIVER_STANDING,
    SAMPLE_RACE,
    SAMPLE_RACE_2,
    SAMPLE_RESULT,
    SAMPLE_RESULT_2,
    FakeClock,
    lap_page,
    lap_time,
    make_transport,
    mrdata,
    race_table,
)


def _client(clock: FakeClock, **kwargs) -> JolpicaClient:
    return JolpicaClient(
        transport=make_transport(JOLPICA_URL, clock, max_retries=0),
        cache=ResponseCache(clock=clock),
        sleep=clock.sleep,
        **kwargs,
    )


def _driver_timings(count: int, driver_id: str = "leclerc") -> list[tuple[int, str, str]]:
    return [(n, driver_id, lap_time(n)) for n in range(1, count + 1)]


class TestCalendar:
    @respx.mock
    @pytest.mark.asyncio
    async def test_schedule(self, clock: FakeClock) -> None:
        route = respx.get(f"{JOLPICA_URL}/2024.json").mock(
            return_value=httpx.Response(200, json=mrdata(2, **race_table(SAMPLE_RACE, SAMPLE_RACE_2)))
        )
        async with _client(clock) as primary:
            schedule = await primary.get_schedule(2024)
            again = await primary.get_schedule(2024)
        assert [race.round for race in schedule] == [1, 2]
        assert isinstance(schedule[0], RaceEvent)
        assert again == schedule
        assert route.call_count == 1
        assert route.calls.last.request.url.params["limit"] == "100"

    @respx.mock
    @pytest.mark.asyncio
    async def test_schedule_refetched_after_ttl(self, clock: FakeClock) -> None:
        route = respx.get(f"{JOLPICA_URL}/2024.json").mock(
            return_value=httpx.Response(200, json=mrdata(1, **race_table(SAMPLE_RACE)))
        )
        async with _client(clock) as primary:
            await primary.get_schedule(2024)
            clock.now += 3601
            await primary.get_schedule(2024)
        assert route.call_count == 2

    @respx.mock
    @pytest.mark.asyncio
    async def test_schedule_failure_names_endpoint(self, clock: FakeClock) -> None:
        respx.get(f"{JOLPICA_URL}/2024.json").mock(return_value=httpx.Response(500, text="boom"))
        async with _client(clock) as primary:
            with pytest.raises(EndpointError) as exc_info:
                await primary.get_schedule(2024)
        assert exc_info.value.endpoint == "schedule"
        assert "HTTP 500" in str(exc_info.value)

    @respx.mock
    @pytest.mark.asyncio
    async def test_next_race(self, clock: FakeClock) -> None:
        respx.get(f"{JOLPICA_URL}/current.json").mock(
            return_value=httpx.Response(200, json=mrdata(2, **race_table(SAMPLE_RACE, SAMPLE_RACE_2)))
        )
        async with _client(clock) as primary:
            between = dt.datetime(2024, 3, 5, tzinfo=dt.timezone.utc)
            after = dt.datetime(2024, 12, 1, tzinfo=dt.timezone.utc)
            assert (await primary.get_next_race(now=between)).round == 2
            assert (await primary.get_next_race(now=after)).round == 2

    @respx.mock
    @pytest.mark.asyncio
    async def test_previous_year_race(self, clock: FakeClock) -> None:
        previous = {**SAMPLE_RACE, "season": "2023", "round": "1"}
        respx.get(f"{JOLPICA_URL}/2023.json").mock(
            return_value=httpx.Response(200, json=mrdata(1, **race_table(previous, season="2023")))
        )
        respx.get(f"{JOLPICA_URL}/2023/1/results.json").mock(
            return_value=httpx.Response(
                200, json=mrdata(1, **race_table({**previous, "Results": [SAMPLE_RESULT]}, season="2023")),
            )
        )
        async with _client(clock) as primary:
            race = await primary.get_previous_year_race("bahrain", 2024)
            missing = await primary.get_previous_year_race("las_vegas", 2024)
        assert race is not None
        assert race.season == 2023
        assert missing is None


class TestStandings:
    @respx.mock
    @pytest.mark.asyncio
    async def test_driver_standings(self, clock: FakeClock) -> None:
        table = {"StandingsTable": {"StandingsLists": [{"DriverStandings": [SAMPLE_DRIVER_STANDING]}]}}
        respx.get(f"{JOLPICA_URL}/2024/driverStandings.json").mock(
            return_value=httpx.Response(200, json=mrdata(1, **table))
        )
        async with _client(clock) as primary:
            standings = await primary.get_driver_standings(2024)
        assert standings[0].driver.driver_id == "max_verstappen"

    @respx.mock
    @pytest.mark.asyncio
    async def test_round_scoped_constructor_standings(self, clock: FakeClock) -> None:
        table = {
            "StandingsTable": {"StandingsLists": [{"ConstructorStandings": [SAMPLE_CONSTRUCTOR_STANDING]}]}
        }
        route = respx.get(f"{JOLPICA_URL}/2024/5/constructorStandings.json").mock(
            return_value=httpx.Response(200, json=mrdata(1, **table))
        )
        async with _client(clock) as primary:
            standings = await primary.get_constructor_standings(2024, round=5)
        assert route.called
        assert standings[0].constructor.constructor_id == "red_bull"

    @respx.mock
    @pytest.mark.asyncio
    async def test_empty_standings(self, clock: FakeClock) -> None:
        respx.get(f"{JOLPICA_URL}/1949/driverStandings.json").mock(
            return_value=httpx.Response(200, json=mrdata(0, StandingsTable={"StandingsLists": []}))
        )
        async with _client(clock) as primary:
            assert await primary.get_driver_standings(1949) == []

    @respx.mock
    @pytest.mark.asyncio
    async def test_standings_rate_limited(self, clock: FakeClock) -> None:
        respx.get(f"{JOLPICA_URL}/2024/driverStandings.json").mock(
            return_value=httpx.Response(429, text="slow down")
        )
        async with _client(clock) as primary:
            with pytest.raises(EndpointError) as exc_info:
                await primary.get_driver_standings(2024)
        assert exc_info.value.endpoint == "driver_standings"

    @respx.mock
    @pytest.mark.asyncio
    async def test_constructor_history_oldest_first(self, clock: FakeClock) -> None:
        def table(*entries: dict) -> dict:
            return mrdata(len(entries), StandingsTable={"StandingsLists": [{"ConstructorStandings": list(entries)}]})

        ferrari = {**SAMPLE_CONSTRUCTOR_STANDING, "position": "2", "Constructor": SAMPLE_CONSTRUCTOR_2}
        respx.get(f"{JOLPICA_URL}/2022/constructorStandings.json").mock(
            return_value=httpx.Response(500, text="boom")
        )
        respx.get(f"{JOLPICA_URL}/2023/constructorStandings.json").mock(
            return_value=httpx.Response(200, json=table(SAMPLE_CONSTRUCTOR_STANDING, ferrari))
        )
        respx.get(f"{JOLPICA_URL}/2024/constructorStandings.json").mock(
            return_value=httpx.Response(200, json=table({**ferrari, "position": "1"}))
        )
        async with _client(clock) as primary:
            history = await primary.get_constructor_history("ferrari", years=3, today=dt.date(2024, 6, 1))
            red_bull = await primary.get_constructor_history("red_bull", years=3, today=dt.date(2024, 6, 1))

        assert [(h.season, h.position) for h in history] == [(2023, 2), (2024, 1)]
        assert [h.season for h in red_bull] == [2023]
        assert red_bull[0].wins == 21


class TestResults:
    @respx.mock
    @pytest.mark.asyncio
    async def test_race_results_and_fastest_laps(self, clock: FakeClock) -> None:
        race = {**SAMPLE_RACE, "Results": [SAMPLE_RESULT_2, SAMPLE_RESULT]}
        route = respx.get(f"{JOLPICA_URL}/2024/1/results.json").mock(
            return_value=httpx.Response(200, json=mrdata(2, **race_table(race)))
        )
        async with _client(clock) as primary:
            result = await primary.get_race_results(2024, 1)
            fastest = await primary.get_fastest_laps(2024, 1)
        assert result is not None
        assert result.driver_ids == ["leclerc", "max_verstappen"]
        assert [entry.driver.driver_id for entry in fastest] == ["max_verstappen", "leclerc"]
        assert route.call_count == 1

    @respx.mock
    @pytest.mark.asyncio
    async def test_results_not_available(self, clock: FakeClock) -> None:
        respx.get(f"{JOLPICA_URL}/2024/24/results.json").mock(
            return_value=httpx.Response(200, json=mrdata(0, **race_table()))
        )
        async with _client(clock) as primary:
            assert await primary.get_race_results(2024, 24) is None
            assert await primary.get_fastest_laps(2024, 24) == []

    @respx.mock
    @pytest.mark.asyncio
    async def test_qualifying_and_sprint(self, clock: FakeClock) -> None:
        qualifying = {**SAMPLE_RESULT, "Q3": "1:29.179"}
        respx.get(f"{JOLPICA_URL}/2024/6/qualifying.json").mock(
            return_value=httpx.Response(
                200, json=mrdata(1, **race_table({**SAMPLE_RACE, "QualifyingResults": [qualifying]})),
            )
        )
        respx.get(f"{JOLPICA_URL}/2024/6/sprint.json").mock(
            return_value=httpx.Response(
                200, json=mrdata(1, **race_table({**SAMPLE_RACE, "SprintResults": [SAMPLE_RESULT]})),
            )
        )
        async with _client(clock) as primary:
            quali = await primary.get_qualifying_results(2024, 6)
            sprint = await primary.get_sprint_results(2024, 6)
        assert quali is not None and quali.qualifying_results[0].q3 == "1:29.179"
        assert sprint is not None and sprint.driver_ids == ["max_verstappen"]

    @respx.mock
    @pytest.mark.asyncio
    async def test_last_race_results(self, clock: FakeClock) -> None:
        respx.get(f"{JOLPICA_URL}/current/last/results.json").mock(
            return_value=httpx.Response(
                200, json=mrdata(1, **race_table({**SAMPLE_RACE, "Results": [SAMPLE_RESULT]})),
            )
        )
        async with _client(clock) as primary:
            result = await primary.get_last_race_results()
        assert result is not None and result.race_name == "Bahrain Grand Prix"

    @respx.mock
    @pytest.mark.asyncio
    async def test_season_drivers(self, clock: FakeClock) -> None:
        respx.get(f"{JOLPICA_URL}/2024/drivers.json").mock(
            return_value=httpx.Response(
                200,
                json=mrdata(2, DriverTable={"Drivers": [SAMPLE_DRIVER_REF, SAMPLE_DRIVER_REF_2]}),
            )
        )
        async with _client(clock) as primary:
            drivers = await primary.get_season_drivers(2024)
        assert [d.code for d in drivers] == ["VER", "LEC"]


class TestLapPagination:
    @respx.mock
    @pytest.mark.asyncio
    async def test_three_pages_for_450_records(self, clock: FakeClock) -> None:
        timings = _driver_timings(450)
        offsets: list[int] = []

        def respond(request: httpx.Request) -> httpx.Response:
            offset = int(request.url.params["offset"])
            limit = int(request.url.params["limit"])
            offsets.append(offset)
            page = timings[offset:offset + limit]
            return httpx.Response(200, json=lap_page(page, total=450, offset=offset, limit=limit))

        respx.get(f"{JOLPICA_URL}/2024/1/drivers/leclerc/laps.json").mock(side_effect=respond)
        async with _client(clock, page_size=200) as primary:
            fetch = await primary.get_driver_laps(2024, 1, "leclerc")

        assert offsets == [0, 200, 400]
        assert len(fetch.laps) == 450
        assert fetch.total == 450
        assert fetch.ok
        assert fetch.source == "jolpica"
        assert [lap.lap_number for lap in fetch.laps] == list(range(1, 451))

    @respx.mock
    @pytest.mark.asyncio
    async def test_empty_page_stops(self, clock: FakeClock) -> None:
        calls: list[int] = []

        def respond(request: httpx.Request) -> httpx.Response:
            offset = int(request.url.params["offset"])
            calls.append(offset)
            page = _driver_timings(10) if offset == 0 else []
            return httpx.Response(200, json=lap_page(page, total=999, offset=offset))

        respx.get(f"{JOLPICA_URL}/2024/1/drivers/leclerc/laps.json").mock(side_effect=respond)
        async with _client(clock, page_size=10) as primary:
            fetch = await primary.get_driver_laps(2024, 1, "leclerc")
        assert calls == [0, 10]
        assert len(fetch.laps) == 10

    @respx.mock
    @pytest.mark.asyncio
    async def test_page_ceiling(self, clock: FakeClock) -> None:
        route = respx.get(f"{JOLPICA_URL}/2024/1/drivers/leclerc/laps.json").mock(
            side_effect=lambda request: httpx.Response(
                200,
                json=lap_page(
                    [(int(request.url.params["offset"]) // 2 + 1, "leclerc", "1:35.000")],
                    total=10_000,
                ),
            )
        )
        async with _client(clock, page_size=2, max_pages=4) as primary:
            fetch = await primary.get_driver_laps(2024, 1, "leclerc")
        assert route.call_count == 4
        assert len(fetch.laps) == 4
        assert fetch.error is LapError.FETCH_FAILED
        assert not fetch.ok

    @respx.mock
    @pytest.mark.asyncio
    async def test_partial_failure_keeps_pages(self, clock: FakeClock) -> None:
        timings = _driver_timings(30)

        def respond(request: httpx.Request) -> httpx.Response:
            offset = int(request.url.params["offset"])
            if offset >= 20:
                return httpx.Response(429, text="slow down")
            return httpx.Response(200, json=lap_page(timings[offset:offset + 10], total=30, offset=offset))

        respx.get(f"{JOLPICA_URL}/2024/1/drivers/leclerc/laps.json").mock(side_effect=respond)
        async with _client(clock, page_size=10) as primary:
            fetch = await primary.get_driver_laps(2024, 1, "leclerc")
        assert len(fetch.laps) == 20
        assert fetch.error is LapError.RATE_LIMITED
        assert fetch.total == 30
        assert clock.sleeps == []

    @respx.mock
    @pytest.mark.asyncio
    async def test_first_page_rate_limited_retried_once(self, clock: FakeClock) -> None:
        responses = iter([
            httpx.Response(429, text="slow down"),
            httpx.Response(200, json=lap_page(_driver_timings(5), total=5)),
        ])
        respx.get(f"{JOLPICA_URL}/2024/1/drivers/leclerc/laps.json").mock(
            side_effect=lambda request: next(responses)
        )
        async with _client(clock, rate_limit_retry_delay=10.0) as primary:
            fetch = await primary.get_driver_laps(2024, 1, "leclerc")
        assert clock.sleeps == [10.0]
        assert len(fetch.laps) == 5
        assert fetch.ok

    @respx.mock
    @pytest.mark.asyncio
    async def test_server_error_is_fetch_failed(self, clock: FakeClock) -> None:
        route = respx.get(f"{JOLPICA_URL}/2024/1/drivers/leclerc/laps.json").mock(
            return_value=httpx.Response(500, text="boom")
        )
        async with _client(clock) as primary:
            fetch = await primary.get_driver_laps(2024, 1, "leclerc")
        assert fetch.laps == ()
        assert fetch.error is LapError.FETCH_FAILED
        assert route.call_count == 1


class TestRaceLaps:
    @respx.mock
    @pytest.mark.asyncio
    async def test_bulk_groups_dedupes_and_sorts(self, clock: FakeClock) -> None:
        page_one = [
            (2, "leclerc", "1:35.500"),
            (1, "leclerc", "1:40.000"),
            (1, "max_verstappen", "1:39.000"),
        ]
        page_two = [
            (2, "leclerc", "1:35.100"),
            (3, "leclerc", "bogus"),
            (2, "max_verstappen", "1:34.9"),
        ]

        def respond(request: httpx.Request) -> httpx.Response:
            offset = int(request.url.params["offset"])
            page = page_one if offset == 0 else page_two
            return httpx.Response(200, json=lap_page(page, total=6, offset=offset, limit=3))

        respx.get(f"{JOLPICA_URL}/2024/1/laps.json").mock(side_effect=respond)
        async with _client(clock, page_size=3) as primary:
            fetch = await primary.get_race_laps(2024, 1)

        assert fetch.ok
        assert set(fetch.laps_by_driver) == {"leclerc", "max_verstappen"}
        leclerc = fetch.laps_by_driver["leclerc"]
        assert [(lap.lap_number, lap.time) for lap in leclerc] == [(1, "1:40.000"), (2, "1:35.100")]
        verstappen = fetch.laps_by_driver["max_verstappen"]
        assert [lap.time for lap in verstappen] == ["1:39.000", "1:34.900"]

    @respx.mock
    @pytest.mark.asyncio
    async def test_capped_race_not_cached_and_missing_driver_fetched_alone(self, clock: FakeClock) -> None:
        timings = [
            (1, "leclerc", "1:35.000"),
            (2, "leclerc", "1:34.800"),
            (3, "leclerc", "1:34.700"),
            (1, "max_verstappen", "1:35.200"),
            (1, "sainz", "1:36.000"),
            (2, "sainz", "1:35.400"),
        ]

        def respond(request: httpx.Request) -> httpx.Response:
            offset = int(request.url.params["offset"])
            return httpx.Response(200, json=lap_page(timings[offset:offset + 2], total=6, offset=offset, limit=2))

        race_route = respx.get(f"{JOLPICA_URL}/2024/1/laps.json").mock(side_effect=respond)
        sainz_route = respx.get(f"{JOLPICA_URL}/2024/1/drivers/sainz/laps.json").mock(
            return_value=httpx.Response(200, json=lap_page(timings[4:], total=2, limit=2))
        )
        cache = ResponseCache(clock=clock)
        async with _client(clock, page_size=2, max_pages=2) as primary:
            reconciler = LapReconciler(primary, None, cache)
            fetch = await reconciler.fetch_driver_laps(2024, 1, "sainz")

        assert race_route.call_count == 2
        assert cache.get(race_key(2024, 1)) is None
        assert sainz_route.call_count == 1
        assert fetch.ok
        assert [(lap.lap_number, lap.time) for lap in fetch.laps] == [(1, "1:36.000"), (2, "1:35.400")]


def test_timings_from_skips_malformed() -> None:
    page = lap_page([(1, "leclerc", "1:35.000")], total=1)
    page["MRData"]["RaceTable"]["Races"][0]["Laps"].append(
        {"number": "x", "Timings": [{"driverId": "leclerc", "time": "1:30.000"}]}
    )
    page["MRData"]["RaceTable"]["Races"][0]["Laps"].append(
        {"number": "2", "Timings": [{"time": "1:30.000"}]}
    )
    timings = timings_from(page["MRData"])
    assert [(t.lap_number, t.driver_id) for t in timings] == [(1, "leclerc")]
