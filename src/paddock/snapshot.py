"""
Click-based CLI that writes per-race lap-time snapshots to disk.

Usage:
    paddock-snapshot 2024
    paddock-snapshot 2023,2024 --output public/laps --concurrency 3
"""

from __future__ import annotations

import asyncio
import datetime as dt
import json
import logging
from pathlib import Path
from typing import Any

import click

from paddock._logging import configure_logging
from paddock.batch import DriverLapsResult
from paddock.config import settings
from paddock.models.race import RaceEvent, ResultEntry
from paddock.models.standings import DriverStanding
from paddock.pipeline import Pipeline

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT = Path("public/laps")
TOP_STANDINGS = 5


def parse_seasons(value: str | None) -> list[str]:
    """Split a comma-separated season list, defaulting to the current year."""
    seasons = [s.strip() for s in (value or "").split(",") if s.strip()]
    return seasons or [str(dt.date.today().year)]


def race_key(race: RaceEvent) -> str:
    return f"{race.season}-{race.round:02d}"


def select_drivers(standings: list[DriverStanding], results: list[ResultEntry]) -> list[str]:
    """Season points leaders first, then the race's classified drivers, without repeats."""
    leaders = [entry.driver.driver_id for entry in standings[:TOP_STANDINGS]]
    participants = [entry.driver.driver_id for entry in results]
    return list(dict.fromkeys(leaders + participants))


def _dump(model: Any) -> dict[str, Any] | None:
    if model is None:
        return None
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)


def write_json(path: Path, data: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")


def driver_payload(
    race: RaceEvent,
    result: DriverLapsResult,
    entry: ResultEntry | None,
    standing: DriverStanding | None,
) -> dict[str, Any]:
    driver = entry.driver if entry else standing.driver if standing else None
    constructor = entry.constructor if entry else standing.constructor if standing else None
    return {
        "season": race.season,
        "round": race.round,
        "raceName": race.race_name,
        "driver": _dump(driver) or {"driverId": result.driver_id},
        "constructor": _dump(constructor),
        "laps": [lap.to_dict() for lap in result.laps],
        "lapError": result.error.value if result.error else None,
    }


async def snapshot_race(
    pipeline: Pipeline,
    race: RaceEvent,
    standings: list[DriverStanding],
    output: Path,
) -> int:
    """Write the per-driver files and the index for one race; returns the driver count."""
    race_result = await pipeline.primary.get_race_results(race.season, race.round)
    entries = race_result.results if race_result else []
    driver_ids = select_drivers(standings, entries)

    def progress(done: int, total: int) -> None:
        logger.debug("%s: %d/%d drivers", race_key(race), done, total)

    results = await pipeline.batch.fetch_batch(race.season, race.round, driver_ids, progress)

    by_result = {entry.driver.driver_id: entry for entry in entries}
    by_standing = {entry.driver.driver_id: entry for entry in standings}
    index_entries = []
    for result in results:
        payload = driver_payload(
            race, result, by_result.get(result.driver_id), by_standing.get(result.driver_id),
        )
        filename = f"{race_key(race)}-{result.driver_id}.json"
        write_json(output / filename, payload)
        index_entries.append({
            "driverId": result.driver_id,
            "driver": payload["driver"],
            "constructor": payload["constructor"],
            "hasLapData": result.has_laps,
            "lapError": payload["lapError"],
            "file": filename,
        })

    write_json(output / f"{race_key(race)}.json", {
        "season": race.season,
        "round": race.round,
        "raceName": race.race_name,
        "circuitId": race.circuit_id,
        "drivers": index_entries,
    })
    logger.info("Saved lap data for %d drivers -> %s.json", len(index_entries), race_key(race))
    return len(index_entries)


async def snapshot_season(pipeline: Pipeline, season: str, output: Path) -> None:
    logger.info("Downloading lap times for season %s", season)
    standings = await pipeline.primary.get_driver_standings(season)
    schedule = await pipeline.primary.get_schedule(season)
    for race in schedule:
        if not race.is_past:
            logger.info("Skipping %s (%s): not run yet", race_key(race), race.race_name)
            continue
        logger.info("Processing %s - %s", race_key(race), race.race_name)
        await snapshot_race(pipeline, race, standings, output)


async def run_snapshot(seasons: list[str], output: Path, concurrency: int | None = None) -> None:
    output.mkdir(parents=True, exist_ok=True)
    async with Pipeline.create(concurrency=concurrency) as pipeline:
        for season in seasons:
            await snapshot_season(pipeline, season, output)


@click.command()
@click.argument("seasons", required=False)
@click.option(
    "--output", "-o", type=click.Path(file_okay=False, path_type=Path),
    default=DEFAULT_OUTPUT, show_default=True, help="Directory for the JSON snapshots.",
)
@click.option("--concurrency", type=click.IntRange(min=1), default=None, help="Drivers fetched at once.")
@click.option("--log-level", default=None, help="Overrides PADDOCK_LOG_LEVEL.")
def main(seasons: str | None, output: Path, concurrency: int | None, log_level: str | None) -> None:
    """Download lap times for every race of SEASONS (comma-separated, e.g. 2023,2024)."""
    configure_logging(log_level or settings.log_level, settings.log_file)
    try:
        asyncio.run(run_snapshot(parse_seasons(seasons), output, concurrency))
    except Exception:
        logger.exception("Failed to download lap time snapshots")
        raise SystemExit(1)
    click.echo("Lap time snapshots downloaded successfully.")


if __name__ == "__main__":
    main()
