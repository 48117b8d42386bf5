"""Bounded-concurrency lap fetching for many drivers of one race."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field

from paddock.base import Season
from paddock.config import settings
from paddock.models.lap import LapRecord
from paddock.reconcile import LapReconciler
from paddock.results import LapError

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], Awaitable[None] | None]


@dataclass(frozen=True)
class DriverLapsResult:
    driver_id: str
    laps: list[LapRecord] = field(default_factory=list)
    error: LapError | None = None
    total: int = 0

    @property
    def has_laps(self) -> bool:
        return bool(self.laps)


class BatchOrchestrator:
    """Fetch lap data for a list of drivers in fixed-size concurrent groups.

    A driver whose fetch raises gets a result carrying ``fetch_failed``; the
    rest of the batch carries on. Results come back in input order.

    Usage:
        batch = BatchOrchestrator(reconciler, concurrency=5)
        results = await batch.fetch_batch(2024, 1, ["leclerc", "sainz"])
    """

    def __init__(self, reconciler: LapReconciler, concurrency: int | None = None) -> None:
        self.reconciler = reconciler
        self.concurrency = settings.batch_concurrency if concurrency is None else concurrency
        if self.concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {self.concurrency}")

    async def _fetch_one(self, season: Season, round: int, driver_id: str) -> DriverLapsResult:
        try:
            fetch = await self.reconciler.fetch_driver_laps(season, round, driver_id)
        except Exception:
            logger.exception("Lap fetch for %s in %s/%s failed", driver_id, season, round)
            return DriverLapsResult(driver_id=driver_id, error=LapError.FETCH_FAILED)
        return DriverLapsResult(
            driver_id=driver_id,
            laps=list(fetch.laps),
            error=fetch.error,
            total=fetch.total,
        )

    async def fetch_batch(
        self,
        season: Season,
        round: int,
        driver_ids: Sequence[str],
        on_progress: ProgressCallback | None = None,
    ) -> list[DriverLapsResult]:
        """Fetch every driver's laps; ``on_progress(done, total)`` fires per driver."""
        total = len(driver_ids)
        completed = 0
        results: list[DriverLapsResult] = []

        async def run(driver_id: str) -> DriverLapsResult:
            nonlocal completed
            result = await self._fetch_one(season, round, driver_id)
            completed += 1
            if on_progress is not None:
                try:
                    outcome = on_progress(completed, total)
                    if inspect.isawaitable(outcome):
                        await outcome
                except Exception:
                    logger.exception("Progress callback failed at %d/%d", completed, total)
            return result

        for start in range(0, total, self.concurrency):
            group = driver_ids[start:start + self.concurrency]
            results.extend(await asyncio.gather(*(run(driver_id) for driver_id in group)))

        with_laps = sum(1 for r in results if r.has_laps)
        logger.info("Batch %s/%s: %d of %d drivers with laps", season, round, with_laps, total)
        return results
