"""Wiring of transports, cache, providers and the reconciliation engine."""

from __future__ import annotations

from dataclasses import dataclass

from paddock._http import CurlFallback, RateLimitedTransport
from paddock.batch import BatchOrchestrator
from paddock.biography import BiographyClient
from paddock.cache import ResponseCache
from paddock.config import Settings, settings as default_settings
from paddock.jolpica import JolpicaClient
from paddock.openf1 import OpenF1Client
from paddock.reconcile import LapReconciler


@dataclass
class Pipeline:
    """One shared cache and one transport per provider, injected everywhere.

    Usage:
        async with Pipeline.create() as pipeline:
            results = await pipeline.batch.fetch_batch(2024, 1, ["leclerc"])
    """

    cache: ResponseCache
    primary: JolpicaClient
    secondary: OpenF1Client
    reconciler: LapReconciler
    batch: BatchOrchestrator
    biography: BiographyClient

    @classmethod
    def create(
        cls, config: Settings | None = None, concurrency: int | None = None,
    ) -> Pipeline:
        config = config or default_settings
        cache = ResponseCache()
        fallback = CurlFallback.detect() if config.use_curl_fallback else None
        primary = JolpicaClient(
            transport=RateLimitedTransport(
                config.jolpica_base_url,
                min_interval=config.jolpica_min_interval,
                timeout=config.request_timeout,
                max_retries=config.jolpica_max_retries,
                backoff_base=config.backoff_base,
                fallback=fallback,
            ),
            cache=cache,
            page_size=config.lap_page_size,
            max_pages=config.max_pages,
            rate_limit_retry_delay=config.rate_limit_retry_delay,
        )
        secondary = OpenF1Client(
            transport=RateLimitedTransport(
                config.openf1_base_url,
                min_interval=config.openf1_min_interval,
                timeout=config.request_timeout,
                max_retries=config.openf1_max_retries,
                backoff_base=config.backoff_base,
                fallback=fallback,
            ),
            cache=cache,
        )
        biography = BiographyClient(
            transport=RateLimitedTransport(
                config.wikipedia_base_url, timeout=config.request_timeout, max_retries=1,
            ),
            cache=cache,
            primary=primary,
        )
        reconciler = LapReconciler(primary, secondary, cache)
        return cls(
            cache=cache,
            primary=primary,
            secondary=secondary,
            reconciler=reconciler,
            batch=BatchOrchestrator(reconciler, concurrency or config.batch_concurrency),
            biography=biography,
        )

    async def close(self) -> None:
        await self.primary.close()
        await self.secondary.close()
        await self.biography.close()

    async def __aenter__(self) -> Pipeline:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
