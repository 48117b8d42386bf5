"""Short driver biographies from the Wikipedia REST summary endpoint.

Nothing in the lap pipeline depends on these; every lookup returns None on
failure.
"""

from __future__ import annotations

import logging
import re
from urllib.parse import quote, unquote, urlsplit

from paddock._http import RateLimitedTransport
from paddock._logging import log_api_call
from paddock.base import Season
from paddock.cache import BIOGRAPHY_TTL, ResponseCache
from paddock.config import settings
from paddock.exceptions import PaddockError
from paddock.jolpica import JolpicaClient
from paddock.models.driver import DriverRef

logger = logging.getLogger(__name__)

WIKI_PAGE_URL = "https://en.wikipedia.org/wiki/"
_WHITESPACE = re.compile(r"\s+")


def _title_for(given_name: str | None, family_name: str | None) -> str | None:
    title = _WHITESPACE.sub("_", f"{given_name or ''} {family_name or ''}".strip())
    return title or None


def title_from_url(url: str) -> str | None:
    """Page title from an encyclopedia article URL (last path segment, decoded)."""
    path = urlsplit(url).path.rstrip("/")
    segment = path.rsplit("/", 1)[-1] if path else ""
    return unquote(segment) or None


class BiographyClient:
    """Fetch and cache article summaries for drivers.

    Usage:
        bios = BiographyClient(primary=jolpica)
        text = await bios.get_summary_by_id("leclerc", 2024)
    """

    def __init__(
        self,
        transport: RateLimitedTransport | None = None,
        cache: ResponseCache | None = None,
        primary: JolpicaClient | None = None,
    ) -> None:
        self._transport = transport or RateLimitedTransport(
            settings.wikipedia_base_url,
            timeout=settings.request_timeout,
            max_retries=1,
        )
        self._cache = cache if cache is not None else ResponseCache()
        self._primary = primary

    async def close(self) -> None:
        await self._transport.close()

    @staticmethod
    def build_wiki_url(given_name: str | None, family_name: str | None) -> str | None:
        """Guess an article URL from a name; ambiguous names may land on the wrong page."""
        title = _title_for(given_name, family_name)
        return f"{WIKI_PAGE_URL}{quote(title)}" if title else None

    @log_api_call
    async def _summary(self, title: str) -> str | None:
        key = f"wiki-{title}"
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        try:
            data = await self._transport.get(f"page/summary/{quote(title, safe='')}")
        except PaddockError as exc:
            logger.warning("No summary for %s: %s", title, exc)
            return None
        extract = data.get("extract") if isinstance(data, dict) else None
        if extract:
            self._cache.set(key, extract, BIOGRAPHY_TTL)
        return extract or None

    async def get_summary(self, given_name: str | None, family_name: str | None) -> str | None:
        """Summary for the article titled after the driver's name."""
        title = _title_for(given_name, family_name)
        return await self._summary(title) if title else None

    async def get_summary_for_url(self, url: str) -> str | None:
        title = title_from_url(url)
        return await self._summary(title) if title else None

    async def find_driver(self, driver_id: str, season: Season = "current") -> DriverRef | None:
        """Primary-provider record matching ``driver_id`` or the three-letter code."""
        if self._primary is None:
            return None
        try:
            drivers = await self._primary.get_season_drivers(season)
        except PaddockError as exc:
            logger.warning("Driver list for %s unavailable: %s", season, exc)
            return None
        wanted = driver_id.lower()
        return next(
            (
                d for d in drivers
                if d.driver_id.lower() == wanted or (d.code and d.code.lower() == wanted)
            ),
            None,
        )

    async def get_wiki_url_by_id(self, driver_id: str, season: Season = "current") -> str | None:
        driver = await self.find_driver(driver_id, season)
        return driver.url if driver else None

    async def get_summary_by_id(self, driver_id: str, season: Season = "current") -> str | None:
        """Summary via the article linked from the driver's record, else by name."""
        driver = await self.find_driver(driver_id, season)
        if driver is None:
            return None
        if driver.url:
            summary = await self.get_summary_for_url(driver.url)
            if summary:
                return summary
        return await self.get_summary(driver.given_name, driver.family_name)
