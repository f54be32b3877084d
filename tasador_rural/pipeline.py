"""Comparables estimation: cache, search, extract, score, aggregate."""

import asyncio
import logging
import time
from typing import Protocol

from pydantic import ValidationError

from tasador_rural.aggregation import aggregate
from tasador_rural.config import settings
from tasador_rural.errors import CacheError
from tasador_rural.extraction import extract_comparables, with_description
from tasador_rural.models import CacheEntry, CandidateListing, Comparable, EstimationResult
from tasador_rural.query import SearchQuery
from tasador_rural.scoring import score_comparables
from tasador_rural.sources import MercadoLibreClient, NominatimGeocoder
from tasador_rural.storage import MemoryCacheStore, SqlCacheStore

logger = logging.getLogger(__name__)


class ListingsSource(Protocol):
    async def search_comparables(self, query: SearchQuery) -> list[CandidateListing]: ...

    async def fetch_description(self, item_id: str) -> str: ...


class CacheStore(Protocol):
    def get(self, key: str) -> CacheEntry | None: ...

    def put(self, key: str, payload: dict, ttl=None) -> CacheEntry: ...


class ComparablesService:
    """
    Estimates a property's value from comparable listings.

    Cache-first: an unexpired entry is returned as-is. Cache failures never
    abort a request; search failures do.
    """

    def __init__(
        self,
        client: ListingsSource,
        cache: CacheStore | None = None,
        geocoder: NominatimGeocoder | None = None,
    ):
        self.client = client
        self.cache = cache if cache is not None else MemoryCacheStore()
        self.geocoder = geocoder

    async def close(self) -> None:
        for resource in (self.client, self.geocoder):
            close = getattr(resource, "close", None)
            if close:
                await close()

    def _read_cache(self, key: str) -> EstimationResult | None:
        try:
            entry = self.cache.get(key)
        except CacheError as e:
            logger.warning("Cache read failed, searching instead: %s", e)
            return None

        if entry is None:
            logger.info("Cache miss or expired for query: %s", key)
            return None

        try:
            result = EstimationResult.model_validate({**entry.payload, "from_cache": True})
        except ValidationError as e:
            logger.warning("Ignoring unreadable cache entry %s: %s", key, e)
            return None

        logger.info("Cache hit for query: %s", key)
        return result

    def _write_cache(self, key: str, result: EstimationResult) -> None:
        payload = result.model_copy(update={"from_cache": False}).model_dump(mode="json")
        try:
            self.cache.put(key, payload)
        except CacheError as e:
            logger.warning("Cache write skipped: %s", e)

    async def _add_descriptions(self, comparables: list[Comparable]) -> list[Comparable]:
        """Re-detect rural features with each listing's description."""
        slots = asyncio.Semaphore(settings.description_concurrency)

        async def fetch(comparable: Comparable) -> str:
            async with slots:
                return await self.client.fetch_description(comparable.id)

        descriptions = await asyncio.gather(*(fetch(c) for c in comparables))
        return [with_description(c, text) for c, text in zip(comparables, descriptions)]

    async def compute(self, query: SearchQuery) -> EstimationResult:
        """Run the search and build a fresh estimation (no cache)."""
        listings = await self.client.search_comparables(query)
        comparables = extract_comparables(listings, query)

        if settings.fetch_descriptions and comparables:
            comparables = await self._add_descriptions(comparables)

        if self.geocoder and comparables:
            comparables = await self.geocoder.enrich(comparables)

        return aggregate(score_comparables(comparables, query), query)

    async def estimate(self, query: SearchQuery, use_cache: bool = True) -> EstimationResult:
        """
        Estimate the value of the queried property.

        Raises:
            SearchUnavailableError: if the listings API kept failing
        """
        key = query.cache_key

        if use_cache:
            cached = self._read_cache(key)
            if cached is not None:
                return cached

        start = time.monotonic()
        result = await self.compute(query)
        logger.info(
            "Search completed in %.0fms: %d comparables, %d kept",
            (time.monotonic() - start) * 1000,
            result.total_found,
            len(result.comparables),
        )

        if use_cache:
            self._write_cache(key, result)

        return result


def build_service(cache: CacheStore | None = None) -> ComparablesService:
    """Service wired to MercadoLibre and the SQL cache from settings."""
    if cache is None:
        cache = SqlCacheStore()
        try:
            cache.init()
        except CacheError as e:
            logger.warning("Cache unavailable, continuing without it: %s", e)

    geocoder = NominatimGeocoder() if settings.geocoding_enabled else None
    return ComparablesService(MercadoLibreClient(), cache, geocoder)
