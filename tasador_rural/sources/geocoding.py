"""Optional coordinate lookup for comparables that lack them."""

import asyncio
import logging

import httpx

from tasador_rural.config import settings
from tasador_rural.models import Comparable

logger = logging.getLogger(__name__)


class NominatimGeocoder:
    """Forward geocoding through OpenStreetMap's Nominatim."""

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None):
        self.transport = transport
        self.client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self.client is None:
            self.client = httpx.AsyncClient(
                base_url=settings.nominatim_url,
                headers={"User-Agent": settings.user_agent},
                timeout=10.0,
                transport=self.transport,
            )
        return self.client

    async def close(self) -> None:
        """Close HTTP client."""
        if self.client:
            await self.client.aclose()
            self.client = None

    async def geocode(self, place: str) -> tuple[float, float] | None:
        """Return (lat, lng) for a place name in Argentina, or None."""
        client = await self._get_client()
        try:
            response = await client.get(
                "/search",
                params={"q": f"{place}, Argentina", "format": "json", "limit": 1},
            )
            response.raise_for_status()
            results = response.json()
            if not results:
                return None
            return float(results[0]["lat"]), float(results[0]["lon"])
        except (httpx.HTTPError, ValueError, KeyError, TypeError, IndexError) as e:
            logger.debug("Geocoding failed for %r: %s", place, e)
            return None

    async def enrich(self, comparables: list[Comparable]) -> list[Comparable]:
        """
        Fill in coordinates where missing.

        Lookups run concurrently; the returned list keeps the input order and
        any failed lookup leaves that comparable unchanged.
        """
        pending = [c for c in comparables if not c.has_coordinates and c.location]
        if not pending:
            return list(comparables)

        places = sorted({c.location for c in pending})
        results = await asyncio.gather(*(self.geocode(place) for place in places))
        found = {place: coords for place, coords in zip(places, results) if coords}
        logger.info("Geocoded %d of %d locations", len(found), len(places))

        enriched = []
        for comparable in comparables:
            coords = found.get(comparable.location)
            if coords and not comparable.has_coordinates:
                comparable = comparable.model_copy(update={"latitude": coords[0], "longitude": coords[1]})
            enriched.append(comparable)
        return enriched
