"""MercadoLibre API client for rural listings (campos)."""

import asyncio
import logging
import math
import time
from collections.abc import Awaitable, Callable

import httpx
from pydantic import ValidationError

from tasador_rural.config import settings
from tasador_rural.errors import SearchUnavailableError
from tasador_rural.models import CandidateListing
from tasador_rural.query import SearchQuery
from tasador_rural.utils.helpers import M2_PER_HECTARE, clean_text, quitar_tildes

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]

# Tokens last 6 hours; refresh a bit earlier
TOKEN_TTL_SECONDS = 5.5 * 60 * 60

# Area filter sent to the API, as a fraction of the requested hectares
AREA_RANGE_MIN = 0.6
AREA_RANGE_MAX = 1.4


class MercadoLibreClient:
    """
    Client for MercadoLibre's search API, restricted to the Campos category.

    Requests are retried with exponential backoff. Credentials are optional:
    without them the public API is used (lower rate limits).

    API docs: https://developers.mercadolibre.com.ar
    """

    name = "mercadolibre"
    search_path = "/sites/MLA/search"
    token_path = "/oauth/token"
    description_path = "/items/{item_id}/description"

    # MercadoLibre state IDs for Argentine provinces (accents removed)
    PROVINCE_CODES = {
        "buenos aires": "TUxBUEJVRU5PUw",
        "capital federal": "TUxBUENBUGw3M2E1",
        "catamarca": "TUxBUENBVGFiY2Fm",
        "chaco": "TUxBUENIQWFkZGUw",
        "chubut": "TUxBUENIVXh4Mzc2",
        "cordoba": "TUxBUENPUmFkZGIw",
        "corrientes": "TUxBUENPUnMzOTRk",
        "entre rios": "TUxBUEVOVHMzNTZi",
        "formosa": "TUxBUEZPUnMxNzc4",
        "jujuy": "TUxBUEpVSnk2ODA3",
        "la pampa": "TUxBUExBUHMxNDM1MQ",
        "la rioja": "TUxBUExBUmk3MDQ5",
        "mendoza": "TUxBUE1FTnM0ZTdj",
        "misiones": "TUxBUE1JU3MzNjIx",
        "neuquen": "TUxBUE5FVW4xMzMzNQ",
        "rio negro": "TUxBUFJJT24xMzEyOQ",
        "salta": "TUxBUFNBTGE1ZmVj",
        "san juan": "TUxBUFNBTno3Nzk0",
        "san luis": "TUxBUFNBTno3Nzk1",
        "santa cruz": "TUxBUFNBTno3Nzk2",
        "santa fe": "TUxBUFNBTmU5Nzk2",
        "santiago del estero": "TUxBUFNBTno3Nzk3",
        "tierra del fuego": "TUxBUFRJRXM0YjEy",
        "tucuman": "TUxBUFRVQ24xNDkw",
    }

    def __init__(
        self,
        access_token: str | None = None,
        client_id: str | None = None,
        client_secret: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Sleep = asyncio.sleep,
        max_attempts: int | None = None,
        backoff: float | None = None,
    ):
        """
        Initialize API client.

        Args:
            access_token: Pre-existing access token (optional)
            client_id: App client ID for OAuth (optional)
            client_secret: App client secret for OAuth (optional)
            transport: httpx transport override, used by tests
            sleep: Coroutine used to wait between retries
            max_attempts: Total attempts per request (default from settings)
            backoff: First retry delay in seconds, doubled each attempt
        """
        self.access_token = access_token or settings.meli_access_token
        self.client_id = client_id or settings.meli_client_id
        self.client_secret = client_secret or settings.meli_client_secret
        self.transport = transport
        self.sleep = sleep
        self.max_attempts = max_attempts or settings.retry_attempts
        self.backoff = settings.retry_backoff if backoff is None else backoff
        self.client: httpx.AsyncClient | None = None
        self._token: str | None = None
        self._token_expires_at = 0.0

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self.client is None:
            self.client = httpx.AsyncClient(
                base_url=settings.meli_base_url,
                headers={
                    "User-Agent": settings.user_agent,
                    "Accept": "application/json",
                },
                timeout=settings.request_timeout,
                transport=self.transport,
            )
        return self.client

    async def close(self) -> None:
        """Close HTTP client."""
        if self.client:
            await self.client.aclose()
            self.client = None

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def _get_token(self) -> str | None:
        """
        Return a bearer token, or None to use the public API.

        A configured access token wins; otherwise a client-credentials token
        is requested and kept in memory until shortly before it expires.
        """
        if self.access_token:
            return self.access_token

        if self._token and time.monotonic() < self._token_expires_at:
            return self._token

        if not (self.client_id and self.client_secret):
            return None

        client = await self._get_client()
        try:
            response = await client.post(
                self.token_path,
                data={
                    "grant_type": "client_credentials",
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                },
            )
            response.raise_for_status()
            token = response.json().get("access_token")
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.warning("MercadoLibre OAuth token request failed, using public API: %s", e)
            return None

        if not token:
            logger.warning("No access_token in MercadoLibre OAuth response, using public API")
            return None

        self._token = token
        self._token_expires_at = time.monotonic() + TOKEN_TTL_SECONDS
        logger.info("MercadoLibre OAuth token obtained")
        return token

    async def _get_with_retry(self, path: str, params: dict) -> dict:
        """
        GET a JSON object, retrying failures with exponential backoff.

        Raises:
            SearchUnavailableError: after the last failed attempt
        """
        client = await self._get_client()
        token = await self._get_token()
        headers = {"Authorization": f"Bearer {token}"} if token else {}

        last_error: Exception | None = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                response = await client.get(path, params=params, headers=headers)
                response.raise_for_status()
                data = response.json()
                if not isinstance(data, dict):
                    raise ValueError(f"Unexpected response type: {type(data).__name__}")
                return data
            except (httpx.HTTPError, ValueError) as e:
                last_error = e
                logger.warning("Attempt %d/%d failed for %s: %s", attempt, self.max_attempts, path, e)

                if attempt < self.max_attempts:
                    delay = self.backoff * 2 ** (attempt - 1)
                    logger.info("Waiting %.1fs before retry...", delay)
                    await self.sleep(delay)

        raise SearchUnavailableError(
            f"MercadoLibre search failed after {self.max_attempts} attempts",
            last_error,
        ) from last_error

    async def fetch_description(self, item_id: str) -> str:
        """
        Plain-text description of a listing.

        Not retried: any failure returns "" and the listing keeps its
        title-only features.
        """
        client = await self._get_client()
        token = await self._get_token()
        headers = {"Authorization": f"Bearer {token}"} if token else {}

        try:
            response = await client.get(self.description_path.format(item_id=item_id), headers=headers)
            response.raise_for_status()
            return clean_text(response.json().get("plain_text")) or ""
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.debug("No description for %s: %s", item_id, e)
            return ""

    async def search_listings(
        self,
        text: str,
        offset: int = 0,
        extra_params: dict | None = None,
    ) -> list[CandidateListing]:
        """
        Run one search page in the Campos category.

        Args:
            text: Free-text query
            offset: Result offset (multiple of the page size)
            extra_params: Additional API filters (state, TOTAL_AREA, ...)

        Returns:
            Parsed listings, in API order. Empty if the search found nothing.
        """
        params = {
            "q": text,
            "category": settings.meli_category,
            "limit": settings.meli_page_size,
            "offset": offset,
        }
        if extra_params:
            params.update(extra_params)

        data = await self._get_with_retry(self.search_path, params)
        results = data.get("results") or []
        logger.info("Found %d results from MercadoLibre for %r", len(results), text)

        listings = []
        for item in results:
            listing = self.parse_item(item)
            if listing:
                listings.append(listing)
        return listings

    async def search_comparables(self, query: SearchQuery) -> list[CandidateListing]:
        """
        Fetch candidate listings for a query.

        Searches by locality with province and area filters first; when that
        finds nothing, repeats once by province without filters.
        """
        listings = await self.search_listings(
            self.build_search_text(query),
            offset=query.offset,
            extra_params=self.build_search_filters(query),
        )

        if not listings and settings.broaden_on_empty:
            logger.info("No results from primary search, trying broader search...")
            listings = await self.search_listings(
                " ".join(["campo", query.tipo_campo, query.provincia]),
                offset=query.offset,
            )

        return listings

    def build_search_text(self, query: SearchQuery) -> str:
        return " ".join(["campo", query.tipo_campo, query.localidad])

    def build_search_filters(self, query: SearchQuery) -> dict:
        """Province and total-area filters for the targeted search."""
        filters = {}

        state = self.PROVINCE_CODES.get(quitar_tildes(query.provincia).lower())
        if state:
            filters["state"] = state

        min_m2 = math.floor(round(query.hectareas * AREA_RANGE_MIN * M2_PER_HECTARE, 6))
        max_m2 = math.ceil(round(query.hectareas * AREA_RANGE_MAX * M2_PER_HECTARE, 6))
        filters["TOTAL_AREA"] = f"{min_m2}-{max_m2}"

        return filters

    def parse_item(self, item: dict) -> CandidateListing | None:
        """Parse API item into CandidateListing."""
        try:
            external_id = str(item.get("id") or "")
            if not external_id:
                return None

            # Location: city/state are objects with a name, or plain strings.
            # No location object at all gives None; an object without names gives "".
            location = item.get("location")
            location_text = None
            if location is not None:
                city = self._name_of(location.get("city"))
                state = self._name_of(location.get("state"))
                location_text = ", ".join(part for part in (city, state) if part)
            location = location or {}

            latitude = location.get("latitude")
            longitude = location.get("longitude")
            if latitude is None or longitude is None:
                latitude = longitude = None

            # Thumbnail, falling back to the first picture
            thumbnail = item.get("thumbnail")
            if not thumbnail:
                pictures = item.get("pictures") or []
                if pictures:
                    thumbnail = pictures[0].get("secure_url") or pictures[0].get("url")

            total_area = None
            for attr in item.get("attributes") or []:
                if attr.get("id") == "TOTAL_AREA":
                    total_area = attr.get("value_name")
                    break

            return CandidateListing(
                external_id=external_id,
                title=clean_text(item.get("title")) or "Sin título",
                raw_price=item.get("price"),
                currency=item.get("currency_id") or "ARS",
                thumbnail_url=thumbnail or None,
                permalink=item.get("permalink") or "",
                location_text=location_text,
                latitude=latitude,
                longitude=longitude,
                total_area_text=total_area,
            )

        except (AttributeError, TypeError, ValidationError) as e:
            logger.warning("Error parsing MercadoLibre item %s: %s", item.get("id") if isinstance(item, dict) else item, e)
            return None

    @staticmethod
    def _name_of(value) -> str | None:
        if isinstance(value, dict):
            value = value.get("name")
        return clean_text(value) if isinstance(value, str) else None
