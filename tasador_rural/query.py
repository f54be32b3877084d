"""Search query validation and cache key derivation."""

import hashlib
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from tasador_rural.config import settings
from tasador_rural.errors import InvalidQueryError

REQUIRED_FIELDS = ("provincia", "localidad", "hectareas", "tipo_campo")
DEFAULT_RADIUS_KM = 50

# Bump when the cached result shape changes so old entries stop matching.
CACHE_KEY_VERSION = "v2"
CACHE_KEY_SEPARATOR = "|"
CACHE_KEY_LENGTH = 32


class SearchQuery(BaseModel):
    """A validated comparables search. Immutable."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    provincia: str
    localidad: str
    hectareas: float = Field(..., gt=0, allow_inf_nan=False)
    tipo_campo: str
    radius_km: float = Field(DEFAULT_RADIUS_KM, gt=0, allow_inf_nan=False, alias="radioKm")
    page: int = Field(1, ge=1)

    @field_validator("provincia", "localidad", "tipo_campo")
    @classmethod
    def _collapse_whitespace(cls, value: str) -> str:
        value = " ".join(value.split())
        if not value:
            raise ValueError("must not be empty")
        return value

    @property
    def cache_key(self) -> str:
        return cache_key(self)

    @property
    def offset(self) -> int:
        """Result offset for the listings API."""
        return (self.page - 1) * settings.meli_page_size


def cache_key(query: SearchQuery) -> str:
    """
    Derive a stable, fixed-length cache key for a query.

    Text fields are used as validated (whitespace already collapsed), so
    "Río Cuarto" and "Rio Cuarto" get different keys: they score differently.
    Numbers are canonicalized, so 200 and 200.0 share a key.
    """
    parts = [
        query.provincia,
        query.localidad,
        repr(float(query.hectareas)),
        query.tipo_campo,
        repr(float(query.radius_km)),
        str(query.page),
        CACHE_KEY_VERSION,
    ]
    digest = hashlib.sha256(CACHE_KEY_SEPARATOR.join(parts).encode("utf-8")).hexdigest()
    return digest[:CACHE_KEY_LENGTH]


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def _describe(error: ValidationError) -> str:
    first = error.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ())) or "request"
    message = first.get("msg", "invalid value")
    if field == "hectareas" and first.get("type") == "greater_than":
        return "hectareas must be greater than 0"
    return f"{field}: {message}"


def build_query(raw: Mapping[str, Any]) -> SearchQuery:
    """
    Validate raw user input into a SearchQuery.

    Args:
        raw: Request body with provincia, localidad, hectareas, tipo_campo
             and optional radioKm / page

    Raises:
        InvalidQueryError: if a required field is missing or a value is invalid
    """
    if not isinstance(raw, Mapping):
        raise InvalidQueryError("Request body must be a JSON object")

    missing = [name for name in REQUIRED_FIELDS if _is_blank(raw.get(name))]
    if missing:
        raise InvalidQueryError(f"Missing required parameters: {', '.join(missing)}")

    # Optional fields sent as null fall back to their defaults
    data = {key: value for key, value in raw.items() if value is not None}

    try:
        return SearchQuery.model_validate(data)
    except ValidationError as e:
        raise InvalidQueryError(_describe(e)) from e
