"""Comparable listing data models."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class CandidateListing(BaseModel):
    """A raw search result from the listings API, before extraction."""

    external_id: str = Field(..., description="ID from MercadoLibre (MLA...)")
    title: str
    raw_price: float | None = None
    currency: str = "ARS"
    thumbnail_url: str | None = None
    permalink: str = ""
    location_text: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    total_area_text: str | None = Field(None, description="TOTAL_AREA attribute, e.g. '1500000 m²'")


class RuralFeatures(BaseModel):
    """Keyword-detected characteristics of a rural listing."""

    tipo_campo: str = "desconocido"
    aptitud_suelo: list[str] = Field(default_factory=list)
    mejoras: list[str] = Field(default_factory=list)
    cultivos: list[str] = Field(default_factory=list)
    pasturas: list[str] = Field(default_factory=list, description="naturales / implantadas")
    infraestructura: list[str] = Field(default_factory=list)


class Comparable(BaseModel):
    """A listing with a usable price and area, i.e. market evidence."""

    id: str
    title: str
    price: float = Field(..., gt=0)
    area_hectares: float = Field(..., gt=0)
    price_per_hectare: float
    permalink: str = ""
    thumbnail: str | None = None
    location: str = ""
    latitude: float | None = None
    longitude: float | None = None
    similarity_score: float = 0.0
    rural_features: RuralFeatures | None = None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class EstimationResult(BaseModel):
    """Summary statistics over the best comparables for a query."""

    model_config = ConfigDict(frozen=True)

    comparables: list[Comparable] = Field(default_factory=list)
    total_found: int = 0
    estimated_price_per_hectare: int = 0
    estimated_price_total: int = 0
    min_price: int = 0
    max_price: int = 0
    median_price: int = 0
    confidence_score: float = 0.0
    from_cache: bool = False


class CacheEntry(BaseModel):
    """A cached estimation, keyed by the query hash."""

    query_hash: str
    payload: dict
    expires_at: datetime
