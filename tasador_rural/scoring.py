"""Similarity scoring of comparables against the queried property."""

from tasador_rural.models import Comparable
from tasador_rural.query import SearchQuery

AREA_WEIGHT = 0.25
LOCATION_WEIGHT = 0.40
TYPE_WEIGHT = 0.15
QUALITY_WEIGHT = 0.10
FRESHNESS_WEIGHT = 0.10

LOCATION_MISMATCH = 0.3
TYPE_MISMATCH = 0.5

# No publication dates come back from the search, so every listing gets the same value
FRESHNESS = 0.8


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def area_similarity(comparable: Comparable, query: SearchQuery) -> float:
    diff = abs(comparable.area_hectares - query.hectareas) / query.hectareas
    return _clamp(1 - diff)


def location_similarity(comparable: Comparable, query: SearchQuery) -> float:
    if query.localidad.lower() in comparable.location.lower():
        return 1.0
    return LOCATION_MISMATCH


def type_similarity(comparable: Comparable, query: SearchQuery) -> float:
    if query.tipo_campo.lower() in comparable.title.lower():
        return 1.0
    return TYPE_MISMATCH


def data_quality(comparable: Comparable) -> float:
    quality = 0.5
    if comparable.thumbnail:
        quality += 0.2
    if comparable.has_coordinates:
        quality += 0.2
    if comparable.price > 0 and comparable.area_hectares > 0:
        quality += 0.1
    return _clamp(quality)


def score(comparable: Comparable, query: SearchQuery) -> float:
    """
    Weighted similarity of a comparable to the query, in [0, 1].

    Pure: the same inputs always give the same float.
    """
    total = (
        AREA_WEIGHT * area_similarity(comparable, query)
        + LOCATION_WEIGHT * _clamp(location_similarity(comparable, query))
        + TYPE_WEIGHT * _clamp(type_similarity(comparable, query))
        + QUALITY_WEIGHT * data_quality(comparable)
        + FRESHNESS_WEIGHT * FRESHNESS
    )
    return min(total, 1.0)


def score_comparables(comparables: list[Comparable], query: SearchQuery) -> list[Comparable]:
    """Return copies of the comparables with similarity_score set."""
    return [c.model_copy(update={"similarity_score": score(c, query)}) for c in comparables]
