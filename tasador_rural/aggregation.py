"""Summary statistics over scored comparables."""

import math

from tasador_rural.models import Comparable, EstimationResult
from tasador_rural.query import SearchQuery

MAX_COMPARABLES = 20

# Comparable count at which the quantity part of the confidence saturates
FULL_EVIDENCE_COUNT = 10

SCORE_CONFIDENCE_WEIGHT = 0.7
COUNT_CONFIDENCE_WEIGHT = 0.3


def round_half_up(value: float, digits: int = 0) -> float:
    """Round like a cashier (0.5 goes up), not like round() (0.5 goes to even)."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def median(values: list[float]) -> float:
    ordered = sorted(values)
    middle = len(ordered) // 2
    if len(ordered) % 2 == 0:
        return (ordered[middle - 1] + ordered[middle]) / 2
    return ordered[middle]


def rank(comparables: list[Comparable]) -> list[Comparable]:
    """Best score first. Ties keep discovery order."""
    return sorted(comparables, key=lambda c: c.similarity_score, reverse=True)


def aggregate(comparables: list[Comparable], query: SearchQuery) -> EstimationResult:
    """
    Build the estimation from scored comparables.

    Statistics use the 20 best comparables. min/max are absolute prices;
    median and mean are per hectare, and the median is scaled to the
    queried hectares.
    """
    if not comparables:
        return EstimationResult()

    top = rank(comparables)[:MAX_COMPARABLES]

    prices = [c.price for c in top]
    prices_per_ha = [c.price_per_hectare for c in top]

    mean_per_ha = sum(prices_per_ha) / len(prices_per_ha)
    avg_score = sum(c.similarity_score for c in top) / len(top)
    quantity = min(len(top) / FULL_EVIDENCE_COUNT, 1)
    confidence = SCORE_CONFIDENCE_WEIGHT * avg_score + COUNT_CONFIDENCE_WEIGHT * quantity

    return EstimationResult(
        comparables=top,
        total_found=len(comparables),
        estimated_price_per_hectare=int(round_half_up(mean_per_ha)),
        estimated_price_total=int(round_half_up(mean_per_ha * query.hectareas)),
        min_price=int(round_half_up(min(prices))),
        max_price=int(round_half_up(max(prices))),
        median_price=int(round_half_up(median(prices_per_ha) * query.hectareas)),
        confidence_score=round_half_up(confidence, 2),
        from_cache=False,
    )
