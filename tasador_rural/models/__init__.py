"""Data models."""

from tasador_rural.models.comparable import (
    CacheEntry,
    CandidateListing,
    Comparable,
    EstimationResult,
    RuralFeatures,
)

__all__ = ["CacheEntry", "CandidateListing", "Comparable", "EstimationResult", "RuralFeatures"]
