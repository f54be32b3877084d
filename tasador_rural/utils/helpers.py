"""Helper utilities for parsing listing text."""

import re
import unicodedata

from tasador_rural.models import CandidateListing

M2_PER_HECTARE = 10000

# Evaluated in order; the first match wins.
HECTARE_PATTERN = re.compile(r"(\d+)\s*(?:hect[aá]reas?|has?)(?![a-záéíóúñ])")
SQUARE_METER_PATTERN = re.compile(r"(\d+)\s*(?:m2|m²|metros?\s*cuadrados?)(?![a-záéíóúñ])")


def quitar_tildes(text: str) -> str:
    """Remove accents but keep spaces and punctuation."""
    text = unicodedata.normalize("NFD", text)
    return "".join(c for c in text if unicodedata.category(c) != "Mn")


def clean_text(text: str | None) -> str | None:
    """Clean and normalize text."""
    if not text:
        return None

    # Remove extra whitespace
    text = " ".join(text.split())
    return text.strip() or None


def normalize_area_text(text: str) -> str:
    """Lowercase, drop thousands/decimal marks and collapse whitespace."""
    text = re.sub(r"[,.]", "", text.lower())
    return " ".join(text.split())


def parse_area(text: str | None) -> float | None:
    """
    Parse a free-text area into hectares.

    Hectare units ("ha", "has", "hectareas", "hectáreas") are taken as-is;
    square meters ("m2", "m²", "metros cuadrados") are divided by 10000.

    Returns:
        Area in hectares, or None if no unit pattern matches
    """
    if not text:
        return None

    normalized = normalize_area_text(text)

    match = HECTARE_PATTERN.search(normalized)
    if match:
        return float(match.group(1))

    match = SQUARE_METER_PATTERN.search(normalized)
    if match:
        return float(match.group(1)) / M2_PER_HECTARE

    return None


def parse_area_attribute(value: str | None) -> float | None:
    """Parse the API's TOTAL_AREA attribute. Bare numbers are square meters."""
    if not value:
        return None

    area = parse_area(value)
    if area is not None:
        return area

    digits = re.sub(r"[^\d]", "", value)
    if not digits:
        return None
    return float(digits) / M2_PER_HECTARE


def parse_price(listing: CandidateListing) -> float | None:
    """Return the listing's structured price if it is positive."""
    price = listing.raw_price
    if price is None or price <= 0:
        return None
    return float(price)
