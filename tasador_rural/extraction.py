"""
Promotion of raw listings into comparables.

Includes:
- Price/area extraction and filtering
- Keyword detection of rural features (tipo de campo, mejoras, cultivos)
"""

import logging
import re

from tasador_rural.models import CandidateListing, Comparable, RuralFeatures
from tasador_rural.query import SearchQuery
from tasador_rural.utils.helpers import parse_area, parse_area_attribute, parse_price

logger = logging.getLogger(__name__)

# =============================================================================
# RURAL FEATURE PATTERNS
# =============================================================================

# Checked in order; the first matching type wins
TIPO_CAMPO_PATTERNS = [
    ("agricola", r"agr[ií]cola|agricultura|siembra|cultivo"),
    ("ganadero", r"ganader[iao]|hacienda|vacun"),
    ("mixto", r"mixto|agro.?ganadero"),
    ("forestal", r"forestal|bosque|monte"),
    ("tambo", r"tambo|lecher[iao]"),
]

MEJORAS_PATTERNS = {
    "casa": r"casa|vivienda|casero",
    "galpon": r"galp[oó]n|dep[oó]sito|tinglado",
    "silos": r"silo|almacen",
    "aguadas": r"aguada|tanque|bebedero|pozo",
    "molinos": r"molino",
    "alambrados": r"alambrado|cerco|perimetral",
    "corrales": r"corral",
    "manga": r"manga|embarcadero",
}

CULTIVOS_PATTERNS = {
    "soja": r"soja",
    "maíz": r"ma[ií]z",
    "trigo": r"trigo",
    "girasol": r"girasol",
    "sorgo": r"sorgo",
}

PASTURAS_PATTERNS = {
    "naturales": r"pastura\s*natural|campo\s*natural",
    "implantadas": r"pastura\s*implantada|pradera",
}

INFRAESTRUCTURA_PATTERNS = {
    "electricidad": r"luz|electricidad|energ[ií]a",
    "gas": r"\bgas\b",
    "camino": r"ruta|camino|asfalto",
}


def _matches(patterns: dict[str, str], text: str) -> list[str]:
    return [name for name, pattern in patterns.items() if re.search(pattern, text)]


def detect_rural_features(title: str | None, description: str | None = None) -> RuralFeatures:
    """
    Detect field type, improvements, crops, pastures and services.

    Title and description are searched together; either may be empty.
    """
    text = f"{title or ''} {description or ''}".lower()

    tipo_campo = "desconocido"
    for tipo, pattern in TIPO_CAMPO_PATTERNS:
        if re.search(pattern, text):
            tipo_campo = tipo
            break

    return RuralFeatures(
        tipo_campo=tipo_campo,
        aptitud_suelo=[tipo_campo] if tipo_campo != "desconocido" else [],
        mejoras=_matches(MEJORAS_PATTERNS, text),
        cultivos=_matches(CULTIVOS_PATTERNS, text),
        pasturas=_matches(PASTURAS_PATTERNS, text),
        infraestructura=_matches(INFRAESTRUCTURA_PATTERNS, text),
    )


# =============================================================================
# EXTRACTION
# =============================================================================

def listing_area(listing: CandidateListing) -> float | None:
    """Area in hectares, preferring the structured TOTAL_AREA attribute."""
    area = parse_area_attribute(listing.total_area_text)
    if area and area > 0:
        return area
    return parse_area(listing.title)


def to_comparable(listing: CandidateListing, query: SearchQuery) -> Comparable | None:
    """Build a Comparable, or None if price or area cannot be extracted."""
    price = parse_price(listing)
    area = listing_area(listing)

    if price is None or area is None or area <= 0:
        return None

    return Comparable(
        id=listing.external_id,
        title=listing.title,
        price=price,
        area_hectares=area,
        price_per_hectare=price / area,
        permalink=listing.permalink,
        thumbnail=listing.thumbnail_url,
        location=query.localidad if listing.location_text is None else listing.location_text,
        latitude=listing.latitude,
        longitude=listing.longitude,
        rural_features=detect_rural_features(listing.title),
    )


def with_description(comparable: Comparable, description: str) -> Comparable:
    """Copy of the comparable with features detected from title and description."""
    if not description:
        return comparable
    features = detect_rural_features(comparable.title, description)
    return comparable.model_copy(update={"rural_features": features})


def extract_comparables(listings: list[CandidateListing], query: SearchQuery) -> list[Comparable]:
    """
    Keep the listings with a usable price and area, in discovery order.

    Listings that fail extraction are dropped; that is a filtering decision,
    not an error.
    """
    comparables = []
    for listing in listings:
        comparable = to_comparable(listing, query)
        if comparable is None:
            logger.debug("Dropped %s: no usable price/area in %r", listing.external_id, listing.title)
            continue
        comparables.append(comparable)

    logger.info("Extracted %d comparables from %d listings", len(comparables), len(listings))
    return comparables
