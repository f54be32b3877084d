"""External data sources: listings search and geocoding."""

from tasador_rural.sources.geocoding import NominatimGeocoder
from tasador_rural.sources.mercadolibre import MercadoLibreClient

__all__ = ["MercadoLibreClient", "NominatimGeocoder"]
