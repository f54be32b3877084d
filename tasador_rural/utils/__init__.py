"""Utility helpers."""

from tasador_rural.utils.helpers import (
    clean_text,
    parse_area,
    parse_area_attribute,
    parse_price,
    quitar_tildes,
)
from tasador_rural.utils.logs import configure_logging

__all__ = [
    "clean_text",
    "configure_logging",
    "parse_area",
    "parse_area_attribute",
    "parse_price",
    "quitar_tildes",
]
