"""Rural property valuation from MercadoLibre comparables."""

__version__ = "0.1.0"
