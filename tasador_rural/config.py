"""Configuration settings for the comparables service."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database (comparables cache)
    database_url: str = "sqlite:///comparables.db"
    cache_ttl_seconds: int = 3600

    # MercadoLibre API
    meli_base_url: str = "https://api.mercadolibre.com"
    meli_category: str = "MLA1496"  # Campos
    meli_page_size: int = 50
    meli_client_id: str | None = None
    meli_client_secret: str | None = None
    meli_access_token: str | None = None

    # HTTP behaviour
    user_agent: str = "TasadorRural-Comparables/1.0"
    request_timeout: float = 30.0
    retry_attempts: int = 3
    retry_backoff: float = 2.0

    # Search behaviour
    broaden_on_empty: bool = True
    fetch_descriptions: bool = True
    description_concurrency: int = 5

    # Geocoding (optional enrichment)
    geocoding_enabled: bool = False
    nominatim_url: str = "https://nominatim.openstreetmap.org"

    # Logging
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_prefix": "TASADOR_"}


settings = Settings()
