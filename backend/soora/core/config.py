# backend/soora/core/config.py

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Runtime configuration. Each field is read from the upper-cased env var or .env."""

    # Lalamove
    lalamove_api_key: str = ""
    lalamove_api_secret: str = ""
    lalamove_base_url: str = "https://rest.sandbox.lalamove.com"
    lalamove_market: str = "SG"
    lalamove_service_type: str = "MOTORCYCLE"
    lalamove_language: str = "en_SG"
    lalamove_timeout_seconds: float = 10.0
    lalamove_breaker_threshold: int = 5
    lalamove_breaker_cooldown_seconds: float = 30.0

    # Store (pickup point)
    store_name: str = "Soora Store"
    store_phone: str = "+6590000000"
    store_address: str = "Soora Warehouse, Singapore"
    store_lat: float = 1.3521
    store_lng: float = 103.8198

    # Flat fee used whenever a live quotation is unavailable
    delivery_fee: float = 5.0
    currency: str = "SGD"

    # Geocoding (OpenStreetMap Nominatim)
    geocoder_url: str = "https://nominatim.openstreetmap.org/search"
    geocoder_user_agent: str = "soora-app/1.0"
    geocoder_timeout_seconds: float = 5.0

    # MySQL
    mysql_host: str = "127.0.0.1"
    mysql_port: int = 3306
    mysql_user: str = "app_user"
    mysql_password: str = ""
    mysql_database: str = "soora"

    # Auth tokens
    jwt_secret_key: str = "dev-key-change-in-production-very-long-secret-key-12345"
    access_token_expire_minutes: int = 60

    payments_shared_secret: str = ""
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_ignore_empty = True
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
