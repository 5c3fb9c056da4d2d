from datetime import timedelta, timezone

from pydantic import BaseModel
from pydantic_settings import BaseSettings


class RefreshConfig(BaseModel):
    batch_size: int = 5
    batch_delay: float = 5.0
    demo_mode: bool = False
    default_currency: str = "EUR"
    default_adults: int = 2
    fallback_hotel_id: str = "687592"


class IngestionConfig(BaseModel):
    max_messages: int = 20
    max_auth_retries: int = 3
    utc_offset_hours: int = 0
    default_currency: str = "EUR"

    @property
    def tz(self) -> timezone:
        return timezone(timedelta(hours=self.utc_offset_hours))


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    supabase_url: str = ""
    supabase_service_role_key: str = ""
    google_client_id: str = ""
    google_client_secret: str = ""
    log_level: str = "INFO"
    price_mode: str = "production"  # "production" | "demo"
    price_batch_size: int = 5
    price_batch_delay: float = 5.0
    http_timeout: float = 8.0
    default_currency: str = "EUR"
    default_adults: int = 2
    fallback_trip_hotel_id: str = "687592"
    gmail_max_messages: int = 20
    gmail_max_auth_retries: int = 3
    email_utc_offset_hours: int = 0
    price_refresh_url: str = "http://localhost:8000/fetch-hotel-prices"
    scheduler_token: str = ""

    def refresh_config(self) -> RefreshConfig:
        return RefreshConfig(
            batch_size=self.price_batch_size,
            batch_delay=self.price_batch_delay,
            demo_mode=self.price_mode.lower() == "demo",
            default_currency=self.default_currency,
            default_adults=self.default_adults,
            fallback_hotel_id=self.fallback_trip_hotel_id,
        )

    def ingestion_config(self) -> IngestionConfig:
        return IngestionConfig(
            max_messages=self.gmail_max_messages,
            max_auth_retries=self.gmail_max_auth_retries,
            utc_offset_hours=self.email_utc_offset_hours,
            default_currency=self.default_currency,
        )
