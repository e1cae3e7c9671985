from pydantic import Field
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    # Upstream movies API
    movies_api_base_url: str = ""
    movies_api_username: str = ""
    movies_api_key: str = ""
    movies_api_image_base: str = ""
    movies_api_timeout: float = Field(30.0, gt=0)  # seconds

    # Cinemas exposed by this deployment
    allowed_cinema_ids: list[int] = [44, 25, 9, 39, 40]

    # Cache windows
    cinemas_cache_ttl_days: int = Field(30, gt=0)
    movies_cache_weekday: int = Field(0, ge=0, le=6)  # Monday
    failed_fetch_ttl_seconds: Optional[int] = Field(None, gt=0)

    # Cache storage
    cache_backend: str = "memory"
    cache_single_flight: bool = True
    database_url: str = "postgresql://localhost:5432/cinema_proxy"
    db_pool_min_size: int = Field(1, ge=1)
    db_pool_max_size: int = Field(5, ge=1)

    # Posters
    poster_resolution: int = 216
    default_poster_path: str = "/images/default-poster.jpg"
    asset_base_url: str = ""

    log_level: str = "INFO"
    log_file: Optional[str] = None

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    return Settings()
