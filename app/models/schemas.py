from pydantic import BaseModel, Field
from typing import Any


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str = "1.0.0"
    cache_backend: str = Field(..., alias="cacheBackend")

    class Config:
        populate_by_name = True


class ErrorResponse(BaseModel):
    """Error response model."""

    detail: str


class MovieListResponse(BaseModel):
    """Movie listing for one cinema. Records are passed through from upstream."""

    data: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Movie records, each with a poster_url",
    )
