from fastapi import APIRouter, HTTPException, Depends
import logging

from app.config import get_settings
from app.models.schemas import HealthResponse, ErrorResponse, MovieListResponse
from app.api.dependencies import get_proxy_service, get_diagnostics
from app.services.diagnostics import DiagnosticsReporter
from app.services.proxy import ProxyService

logger = logging.getLogger(__name__)

router = APIRouter()
api_router = APIRouter()


# =============================================================================
# Listings
# =============================================================================


@router.get("/cinemas", response_model=list[dict])
async def get_cinemas(service: ProxyService = Depends(get_proxy_service)):
    """
    Allow-listed cinemas from the upstream API.

    Served from cache; upstream is consulted at most once per cache window.
    """
    return await service.list_cinemas()


@router.get(
    "/movies/{cinema_id}",
    response_model=MovieListResponse,
    responses={
        422: {"description": "Cinema ID is not an integer"},
    },
)
async def get_movies(cinema_id: int, service: ProxyService = Depends(get_proxy_service)):
    """
    Movie listing for one cinema.

    - **cinema_id**: upstream cinema ID

    Every movie carries a `poster_url`, falling back to the default poster.
    """
    return await service.list_movies(cinema_id)


# =============================================================================
# Health & Diagnostics
# =============================================================================


@api_router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(status="healthy", cacheBackend=get_settings().cache_backend)


@api_router.get(
    "/stats",
    responses={500: {"model": ErrorResponse, "description": "Failed to build report"}},
)
async def get_stats(diagnostics: DiagnosticsReporter = Depends(get_diagnostics)):
    """Cache hit/miss status, remaining TTL per key and call-frequency bounds."""
    try:
        return await diagnostics.stats()
    except Exception:
        logger.exception("Failed to build cache stats")
        raise HTTPException(status_code=500, detail="Internal server error")


@api_router.get(
    "/cache-inspection",
    responses={500: {"model": ErrorResponse, "description": "Failed to build report"}},
)
async def get_cache_inspection(diagnostics: DiagnosticsReporter = Depends(get_diagnostics)):
    """Raw metadata of every tracked cache entry."""
    try:
        return await diagnostics.cache_inspection()
    except Exception:
        logger.exception("Failed to inspect cache")
        raise HTTPException(status_code=500, detail="Internal server error")


@api_router.get(
    "/frequency-proof",
    responses={500: {"model": ErrorResponse, "description": "Failed to build report"}},
)
async def get_frequency_proof(diagnostics: DiagnosticsReporter = Depends(get_diagnostics)):
    """Computed explanation of the upstream call limits the cache enforces."""
    try:
        return diagnostics.frequency_proof()
    except Exception:
        logger.exception("Failed to build frequency proof")
        raise HTTPException(status_code=500, detail="Internal server error")
