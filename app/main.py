import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import get_settings
from app.db.postgres import init_db, close_db
from app.logging_config import setup_logging
from app.api.routes import router, api_router
from app.services.cache import build_cache_store
from app.services.diagnostics import DiagnosticsReporter
from app.services.proxy import ProxyService
from app.services.upstream import UpstreamClient

# Configure logging
settings = get_settings()
setup_logging(settings.log_level, settings.log_file)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle - startup and shutdown."""
    # Startup
    logger.info("Starting cinema proxy...")
    uses_postgres = settings.cache_backend.lower() == "postgres"
    if uses_postgres:
        await init_db()
        logger.info("Database initialized")

    cache = build_cache_store(settings)
    app.state.cache = cache
    app.state.proxy_service = ProxyService(UpstreamClient.from_settings(settings), cache, settings)
    app.state.diagnostics = DiagnosticsReporter(cache, settings)
    logger.info(f"Using {settings.cache_backend} cache backend")

    yield

    # Shutdown
    logger.info("Shutting down cinema proxy...")
    if uses_postgres:
        await close_db()


app = FastAPI(
    title="Cinema Listings Proxy",
    description="Caching proxy for cinema and movie listings",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)

app.include_router(router, tags=["listings"])
app.include_router(api_router, prefix="/api", tags=["diagnostics"])


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "name": "Cinema Listings Proxy",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/health",
    }
