"""FastAPI application for TrendLedger."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from trendledger.api.routers import admin, metadata, points, trending, withdrawals
from trendledger.api.schemas.response import HealthResponse
from trendledger.config import get_settings
from trendledger.logger import get_logger
from trendledger.services.metadata_updater import MetadataUpdater
from trendledger.services.scheduler import MetadataScheduler

logger = get_logger(__name__)

VERSION = "1.0.0"

# Create FastAPI application
app = FastAPI(
    title="TrendLedger API",
    description="Trend metadata and points ledger for short-lived prediction markets",
    version=VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware - allow requests from the web and mobile clients
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Include routers
app.include_router(metadata.router, prefix="/api/metadata", tags=["metadata"])
app.include_router(trending.router, prefix="/api/trending", tags=["metadata"])
app.include_router(points.router, prefix="/api/points", tags=["points"])
app.include_router(withdrawals.router, prefix="/api/withdrawals", tags=["withdrawals"])
app.include_router(admin.router, prefix="/api/admin", tags=["admin"])


@app.on_event("startup")
async def startup_event():
    """Initialize application on startup."""
    logger.info("Starting TrendLedger API server")
    logger.info("API documentation available at /docs")

    settings = get_settings()
    app.state.scheduler = None
    app.state.updater = None
    if settings.enable_scheduler:
        app.state.updater = MetadataUpdater.from_settings(settings)
        app.state.scheduler = MetadataScheduler(
            app.state.updater.run_job, interval_minutes=settings.update_interval_minutes
        )
        app.state.scheduler.start()


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    logger.info("Shutting down TrendLedger API server")
    scheduler = getattr(app.state, "scheduler", None)
    if scheduler is not None and scheduler.is_running:
        scheduler.stop(wait=False)
    updater = getattr(app.state, "updater", None)
    if updater is not None:
        updater.close()


@app.get("/", response_model=HealthResponse)
async def root():
    """Root endpoint with basic API information."""
    return HealthResponse(status="running", version=VERSION)


@app.get("/health", response_model=HealthResponse)
async def health():
    """Health check endpoint."""
    scheduler = getattr(app.state, "scheduler", None)
    return HealthResponse(
        status="healthy",
        version=VERSION,
        scheduler=scheduler.get_status() if scheduler else None,
    )
