"""
FastAPI application initialization
"""

from fastapi import FastAPI
from api.routes import health, plates, stats
from core.config import settings
from core.logging import setup_logging
import logging
from api.middleware import RequestContextMiddleware
from crawler.scheduler import SyncScheduler

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Plate Sync API",
    description="Read access to the published plate availability view and sync status",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(RequestContextMiddleware)

# Periodic full sync, only when enabled
scheduler = SyncScheduler() if settings.SCHEDULER_ENABLED else None


# Include routers
app.include_router(health.router)
app.include_router(plates.router)
app.include_router(stats.router)


@app.on_event("startup")
async def startup_event():
    """Application startup event"""
    setup_logging()
    logger.info("Starting Plate Sync API")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Database: {settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'configured'}")

    if scheduler:
        scheduler.start()


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown event"""
    logger.info("Shutting down Plate Sync API")
    if scheduler:
        scheduler.stop()


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Plate Sync API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "plates": "/plates",
            "stats": "/stats"
        }
    }
