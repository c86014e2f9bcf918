"""Veeam Recoverability Posture - Main Application."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from recoverability.api.routes import posture_router
from recoverability.core.config import get_settings
from recoverability.core.database import dispose_engines

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info(f"Starting {settings.app_name}...")
    if settings.trend_enabled:
        logger.info(f"Snapshot history enabled ({settings.snapshot_backend} backend)")
    else:
        logger.info("Snapshot history disabled; assessments will not report trends")

    yield

    logger.info("Shutting down...")
    dispose_engines()


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Recoverability posture assessment: scores recovery validation "
                "evidence across backup platforms and maps it to compliance findings.",
    lifespan=lifespan,
)

app.include_router(posture_router)


@app.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "version": settings.app_version,
        "trend_enabled": settings.trend_enabled,
    }


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for unhandled exceptions."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "detail": str(exc) if settings.debug else "An unexpected error occurred",
        },
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "recoverability.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
