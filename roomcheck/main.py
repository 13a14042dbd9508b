"""
RoomCheck API

FastAPI application for dormitory room inspections.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from roomcheck.config import get_settings
from roomcheck.database import SessionLocal, close_db, init_db
from roomcheck.errors import RoomCheckError
from roomcheck.routes import health_router, inspections_router, settings_router
from roomcheck.services.settings_store import SettingsStore

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info("Starting RoomCheck API...")
    await init_db()
    async with SessionLocal() as session:
        await SettingsStore(session).ensure_default()
        await session.commit()
    logger.info("Database initialized")

    yield

    # Shutdown
    logger.info("Shutting down RoomCheck API...")
    await close_db()
    logger.info("Database connections closed")


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Dormitory room inspection service",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RoomCheckError)
async def roomcheck_error_handler(request: Request, exc: RoomCheckError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Include routers
app.include_router(health_router)
app.include_router(inspections_router, prefix=settings.api_prefix)
app.include_router(settings_router, prefix=settings.api_prefix)

# Prometheus metrics endpoint
Instrumentator().instrument(app).expose(app, endpoint="/metrics")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": settings.app_name,
        "docs": "/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "roomcheck.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
