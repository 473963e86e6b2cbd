"""FastAPI application for the Phone Fleet backend.

This is the main entry point for the API server. It mounts the sync
endpoints and the assignment/device endpoints on one app sharing one
database pool.
"""

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.database import check_database_health
from .api.dependencies import close_db_pool, get_db_pool, init_db_pool
from .api.error_sanitizer import sanitize_error_message
from .api.exceptions import ConnectionPoolError, FleetError, LifecycleError
from .assignment.api import devices_router
from .assignment.api import router as assignments_router
from .sync.api import router as sync_router

load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager.

    Handles startup and shutdown events:
    - Startup: Initialize database pool
    - Shutdown: Close database pool
    """
    logger.info("Starting Phone Fleet API...")

    try:
        await init_db_pool()
        logger.info("Database pool initialized")
    except Exception as e:
        logger.error(f"Failed to initialize database pool: {e}")
        raise

    yield

    logger.info("Shutting down Phone Fleet API...")
    await close_db_pool()
    logger.info("Database pool closed")


app = FastAPI(
    title="Phone Fleet API",
    description="Inventory reconciliation and device assignment lifecycle",
    version="1.0.0",
    lifespan=lifespan,
)

# Configure CORS
cors_origins = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173").split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept"],
)


@app.exception_handler(LifecycleError)
async def lifecycle_error_handler(request: Request, exc: LifecycleError):
    """Guard failures of the assignment lifecycle: 400, 404 or 409."""
    logger.info(f"{request.method} {request.url.path} refused: {exc}")
    return JSONResponse(
        status_code=exc.http_status,
        content={"error": exc.message, "code": exc.code, "details": exc.details},
    )


@app.exception_handler(FleetError)
async def fleet_error_handler(request: Request, exc: FleetError):
    logger.error(f"{request.method} {request.url.path} failed: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={
            "error": sanitize_error_message(exc.message),
            "code": exc.code,
            "details": {},
        },
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    # Log original error internally (never sent to the client)
    logger.error(f"Internal error: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={
            "error": sanitize_error_message(str(exc)),
            "code": "INTERNAL_ERROR",
            "details": {},
        },
    )


# Include routers
app.include_router(sync_router)
app.include_router(assignments_router)
app.include_router(devices_router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Phone Fleet API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
    }


@app.get("/health")
async def health():
    """Database health check."""
    try:
        pool = get_db_pool()
    except ConnectionPoolError:
        pool = None

    status = await check_database_health(pool)
    if "error" in status:
        status["error"] = sanitize_error_message(status["error"])
    return JSONResponse(
        status_code=200 if status["healthy"] else 503,
        content={"status": "healthy" if status["healthy"] else "unhealthy", "database": status},
    )


# Entry point for running with uvicorn
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.phonefleet.app:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=True,
    )
