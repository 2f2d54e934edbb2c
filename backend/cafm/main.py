"""
CAFM Work Order API - Main Application Entry Point
"""
import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cafm.core.config import get_settings
from cafm.core.database import init_db, async_session_maker
from cafm.core.exceptions import (
    WorkOrderError,
    NotFound,
    InvalidStateTransition,
    InvalidAssignment,
    ConcurrentModification,
    NoCapacityAvailable,
    InvalidInput,
)
from cafm.api.v1.router import api_router
from cafm.services.auto_schedule_job import run_auto_scheduler

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.DEBUG else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = {
    NotFound: 404,
    InvalidStateTransition: 409,
    InvalidAssignment: 422,
    ConcurrentModification: 409,
    NoCapacityAvailable: 409,
    InvalidInput: 422,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler for startup and shutdown events.
    """
    # Startup
    logger.info("Starting CAFM Work Order API...")

    # Initialize database
    await init_db()
    logger.info("Database initialized")

    scheduler_task = None
    if settings.AUTO_SCHEDULE_ENABLED:
        scheduler_task = asyncio.create_task(run_auto_scheduler(async_session_maker))
        logger.info("Auto-scheduler started")

    yield

    # Shutdown
    logger.info("Shutting down CAFM Work Order API...")
    if scheduler_task is not None:
        scheduler_task.cancel()
        try:
            await scheduler_task
        except asyncio.CancelledError:
            pass


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="""
    ## CAFM Work Orders

    Work order lifecycle for facilities maintenance:

    * **Lifecycle** - Assign, start, hold, resume, complete, verify, cancel
    * **Checklists** - Tasks drive the completion percentage
    * **Costs** - Labor and material costs roll up into the total
    * **Auto-scheduling** - Round-robin assignment inside working hours

    ### Identity

    Requests are authenticated upstream. Send `X-Tenant-Id`, `X-User-Id`
    and `X-User-Role` headers.
    """,
    openapi_url="/api/v1/openapi.json",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Include API router
app.include_router(api_router, prefix="/api/v1")


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": settings.APP_VERSION}


@app.exception_handler(WorkOrderError)
async def work_order_exception_handler(request: Request, exc: WorkOrderError):
    """Map engine errors to HTTP status codes."""
    status_code = ERROR_STATUS_CODES.get(type(exc), 400)
    logger.info(f"{exc.error_code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "error_code": exc.error_code},
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler for unhandled errors."""
    logger.error(f"Unhandled error: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "cafm.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
