"""
Main FastAPI Application.
Entry point for the Master Data Console API.
"""

from fastapi import FastAPI, Request, status # type: ignore
from fastapi.middleware.cors import CORSMiddleware # type: ignore
from fastapi.responses import JSONResponse # type: ignore
from contextlib import asynccontextmanager, suppress
import asyncio
import time
from datetime import datetime, timezone

from app.config import settings
from app.core.database import get_db_manager
from app.core.exceptions import AppException
from app.core.failed_row_store import get_failed_row_store
from app.core.responses import ResponseHandler
from app.core.schema_catalog import get_schema_catalog
from app.core.logging_config import (
    setup_logging,
    get_logger,
    log_operation_start,
    log_operation_end,
    log_api_request
)

from app.api.routes import master_data_routes, upload_routes


setup_logging(
    log_level="DEBUG" if settings.DEBUG else settings.LOG_LEVEL,
    log_dir=settings.LOG_DIR,
    enable_file_logging=settings.ENABLE_FILE_LOGGING
)

logger = get_logger(__name__)

SLOW_REQUEST_MS = 1000


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the pool, warm the catalog and run the failed-row sweeper."""
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION} ({settings.ENVIRONMENT})")

    try:
        log_operation_start(logger, "database_initialization")
        db_manager = get_db_manager()
        logger.info(f"Database connection pool initialized: {db_manager.get_pool_status()}")
        log_operation_end(logger, "database_initialization", success=True)
    except Exception as e:
        logger.critical(f"Failed to initialize database: {str(e)}", exc_info=True)
        log_operation_end(logger, "database_initialization", success=False, error=str(e))
        raise

    try:
        tables = sorted(get_schema_catalog().list_master_tables())
        logger.info(f"Discovered {len(tables)} master tables: {', '.join(tables)}")
    except AppException as e:
        # Discovery is retried on the first request
        logger.warning(f"Master table discovery failed at startup: {e.details or e.message}")

    store = get_failed_row_store()
    sweeper = asyncio.create_task(store.run_sweeper(settings.FAILED_ROWS_SWEEP_INTERVAL_SECONDS))
    logger.info(
        f"Failed rows kept for {settings.FAILED_ROWS_RETENTION_SECONDS:.0f}s, "
        f"swept every {settings.FAILED_ROWS_SWEEP_INTERVAL_SECONDS:.0f}s"
    )

    yield

    logger.info(f"Shutting down {settings.APP_NAME}")

    sweeper.cancel()
    with suppress(asyncio.CancelledError):
        await sweeper
    logger.info(f"Failed-row sweeper stopped; {len(store)} batches discarded")

    try:
        get_db_manager().close_pool()
    except Exception as e:
        logger.error(f"Error during shutdown: {str(e)}", exc_info=True)

    logger.info("Shutdown complete")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Browse, register, toggle and bulk-import rows of the *_master lookup tables",
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json"
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every request with its duration; slow ones also get a resource snapshot."""
    start_time = time.time()
    request.state.timestamp = datetime.now(timezone.utc).isoformat()

    try:
        response = await call_next(request)
    except Exception as e:
        duration_ms = (time.time() - start_time) * 1000
        logger.error(
            f"Request failed: {request.method} {request.url.path} - {str(e)}",
            extra={"method": request.method, "path": request.url.path, "duration_ms": duration_ms},
            exc_info=True
        )
        raise

    duration_ms = (time.time() - start_time) * 1000
    log_api_request(
        logger,
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=duration_ms
    )

    if duration_ms > SLOW_REQUEST_MS:
        logger.warning(
            f"Slow request detected: {request.method} {request.url.path} - {duration_ms:.2f}ms",
            extra={"path": request.url.path, "duration_ms": duration_ms, "slow_request": True}
        )
        logger.perf.log_performance_snapshot(f"Slow Request: {request.url.path}")

    response.headers["X-Process-Time"] = f"{duration_ms:.2f}"
    return response


@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    """Application errors that escaped a route."""
    logger.warning(
        f"Application exception: {exc.error_code} - {exc.message}",
        extra={"error_code": exc.error_code, "path": request.url.path, "details": exc.details}
    )
    # Backend detail of storage errors stays in the log
    details = {} if exc.status_code >= 500 else exc.details
    return JSONResponse(
        status_code=exc.status_code,
        content=ResponseHandler.error(exc.error_code, exc.message, exc.status_code, details)
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    logger.error(
        f"Unhandled exception: {str(exc)}",
        extra={"path": request.url.path, "exception_type": type(exc).__name__},
        exc_info=True
    )
    message = str(exc) if settings.DEBUG else "An unexpected error occurred"
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ResponseHandler.error("INTERNAL_ERROR", message, 500)
    )


app.include_router(master_data_routes.router, prefix="/api/v1")
app.include_router(upload_routes.router, prefix="/api/v1")
logger.debug("Registered master data and upload routes")


@app.get("/health", tags=["System"])
async def health_check():
    """Pool state, pending failed-row batches and process metrics."""
    try:
        pool_status = get_db_manager().get_pool_status()
        health_data = {
            "status": "healthy" if pool_status["initialized"] else "degraded",
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
            "database": pool_status,
            "failed_row_batches": len(get_failed_row_store()),
            "performance": logger.perf.snapshot()
        }
        logger.debug(f"Health check: {health_data['status']}")
        return health_data

    except Exception as e:
        logger.error(f"Health check failed: {str(e)}", exc_info=True)
        return {
            "status": "unhealthy",
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "error": str(e) if settings.DEBUG else "Health check failed"
        }


@app.get("/", tags=["System"])
async def root():
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "docs": "/api/docs",
        "health": "/health",
        "api_prefix": "/api/v1"
    }


if __name__ == "__main__":
    import uvicorn # type: ignore

    logger.info(f"Starting server on {settings.HOST}:{settings.PORT}")

    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_config=None,
        access_log=False
    )
