"""
Master-Data Portal Gateway - Main Application Entry Point

All feature APIs are registered as FastAPI routers on a single application.

Features:
- Database connection pool (PostgreSQL with asyncpg)
- Bearer auth dependency (optional vs required mode via AUTH_ENFORCEMENT)
- CORS configuration for development
- Request logging for the dynamic data and upload APIs
- Response-envelope rendering for data and HTTP errors

Lifespan Events:
- Startup: Initialize database pool (and registry tables if DATABASE_AUTO_CREATE)
- Shutdown: Close database connections

Run:
    uvicorn apps.gateway.main:app --reload
"""

from contextlib import asynccontextmanager
import logging
import time

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from portallib.config import settings
from portallib.database import Database, database_lifespan, get_database
from portallib.dynamic.errors import DataAccessError
from portallib.responses import error_envelope

# Routers
from apps.dynamic_data.routes import router as dynamic_data_router
from apps.excel.routes import router as excel_router
from apps.category.routes import router as category_router


# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

LOGGED_PREFIXES = ("/api/dynamic-data", "/api/excel")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start and stop the database connection pool."""
    logger.info("=" * 60)
    logger.info(f"Starting {settings.app_name} Gateway...")
    logger.info(f"   - Auth Enforcement: {settings.auth_enforcement}")
    logger.info(f"   - Database Schema: {settings.database_schema}")
    logger.info(f"   - Upsert Group Size: {settings.upsert_group_size}")

    async with database_lifespan():
        logger.info("Gateway READY")
        logger.info("=" * 60)
        yield

    logger.info("Gateway shutdown complete")


# Create FastAPI application with lifespan
app = FastAPI(
    title=f"{settings.app_name} (Gateway)",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)


# ==============================================================================
# Middleware Configuration
# ==============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_data_operations(request: Request, call_next):
    """
    Log dynamic data and upload requests with status and duration.

    4xx responses log at WARNING, 5xx at ERROR.
    """
    path = request.url.path
    if not path.startswith(LOGGED_PREFIXES):
        return await call_next(request)

    start_time = time.time()
    method = request.method
    logger.info(f"Data Request: {method} {path}")

    try:
        response = await call_next(request)
    except Exception as e:
        duration = (time.time() - start_time) * 1000
        logger.error(
            f"Data Request exception: {method} {path} - "
            f"Error: {str(e)} - Duration: {duration:.2f}ms"
        )
        raise

    duration = (time.time() - start_time) * 1000
    status = response.status_code
    message = f"{method} {path} - Status: {status} - Duration: {duration:.2f}ms"
    if status >= 500:
        logger.error(f"Data Request server error: {message}")
    elif status >= 400:
        logger.warning(f"Data Request client error: {message}")
    else:
        logger.info(f"Data Request completed: {message}")
    return response


# ==============================================================================
# Exception Handlers
# ==============================================================================


@app.exception_handler(DataAccessError)
async def data_access_error_handler(request: Request, exc: DataAccessError):
    context = exc.context()
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.message} {context}")
    else:
        logger.warning(f"{type(exc).__name__} on {request.url.path}: {exc.message} {context}")
    return error_envelope(exc.message, exc.status_code, context or None)


@app.exception_handler(SQLAlchemyError)
async def sqlalchemy_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Database error on {request.url.path}: {exc}")
    return error_envelope("Database operation failed", 500)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return error_envelope(str(exc.detail), exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return error_envelope("Validation failed", 422, {"errors": exc.errors()})


# ==============================================================================
# Health Check
# ==============================================================================


@app.get("/healthz")
async def healthz():
    """Process health and auth mode."""
    return {
        "status": "ok",
        "app": settings.app_name,
        "auth_enforcement": settings.auth_enforcement,
    }


@app.get("/health/db")
async def health_db(database: Database = Depends(get_database)):
    """
    Database health check.

    Tests database connectivity by executing a simple query.
    """
    try:
        async with database.session() as db:
            result = await db.execute(text("SELECT 1"))
            _ = result.scalar()
        return {"status": "ok", "database": "connected"}
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"Database health check failed: {e}")
        return {"status": "error", "database": str(e)}


# ==============================================================================
# Router Registration
# ==============================================================================

app.include_router(dynamic_data_router)
app.include_router(excel_router)
app.include_router(category_router)
