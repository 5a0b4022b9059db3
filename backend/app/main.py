"""
Main FastAPI application.

This module initializes the FastAPI application with middleware,
routers, and error handlers.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.routers import crawls, health, jobs
from app.core.config import settings
from app.core.database import close_db, init_db
from app.core.exceptions import (
    AuditPipelineError,
    CrawlJobNotFound,
    InsufficientCredits,
    JobNotFound,
    ProfileNotFound,
    TaskSubmissionFailed,
    UnsupportedJobType,
    ValidationError,
)
from app.observability import configure_logging, setup_observability

configure_logging()
logger = logging.getLogger(__name__)

# Pipeline errors map onto HTTP statuses; anything else is a 500
ERROR_STATUS_CODES: dict[type[AuditPipelineError], int] = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    UnsupportedJobType: status.HTTP_400_BAD_REQUEST,
    InsufficientCredits: status.HTTP_402_PAYMENT_REQUIRED,
    ProfileNotFound: status.HTTP_404_NOT_FOUND,
    CrawlJobNotFound: status.HTTP_404_NOT_FOUND,
    JobNotFound: status.HTTP_404_NOT_FOUND,
    TaskSubmissionFailed: status.HTTP_503_SERVICE_UNAVAILABLE,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager for startup and shutdown events.

    Args:
        app: FastAPI application instance
    """
    logger.info(
        "Starting application",
        extra={"app": settings.APP_NAME, "version": settings.APP_VERSION, "debug": settings.DEBUG},
    )
    await init_db()

    yield

    logger.info("Shutting down application", extra={"app": settings.APP_NAME})
    await close_db()


# Initialize FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Website crawl-and-audit pipeline for the SEO dashboard",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
    debug=settings.DEBUG,
)

# Setup observability (tracing, metrics)
# Must be called before other middleware to ensure all requests are instrumented
setup_observability(app)

# Configure CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=settings.CORS_ALLOW_METHODS,
    allow_headers=settings.CORS_ALLOW_HEADERS,
)


def _error_response(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": message, **extra},
    )


# Exception handlers
@app.exception_handler(AuditPipelineError)
async def pipeline_exception_handler(request: Request, exc: AuditPipelineError) -> JSONResponse:
    """
    Surface pipeline failures as ``{"success": false, "error": <message>}``.
    """
    status_code = next(
        (code for error_type, code in ERROR_STATUS_CODES.items() if isinstance(exc, error_type)),
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    if status_code >= 500:
        logger.error(
            "Pipeline error",
            extra={"path": request.url.path, "error": exc.message},
            exc_info=exc if exc.cause is not None else None,
        )
    return _error_response(status_code, exc.message)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.detail},
        headers=exc.headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Handle request validation errors with field-level details.
    """
    return _error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Validation error",
        details=jsonable_errors(exc),
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    # ctx may hold exception instances that JSON cannot encode
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled exception",
        extra={"path": request.url.path, "error": str(exc)},
        exc_info=exc,
    )
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


# Include routers
app.include_router(health.router, prefix=settings.API_V1_PREFIX)
app.include_router(crawls.router, prefix=settings.API_V1_PREFIX)
app.include_router(jobs.router, prefix=settings.API_V1_PREFIX)


@app.get(
    "/",
    tags=["root"],
    summary="Root endpoint",
    description="Returns basic information about the API",
)
async def root() -> dict[str, str]:
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "health": f"{settings.API_V1_PREFIX}/health",
    }
