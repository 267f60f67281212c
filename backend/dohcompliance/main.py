"""DOH Compliance Validator — clinical form compliance scoring service.

Main FastAPI application with lifespan management, CORS, and global error handling.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import redis.asyncio as aioredis
import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dohcompliance.api.router import api_router
from dohcompliance.config import get_settings
from dohcompliance.errors import (
    ComplianceValidationError,
    InputValidationError,
    StandardsNotReadyError,
    ValidationUnavailableError,
)
from dohcompliance.services.realtime import RealtimeValidator
from dohcompliance.services.validation_service import ComplianceValidationService
from dohcompliance.validators.engine import ValidationCancelledError

# Configure structured logging
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer() if get_settings().DEBUG else structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(
        logging.getLevelName(get_settings().LOG_LEVEL.upper())
    ),
)

logger = structlog.get_logger()

ERROR_STATUS_CODES = {
    InputValidationError: 422,
    ValidationCancelledError: 409,
    StandardsNotReadyError: 503,
    ValidationUnavailableError: 503,
}


def create_app(service: Optional[ComplianceValidationService] = None) -> FastAPI:
    """Build the application. Pass a preconfigured service to skip settings-driven wiring."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application startup and shutdown lifecycle."""
        settings = get_settings()

        # ── Startup ──
        logger.info("app_starting", debug=settings.DEBUG)

        app.state.redis = None
        if service is None and settings.CACHE_BACKEND == "redis":
            try:
                app.state.redis = aioredis.from_url(
                    settings.REDIS_URL,
                    decode_responses=True,
                    encoding="utf-8",
                )
                await app.state.redis.ping()
                logger.info("redis_connected", url=settings.REDIS_URL)
            except Exception as e:
                logger.error("redis_connection_failed", error=str(e))
                # Falls back to the in-memory cache
                app.state.redis = None

        app.state.service = service or ComplianceValidationService.from_settings(
            settings, redis_client=app.state.redis
        )

        app.state.realtime = RealtimeValidator.from_settings(app.state.service, settings)

        standards = app.state.service.engine.standards
        if not standards.is_loaded:
            try:
                standards.load(settings.STANDARDS_PATH or None)
            except (OSError, ValueError) as e:
                # App still starts; validations answer 503 until a catalog is loaded
                logger.error("standards_load_failed", path=settings.STANDARDS_PATH, error=str(e))

        logger.info("app_started")

        yield

        # ── Shutdown ──
        logger.info("app_shutting_down")

        app.state.realtime.cancel_all()
        await app.state.service.close()
        if app.state.redis:
            await app.state.redis.close()
            logger.info("redis_disconnected")

        logger.info("app_stopped")

    app = FastAPI(
        title="DOH Compliance Validator",
        description=(
            "Rules-driven DOH compliance validation for clinical form data. "
            "Scores forms against the DOH standards catalog and produces "
            "critical findings and prioritized recommendations."
        ),
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # ── Middleware ──

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Global Exception Handlers ──

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Catch-all error handler for unhandled exceptions."""
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred. Please try again.",
            },
        )

    @app.exception_handler(ComplianceValidationError)
    async def compliance_error_handler(request: Request, exc: ComplianceValidationError):
        """Map engine errors to status codes; the body says whether a retry can help."""
        status_code = next(
            (code for error_type, code in ERROR_STATUS_CODES.items() if isinstance(exc, error_type)),
            500,
        )
        logger.warning("request_failed", path=request.url.path, error=exc.code, status_code=status_code)
        return JSONResponse(status_code=status_code, content=exc.to_dict())

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        """Handle validation errors."""
        return JSONResponse(
            status_code=422,
            content={"error": "validation_error", "message": str(exc)},
        )

    # ── Routes ──

    app.include_router(api_router, prefix="/api/v1")

    @app.get("/")
    async def root():
        """Root endpoint — API info."""
        return {
            "name": "DOH Compliance Validator",
            "version": "1.0.0",
            "description": "DOH compliance validation for clinical forms",
            "docs": "/docs",
            "health": "/api/v1/health",
        }

    return app


app = create_app()
