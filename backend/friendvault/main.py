"""
FastAPI application entry point
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from friendvault.infrastructure.settings import get_settings
from friendvault.infrastructure.logging_config import setup_logging
from friendvault.api.exceptions import (
    vault_core_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    general_exception_handler,
)
from friendvault.api.public.health import router as health_router
from friendvault.api.public.metrics import router as metrics_router
from friendvault.api.v1 import router as api_v1_router
from friendvault.services.exceptions import VaultCoreError
from friendvault.utils.trace_id import TraceIDMiddleware
from friendvault.utils.request_logging import RequestLoggingMiddleware
from friendvault.utils.security_headers import SecurityHeadersMiddleware
from friendvault.utils.rate_limiter import RateLimitMiddleware
from friendvault.infrastructure.redis_client import get_redis

# Get settings
settings = get_settings()

# Setup logging
setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Friend Vault Core API",
    description="Shared custodial vaults with unanimous withdrawal approval",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

if settings.CORS_ENABLED:
    cors_origins = settings.cors_allow_origins_list
    if not cors_origins:
        logger.warning(
            "CORS_ENABLED=True but CORS_ALLOW_ORIGINS is empty or not set. "
            "Set CORS_ALLOW_ORIGINS (comma-separated, e.g. 'http://localhost:3000,http://localhost:5173')."
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_methods=settings.cors_allow_methods_list or ["*"],
        allow_headers=settings.cors_allow_headers_list or ["*"],
        allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    )

# Custom middlewares (last added is outermost: trace id wraps everything)
if settings.RATE_LIMIT_ENABLED:
    app.add_middleware(RateLimitMiddleware, redis_client=get_redis())
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(TraceIDMiddleware)

# Register exception handlers
app.add_exception_handler(VaultCoreError, vault_core_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)

# Register routers
app.include_router(health_router)
app.include_router(metrics_router)
app.include_router(api_v1_router)


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "name": "Friend Vault Core API",
        "version": "1.0.0",
        "status": "running",
    }
