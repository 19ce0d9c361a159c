"""
Subie - FastAPI Application

Main entry point for the backend API.
Provides endpoints for tracked subscriptions, billing history,
entitlements, profiles and administration.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from subie.config.settings import settings
from subie.infrastructure.exceptions import (
    AccessDeniedError,
    ConfigurationError,
    DuplicateError,
    NotFoundError,
    ProviderNotInitializedError,
    SubieError,
    TransientProviderError,
    ValidationError,
)

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup
    logger.info(f"Subie Backend starting in {settings.environment} mode...")
    logger.info(f"Entitlement provider: {settings.entitlement_provider}")

    try:
        from subie.infrastructure.db.database import init_db
        await init_db()
        logger.info("Database connection pool initialized")
    except Exception as e:
        logger.warning(f"Database initialization skipped: {e}")

    yield

    # Shutdown
    try:
        from subie.infrastructure.db.database import close_db
        await close_db()
        logger.info("Database connection pool closed")
    except Exception as e:
        logger.warning(f"Database shutdown error: {e}")

    logger.info("Subie Backend shutting down...")


app = FastAPI(
    title="Subie",
    description="Subscription tracking: recurring payments, reminders and billing history",
    version="1.0.0",
    lifespan=lifespan,
    debug=settings.debug,
)

# CORS configuration from Settings
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# Exception Handlers
# ============================================================================

@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    """Handle validation errors."""
    return JSONResponse(
        status_code=400,
        content=exc.to_dict(),
    )


@app.exception_handler(AccessDeniedError)
async def access_denied_error_handler(request: Request, exc: AccessDeniedError):
    """Handle role guard rejections."""
    return JSONResponse(
        status_code=403,
        content=exc.to_dict(),
    )


@app.exception_handler(NotFoundError)
async def not_found_error_handler(request: Request, exc: NotFoundError):
    """Handle not found errors."""
    return JSONResponse(
        status_code=404,
        content=exc.to_dict(),
    )


@app.exception_handler(DuplicateError)
async def duplicate_error_handler(request: Request, exc: DuplicateError):
    """Handle duplicate resource errors."""
    return JSONResponse(
        status_code=409,
        content=exc.to_dict(),
    )


@app.exception_handler(TransientProviderError)
async def transient_provider_error_handler(request: Request, exc: TransientProviderError):
    """Handle provider outages; the caller may retry."""
    logger.error(f"Provider unavailable on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=502,
        content=exc.to_dict(),
    )


@app.exception_handler(ProviderNotInitializedError)
async def provider_not_initialized_handler(request: Request, exc: ProviderNotInitializedError):
    """Handle purchase actions on a provider that is not ready."""
    return JSONResponse(
        status_code=503,
        content=exc.to_dict(),
    )


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    """Handle operations the deployment is not configured for."""
    return JSONResponse(
        status_code=503,
        content=exc.to_dict(),
    )


@app.exception_handler(SubieError)
async def general_error_handler(request: Request, exc: SubieError):
    """Handle all other application errors."""
    logger.error(f"{exc.__class__.__name__} on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=500,
        content=exc.to_dict(),
    )


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "subie"}


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Subie API",
        "version": "1.0.0",
        "docs": "/docs",
    }


# ============================================================================
# Import and register routers
# ============================================================================

from subie.api.routes import (  # noqa: E402
    admin,
    entitlements,
    profiles,
    subscriptions,
    transactions,
)

app.include_router(subscriptions.router, prefix="/api", tags=["Subscriptions"])
app.include_router(transactions.router, prefix="/api", tags=["Transactions"])
app.include_router(entitlements.router, prefix="/api", tags=["Entitlements"])
app.include_router(profiles.router, prefix="/api", tags=["Profiles"])
app.include_router(admin.router, prefix="/api")
