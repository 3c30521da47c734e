"""
FastAPI Application Factory

Creates and configures the discount analytics API.
"""

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from discount_analytics.config import Settings, get_settings
from discount_analytics.context import AppContext
from discount_analytics.serving.api.middleware import (
    RateLimitMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
)
from discount_analytics.serving.api.routes import discounts_router, health_router, webhooks_router


def create_api_app(
    context: Optional[AppContext] = None,
    settings: Optional[Settings] = None,
    lifespan=None,
) -> FastAPI:
    """
    Create and configure FastAPI application.
    
    Args:
        context: Prebuilt application context; otherwise the lifespan
            handler is expected to set app.state.context
        settings: Settings override
        lifespan: Optional lifespan context manager
    
    Returns:
        Configured FastAPI app instance
    """
    settings = settings or (context.settings if context else get_settings())
    
    app = FastAPI(
        title="Discount Analytics API",
        description="Discount capture, history and reporting for commerce orders",
        version=settings.version,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )
    
    if context is not None:
        app.state.context = context
    
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.security.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        max_requests=settings.security.rate_limit_requests,
        window_seconds=settings.security.rate_limit_window_seconds,
    )
    
    app.include_router(health_router, prefix="/api/v1", tags=["Health"])
    app.include_router(discounts_router, prefix="/api/v1/discounts", tags=["Discounts"])
    app.include_router(webhooks_router, prefix="/api/v1/webhooks", tags=["Webhooks"])
    
    @app.get("/api/v1/info")
    async def api_info():
        """API information endpoint."""
        return {
            "name": "Discount Analytics API",
            "version": settings.version,
            "environment": settings.app_env,
        }
    
    return app
