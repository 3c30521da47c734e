"""
API Routes Module
"""
from .discounts import router as discounts_router
from .health import router as health_router
from .webhooks import router as webhooks_router

__all__ = [
    "discounts_router",
    "health_router",
    "webhooks_router",
]
