"""
FastAPI Production Application

Main entry point for the Discount Analytics API.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from discount_analytics.config import get_settings
from discount_analytics.config.logging import configure_logging
from discount_analytics.context import AppContext
from discount_analytics.database.connection import close_database, get_session_factory, init_database
from discount_analytics.serving.api import create_api_app

settings = get_settings()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    configure_logging()
    logger.info("Starting Discount Analytics API", environment=settings.app_env)
    
    await init_database()
    context = AppContext.build(get_session_factory(), settings)
    app.state.context = context
    
    if await context.store.is_provisioned():
        logger.info("Reading history from fact store")
    else:
        logger.warning("Fact store not provisioned, reading history from order metadata")
    
    yield
    
    logger.info("Shutting down...")
    await close_database()


app = create_api_app(settings=settings, lifespan=lifespan)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
