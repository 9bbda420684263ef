"""
WeChat ChatGPT Bridge - Main Application Entry Point

Answers WeChat Official Account messages with an OpenAI chat model, using
FastAPI, SQLite and a short per-user conversation history.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from wechat_bridge.api.wechat_webhook import router as wechat_router
from wechat_bridge.config.settings import Settings, get_settings
from wechat_bridge.infrastructure.database import create_engine, create_session_factory, init_database
from wechat_bridge.usecases.webhook_handler import WebhookHandler
from wechat_bridge.utils.logging import RequestIdMiddleware, configure_logging

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        settings: Settings to run with (defaults to the environment)

    Returns:
        Configured application
    """
    if settings is None:
        settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan manager.
        Handles startup and shutdown events.
        """
        # Startup
        logger.info("Starting WeChat ChatGPT Bridge...")

        logger.info("Initializing database...")
        engine = create_engine(settings)
        await init_database(engine)
        logger.info("Database initialized")

        app.state.settings = settings
        app.state.webhook_handler = WebhookHandler.from_settings(
            settings, create_session_factory(engine)
        )

        logger.info("Application startup complete!")
        logger.info(f"Model: {settings.openai_model}, max token: {settings.openai_max_token}")

        yield

        # Shutdown
        logger.info("Shutting down...")
        await engine.dispose()
        logger.info("Application shutdown complete")

    app = FastAPI(
        title="WeChat ChatGPT Bridge",
        description="Answers WeChat Official Account messages with an OpenAI chat model",
        version="1.0.0",
        lifespan=lifespan
    )

    app.add_middleware(RequestIdMiddleware)

    # Register routers
    app.include_router(wechat_router, tags=["WeChat"])

    @app.get("/")
    async def root():
        """Root endpoint with API information."""
        return {
            "name": "WeChat ChatGPT Bridge",
            "version": "1.0.0",
            "status": "running",
            "endpoints": {
                "webhook": "/webhook/wechat",
                "health": "/health"
            }
        }

    return app


configure_logging(get_settings().log_level)
app = create_app()


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(
        "wechat_bridge.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug
    )
