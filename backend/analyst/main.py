"""
FastAPI application for the match analysis pipeline.

Provides HTTP API for analysis runs with WebSocket state updates.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from analyst.api import routes, websocket
from analyst.config import check_config_dir, get_settings
from analyst.logging_config import setup_logging
from analyst.services.ai_clients import GeminiClient
from analyst.services.run_manager import get_run_manager

# Configure logging before anything else
settings = get_settings()
setup_logging(settings)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Checks the config directory, logs startup info and cancels an
    in-flight run on shutdown.
    """
    logger.info("Starting Match Analyst API")
    check_config_dir(settings)
    logger.info(f"Config dir: {settings.config_dir}")
    logger.info(f"Log level: {settings.log_level}")
    logger.info(f"Analysis model: {settings.analysis_model}")
    logger.info(
        f"Inline limit: {settings.inline_limit_mb}MB, "
        f"max file size: {settings.max_file_size_mb}MB"
    )
    if not settings.gemini_api_key:
        logger.warning("GEMINI_API_KEY is not set - runs will fail validation")

    yield

    await get_run_manager().cancel()
    logger.info("Shutting down Match Analyst API")


app = FastAPI(
    title="Match Analyst API",
    description="API for resilient match video ingestion and tactical analysis",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(routes.router)
app.include_router(websocket.router)


@app.get("/health")
async def health_check() -> dict:
    """
    Health check endpoint.

    Returns:
        Basic health status
    """
    return {"status": "ok"}


@app.get("/health/services")
async def services_health() -> dict:
    """
    Check inference service availability.

    Returns:
        Gemini reachability and configured model
    """
    async with GeminiClient.from_settings(settings) as client:
        status = await client.check_services()
    return {
        "gemini": status["gemini"],
        "gemini_url": settings.gemini_base_url,
        "analysis_model": settings.analysis_model,
        "api_key_configured": bool(settings.gemini_api_key),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "analyst.main:app",
        host="0.0.0.0",
        port=8802,
        reload=True,
    )
