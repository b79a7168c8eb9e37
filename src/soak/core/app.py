"""
FastAPI application setup with CORS middleware and Prometheus metrics.
"""

import time

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import Gauge, make_asgi_app

from src.soak.core.config import get_config
from src.soak.core.dependencies import get_run_manager
from src.soak.utils.logging import get_logger

logger = get_logger(__name__)

STARTUP_TIME_GAUGE = Gauge(
    "soak_startup_time_seconds", "Time taken for service to start in seconds"
)


def create_app() -> FastAPI:
    """
    Create and configure FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    config = get_config()

    app = FastAPI(
        title=config.app.APP_NAME,
        version=config.app.APP_VERSION,
        description="Long-duration soak and load testing for a currency-conversion service",
    )

    if config.api.API_CORS_ENABLED:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.api.API_CORS_ORIGINS,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
        logger.info(f"CORS enabled with origins: {config.api.API_CORS_ORIGINS}")

    from src.soak.api.routes import health, runs

    app.include_router(health.router, prefix="/api", tags=["health"])
    app.include_router(runs.router)  # Already has /api/runs prefix

    app.mount("/metrics", make_asgi_app())
    logger.info("Prometheus metrics enabled at /metrics endpoint")

    @app.on_event("startup")
    async def startup_event() -> None:
        start_time = time.time()
        logger.info(f"Starting {config.app.APP_NAME} v{config.app.APP_VERSION}")
        logger.info(f"Environment: {config.app.APP_ENV}")

        await get_run_manager().start()

        startup_duration = time.time() - start_time
        logger.info(f"Service started in {startup_duration * 1000:.2f}ms")
        STARTUP_TIME_GAUGE.set(startup_duration)

    @app.on_event("shutdown")
    async def shutdown_event() -> None:
        logger.info("Shutting down application")
        try:
            await get_run_manager().stop()
        except Exception as e:
            logger.error(f"Error during run manager shutdown: {e}")
            raise

    return app


app = create_app()
