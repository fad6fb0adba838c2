"""
httpobs - Application Entry Point

This module builds the FastAPI application wrapped in the observability
middleware chain.

Run with:
    uvicorn httpobs.main:create_app --factory --port 8080
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Callable, Optional

from fastapi import FastAPI

from httpobs.api.routes.system import router as system_router
from httpobs.core.config import Settings, get_settings
from httpobs.core.exceptions import ShutdownError
from httpobs.middleware.chain import build_default_chain
from httpobs.observability.manager import (
    Observability,
    set_observability,
    setup_observability,
)

APP_NAME = "httpobs"
APP_DESCRIPTION = "HTTP observability pipeline"


def create_app(
    settings: Optional[Settings] = None,
    observability: Optional[Observability] = None,
) -> Callable[..., Any]:
    """
    Create the ASGI application.

    Args:
        settings: Application settings (default: get_settings())
        observability: Prebuilt bundle (default: built from settings)

    Returns:
        FastAPI app wrapped in the default middleware chain
    """
    settings = settings or get_settings()
    observability = observability or setup_observability(settings)
    logger = observability.logger

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Install the observability bundle; flush and close it on shutdown."""
        set_observability(observability)
        app.state.observability = observability
        logger.info(
            "service starting",
            service=settings.service_name,
            version=settings.service_version,
            exporter=settings.otel_exporter or "NOOP",
        )

        yield

        logger.info("service shutting down", service=settings.service_name)
        try:
            observability.shutdown()
        except ShutdownError as e:
            logger.error("observability shutdown failed", error=str(e))
        finally:
            set_observability(None)

    app = FastAPI(
        title=APP_NAME,
        description=APP_DESCRIPTION,
        version=settings.service_version,
        lifespan=lifespan,
    )
    app.dependency_overrides[get_settings] = lambda: settings
    app.include_router(system_router)

    return build_default_chain(observability, settings).wrap(app)
