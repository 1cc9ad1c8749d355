"""Application factory for the FastAPI app.

Centralizes app construction (state, middleware, handlers, routers) so tests
can build isolated instances with their own limiter and stores.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import AsyncIterator

from fastapi import FastAPI

from app.adapters.rate_limit.base import AbstractRateLimiter
from app.adapters.storage.base import AbstractApiKeyRepository, AbstractImageRepository
from app.adapters.storage.in_memory import InMemoryApiKeyRepository, InMemoryImageRepository
from app.api.routes import api_keys_router, health_router, images_router
from app.core.config import settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.core.openapi import apply_openapi_customizations
from app.core.rate_limit import build_rate_limiter, rate_limit_middleware
from app.services.api_key_service import ApiKeyService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run the limiter's eviction thread for the lifetime of the server."""

    limiter: AbstractRateLimiter = app.state.rate_limiter
    limiter.start()
    try:
        yield
    finally:
        limiter.stop()


def _build_image_repository() -> AbstractImageRepository:
    if settings.app.images_seed_path:
        return InMemoryImageRepository.from_json_file(settings.app.images_seed_path)
    return InMemoryImageRepository()


def create_app(
    *,
    rate_limiter: AbstractRateLimiter | None = None,
    image_repository: AbstractImageRepository | None = None,
    api_key_repository: AbstractApiKeyRepository | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        rate_limiter: Limiter to gate requests with; built from settings if omitted.
            Its eviction thread is started by the app lifespan, not here.
        image_repository: Image store; in-memory (optionally seeded) if omitted.
        api_key_repository: Key store; empty in-memory store if omitted.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Naturedopes Image API",
        description=(
            "Serves catalogued wildlife images. Image endpoints require an "
            "X-API-Key issued via /api/keys. Every request is throttled per "
            "client address and per API key."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.rate_limiter = rate_limiter or build_rate_limiter(autostart=False)
    app.state.image_repository = image_repository or _build_image_repository()
    app.state.api_key_service = ApiKeyService(
        api_key_repository or InMemoryApiKeyRepository(),
        key_ttl=timedelta(days=settings.app.api_key_ttl_days),
    )

    # Middleware: the last registered runs first, so request ids wrap the gate.
    app.middleware("http")(rate_limit_middleware)
    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(images_router)
    app.include_router(api_keys_router)
    app.include_router(health_router)

    apply_openapi_customizations(app)

    logger.info(
        "app.created",
        extra={"app_env": settings.app_env, "rate_limit_enabled": settings.rate_limit.enabled},
    )
    return app
