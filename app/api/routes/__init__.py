from __future__ import annotations

from app.api.routes.api_keys import router as api_keys_router
from app.api.routes.health import router as health_router
from app.api.routes.images import router as images_router

__all__ = ["api_keys_router", "health_router", "images_router"]
