"""API key authentication logic.

Keys are issued through ``/api/keys`` and validated against the key store on
every protected request.

Design principles:
- Single Responsibility: only handles X-API-Key validation
- Dependency Injection: used via FastAPI Depends() for loose coupling
- Configuration-driven: can be disabled with APP_API_KEY_REQUIRED=false
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status

from app.core.config import settings
from app.core.errors import AuthenticationAppError
from app.core.logging import hash_identifier
from app.services.api_key_service import ApiKeyService

logger = logging.getLogger(__name__)


def get_api_key_service(request: Request) -> ApiKeyService:
    """Return the ApiKeyService attached to the application."""

    return request.app.state.api_key_service


def validate_api_key(provided_key: str | None, service: ApiKeyService) -> None:
    """Validate that the provided key is issued, unrevoked and unexpired.

    Pure validation logic without FastAPI dependencies for easy testing.

    Raises:
        AuthenticationAppError: If the key is missing or not valid.
    """
    if not settings.app.api_key_required:
        return

    if not provided_key:
        raise AuthenticationAppError(
            code="missing_api_key",
            message="Missing X-API-Key header",
        )

    if not service.validate(provided_key):
        raise AuthenticationAppError(
            code="invalid_api_key",
            message="Invalid or revoked API key",
        )


async def verify_api_key(
    service: Annotated[ApiKeyService, Depends(get_api_key_service)],
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> None:
    """FastAPI dependency for API key authentication.

    Usage:
        @router.get("/protected", dependencies=[Depends(verify_api_key)])
        async def protected_endpoint():
            return {"message": "Authenticated!"}

    Raises:
        HTTPException: 401 Unauthorized if authentication fails.
    """
    if not settings.app.api_key_required:
        logger.debug("auth.skipped", extra={"reason": "auth_required_false"})
        return

    try:
        validate_api_key(x_api_key, service)
    except AuthenticationAppError as exc:
        logger.warning(
            "auth.missing_key" if exc.code == "missing_api_key" else "auth.invalid_key",
            extra={
                "reason": exc.code,
                "api_key_present": bool(x_api_key),
                "api_key_hash": hash_identifier(x_api_key) if x_api_key else None,
            },
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=exc.message,
        ) from exc

    logger.debug(
        "auth.success",
        extra={"api_key_hash": hash_identifier(x_api_key) if x_api_key else None},
    )
