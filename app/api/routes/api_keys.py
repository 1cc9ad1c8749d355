from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response, status

from app.core.auth import get_api_key_service
from app.core.rate_limit import resolve_client_address
from app.schemas.api_key import ApiKeyResponse, CreateApiKeyRequest
from app.services.api_key_service import ApiKeyService

router = APIRouter(prefix="/api/keys", tags=["API Keys"])

KeyService = Annotated[ApiKeyService, Depends(get_api_key_service)]


@router.post("", response_model=ApiKeyResponse, status_code=status.HTTP_201_CREATED)
async def create_api_key(
    body: CreateApiKeyRequest,
    request: Request,
    service: KeyService,
) -> ApiKeyResponse:
    """Issue a new API key valid for the configured number of days.

    The requesting client address is stored with the key.
    """

    record = service.generate(body.name, resolve_client_address(request))
    return ApiKeyResponse.model_validate(record)


@router.get("", response_model=list[ApiKeyResponse])
async def list_api_keys(service: KeyService) -> list[ApiKeyResponse]:
    """List all issued keys, newest first."""

    return [ApiKeyResponse.model_validate(record) for record in service.list_keys()]


@router.delete("/{key_id}", status_code=status.HTTP_204_NO_CONTENT)
async def revoke_api_key(key_id: int, service: KeyService) -> Response:
    """Revoke a key. Returns 404 when the key does not exist."""

    service.revoke(key_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
