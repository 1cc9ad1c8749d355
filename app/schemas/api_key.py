"""Pydantic schemas for API key management."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class CreateApiKeyRequest(BaseModel):
    """Body of ``POST /api/keys``."""

    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Label identifying who or what the key is for.",
    )


class ApiKeyResponse(BaseModel):
    """An issued API key as returned to clients."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    key: str = Field(..., description="Key value to send in the X-API-Key header.")
    name: str
    created_at: datetime
    expires_at: datetime
    last_used: datetime | None = None
    revoked: bool = False
    created_ip: str | None = Field(
        default=None,
        description="Client address that requested the key, if known.",
    )
