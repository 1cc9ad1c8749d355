"""API key issuance, validation and revocation."""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Callable

from app.adapters.storage.base import AbstractApiKeyRepository, ApiKeyRecord
from app.core.errors import NotFoundAppError, ValidationAppError
from app.core.logging import hash_identifier

logger = logging.getLogger(__name__)

KEY_BYTES = 32
DEFAULT_KEY_TTL = timedelta(days=90)
MAX_NAME_LENGTH = 100


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_key_value() -> str:
    """Return a new opaque key: 32 random bytes as 64 hex characters."""

    return secrets.token_hex(KEY_BYTES)


class ApiKeyService:
    """Business rules for API keys on top of a repository.

    A key is valid when it exists, is not revoked and has not expired.
    """

    def __init__(
        self,
        repository: AbstractApiKeyRepository,
        *,
        key_ttl: timedelta = DEFAULT_KEY_TTL,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._repository = repository
        self._key_ttl = key_ttl
        self._clock = clock

    def generate(self, name: str, ip_address: str | None = None) -> ApiKeyRecord:
        """Issue a new key.

        Args:
            name: Label for the key; surrounding whitespace is stripped.
            ip_address: Client address of the requester, stored for auditing.

        Raises:
            ValidationAppError: If the name is empty or too long.
        """

        clean_name = name.strip()
        if not clean_name:
            raise ValidationAppError(code="api_key_name_required", message="Key name is required")
        if len(clean_name) > MAX_NAME_LENGTH:
            raise ValidationAppError(
                code="api_key_name_too_long",
                message=f"Key name must be at most {MAX_NAME_LENGTH} characters",
            )

        now = self._clock()
        record = self._repository.create(
            key=generate_key_value(),
            name=clean_name,
            created_at=now,
            expires_at=now + self._key_ttl,
            created_ip=ip_address,
        )
        logger.info(
            "api_key.created",
            extra={"api_key_id": record.id, "api_key_hash": hash_identifier(record.key)},
        )
        return record

    def validate(self, key: str) -> bool:
        """Check a key and record its use when valid."""

        record = self._repository.get_by_key(key)
        if record is None:
            reason = "unknown"
        elif record.revoked:
            reason = "revoked"
        elif self._clock() > record.expires_at:
            reason = "expired"
        else:
            self._repository.touch(key, self._clock())
            return True

        logger.info(
            "api_key.rejected",
            extra={"reason": reason, "api_key_hash": hash_identifier(key)},
        )
        return False

    def list_keys(self) -> list[ApiKeyRecord]:
        return self._repository.list_keys()

    def revoke(self, key_id: int) -> None:
        """Revoke key ``key_id``.

        Raises:
            NotFoundAppError: If no such key exists.
        """

        if not self._repository.revoke(key_id):
            raise NotFoundAppError(
                code="api_key_not_found",
                message="API key not found",
                details={"resource_id": key_id},
            )
        logger.info("api_key.revoked", extra={"api_key_id": key_id})
