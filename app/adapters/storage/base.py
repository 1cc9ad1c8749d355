"""Repository interfaces and record types."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class ImageRecord:
    """A catalogued image with its capture location."""

    id: int
    species_name: str
    gps_long: float
    gps_lat: float
    image_path: str
    user_id: int


@dataclass
class ApiKeyRecord:
    """An issued API key.

    Attributes:
        id: Store-assigned identifier.
        key: Opaque key value sent by clients in X-API-Key.
        name: Human-readable label supplied at creation.
        created_at: Issue time (UTC).
        expires_at: Time after which the key is no longer valid (UTC).
        last_used: Last successful validation (UTC), if any.
        revoked: Whether the key was revoked.
        created_ip: Client address that requested the key, if known.
    """

    id: int
    key: str
    name: str
    created_at: datetime
    expires_at: datetime
    last_used: datetime | None = None
    revoked: bool = False
    created_ip: str | None = None


class AbstractImageRepository(ABC):
    """Read access to image records."""

    @abstractmethod
    def list_images(self) -> list[ImageRecord]:
        raise NotImplementedError

    @abstractmethod
    def get_image(self, image_id: int) -> ImageRecord | None:
        raise NotImplementedError


class AbstractApiKeyRepository(ABC):
    """Persistence for API keys."""

    @abstractmethod
    def create(
        self,
        *,
        key: str,
        name: str,
        created_at: datetime,
        expires_at: datetime,
        created_ip: str | None,
    ) -> ApiKeyRecord:
        """Insert a new key and return the stored record (with its id)."""
        raise NotImplementedError

    @abstractmethod
    def get_by_key(self, key: str) -> ApiKeyRecord | None:
        raise NotImplementedError

    @abstractmethod
    def list_keys(self) -> list[ApiKeyRecord]:
        """Return all keys, newest first."""
        raise NotImplementedError

    @abstractmethod
    def touch(self, key: str, used_at: datetime) -> None:
        """Record a successful use of ``key``."""
        raise NotImplementedError

    @abstractmethod
    def revoke(self, key_id: int) -> bool:
        """Mark key ``key_id`` revoked.

        Returns:
            False when no key with that id exists.
        """
        raise NotImplementedError
