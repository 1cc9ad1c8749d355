"""Thread-safe in-memory repositories."""

from __future__ import annotations

import itertools
import json
import logging
import threading
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable

from app.adapters.storage.base import (
    AbstractApiKeyRepository,
    AbstractImageRepository,
    ApiKeyRecord,
    ImageRecord,
)
from app.core.errors import ValidationAppError

logger = logging.getLogger(__name__)


class InMemoryImageRepository(AbstractImageRepository):
    """Image records held in a dict keyed by id."""

    def __init__(self, images: Iterable[ImageRecord] = ()) -> None:
        self._lock = threading.RLock()
        self._images: dict[int, ImageRecord] = {image.id: image for image in images}

    @classmethod
    def from_json_file(cls, path: str | Path) -> "InMemoryImageRepository":
        """Load image records from a JSON array of objects.

        Args:
            path: File containing ``[{"id": 1, "species_name": ..., ...}]``.

        Raises:
            ValidationAppError: If the file cannot be read or a record is malformed.
        """

        file_path = Path(path)
        try:
            raw: Any = json.loads(file_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise ValidationAppError(
                code="images_seed_unreadable",
                message=f"Could not load image seed file: {file_path.name}",
            ) from exc

        if not isinstance(raw, list):
            raise ValidationAppError(
                code="images_seed_invalid",
                message="Image seed file must contain a JSON array",
            )

        try:
            images = [
                ImageRecord(
                    id=int(item["id"]),
                    species_name=str(item["species_name"]),
                    gps_long=float(item["gps_long"]),
                    gps_lat=float(item["gps_lat"]),
                    image_path=str(item["image_path"]),
                    user_id=int(item["user_id"]),
                )
                for item in raw
            ]
        except (KeyError, TypeError, ValueError) as exc:
            raise ValidationAppError(
                code="images_seed_invalid",
                message=f"Malformed image record in seed file: {exc}",
            ) from exc

        logger.info("images.seed_loaded", extra={"image_count": len(images)})
        return cls(images)

    def add(self, image: ImageRecord) -> None:
        with self._lock:
            self._images[image.id] = image

    def list_images(self) -> list[ImageRecord]:
        with self._lock:
            return [self._images[image_id] for image_id in sorted(self._images)]

    def get_image(self, image_id: int) -> ImageRecord | None:
        with self._lock:
            return self._images.get(image_id)


class InMemoryApiKeyRepository(AbstractApiKeyRepository):
    """API keys held in a dict keyed by key value.

    Returned records are copies, so callers cannot mutate stored state.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._by_key: dict[str, ApiKeyRecord] = {}
        self._ids = itertools.count(1)

    def create(
        self,
        *,
        key: str,
        name: str,
        created_at: datetime,
        expires_at: datetime,
        created_ip: str | None,
    ) -> ApiKeyRecord:
        with self._lock:
            if key in self._by_key:
                raise ValidationAppError(code="api_key_conflict", message="API key already exists")
            record = ApiKeyRecord(
                id=next(self._ids),
                key=key,
                name=name,
                created_at=created_at,
                expires_at=expires_at,
                created_ip=created_ip,
            )
            self._by_key[key] = record
            return replace(record)

    def get_by_key(self, key: str) -> ApiKeyRecord | None:
        with self._lock:
            record = self._by_key.get(key)
            return replace(record) if record else None

    def list_keys(self) -> list[ApiKeyRecord]:
        with self._lock:
            records = sorted(
                self._by_key.values(),
                key=lambda r: (r.created_at, r.id),
                reverse=True,
            )
            return [replace(r) for r in records]

    def touch(self, key: str, used_at: datetime) -> None:
        with self._lock:
            record = self._by_key.get(key)
            if record is not None:
                record.last_used = used_at

    def revoke(self, key_id: int) -> bool:
        with self._lock:
            for record in self._by_key.values():
                if record.id == key_id:
                    record.revoked = True
                    return True
            return False
