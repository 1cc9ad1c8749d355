"""Storage adapters for image and API key records.

Routes and services depend on the repository interfaces; the in-memory
implementations back the service until a relational backend is wired in.
"""

from app.adapters.storage.base import (
    AbstractApiKeyRepository,
    AbstractImageRepository,
    ApiKeyRecord,
    ImageRecord,
)
from app.adapters.storage.in_memory import InMemoryApiKeyRepository, InMemoryImageRepository

__all__ = [
    "AbstractApiKeyRepository",
    "AbstractImageRepository",
    "ApiKeyRecord",
    "ImageRecord",
    "InMemoryApiKeyRepository",
    "InMemoryImageRepository",
]
