"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It sets environment defaults before any ``app`` import builds settings.
"""

import os

# CRITICAL: Set these before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("APP_API_KEY_REQUIRED", "true")
os.environ.setdefault("RATE_LIMIT_ENABLED", "true")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.adapters.rate_limit.base import RatePolicy
from app.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from app.adapters.storage.base import ImageRecord
from app.adapters.storage.in_memory import InMemoryApiKeyRepository, InMemoryImageRepository
from app.core.app_factory import create_app


class FakeClock:
    """Deterministic clock used to drive window expiry."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


SAMPLE_IMAGES = [
    ImageRecord(
        id=1,
        species_name="Quercus robur",
        gps_long=-0.1276,
        gps_lat=51.5072,
        image_path="images/oak.jpg",
        user_id=7,
    ),
    ImageRecord(
        id=2,
        species_name="Vulpes vulpes",
        gps_long=2.3522,
        gps_lat=48.8566,
        image_path="images/fox.jpg",
        user_id=9,
    ),
]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_limiter(clock: FakeClock):
    """Factory for limiters on the fake clock; stops every limiter it built."""

    built: list[InMemoryFixedWindowRateLimiter] = []

    def _make(
        *,
        key_limit: int = 100,
        key_window: float = 3600,
        address_limit: int = 1000,
        address_window: float = 86400,
        cleanup_interval: float = 600,
        autostart: bool = False,
    ) -> InMemoryFixedWindowRateLimiter:
        limiter = InMemoryFixedWindowRateLimiter(
            key_policy=RatePolicy(limit=key_limit, window_seconds=key_window),
            address_policy=RatePolicy(limit=address_limit, window_seconds=address_window),
            cleanup_interval_seconds=cleanup_interval,
            clock=clock,
            autostart=autostart,
        )
        built.append(limiter)
        return limiter

    yield _make

    for limiter in built:
        limiter.stop()


@pytest.fixture
def make_app(make_limiter):
    """Build an isolated app with sample images and an empty key store."""

    def _make(**limiter_kwargs) -> FastAPI:
        return create_app(
            rate_limiter=make_limiter(**limiter_kwargs),
            image_repository=InMemoryImageRepository(SAMPLE_IMAGES),
            api_key_repository=InMemoryApiKeyRepository(),
        )

    return _make


@pytest.fixture
def client(make_app) -> TestClient:
    return TestClient(make_app())


@pytest.fixture
def issued_key(client: TestClient) -> str:
    """Issue a key through the API and return its value."""

    response = client.post("/api/keys", json={"name": "fixture"})
    assert response.status_code == 201
    return response.json()["key"]
