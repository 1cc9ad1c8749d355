"""Rate limiter interfaces.

The HTTP layer depends on this abstraction (not the concrete implementation)
so the storage backend can be swapped later with minimal changes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class RatePolicy:
    """Fixed-window policy: at most ``limit`` admissions per ``window_seconds``.

    Attributes:
        limit: Max admitted requests per window.
        window_seconds: Window length in seconds.

    Raises:
        ValueError: If limit or window_seconds are not positive.
    """

    limit: int
    window_seconds: float

    def __post_init__(self) -> None:
        if self.limit < 1:
            raise ValueError("limit must be >= 1")
        if self.window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")


class RateLimitDecision(str, Enum):
    """Outcome of evaluating one request against both policies."""

    ADMITTED = "admitted"
    REJECTED_ADDRESS = "rejected_address"
    REJECTED_KEY = "rejected_key"


class AbstractRateLimiter(ABC):
    """Interface for two-policy (API key + client address) rate limiters."""

    key_policy: RatePolicy
    address_policy: RatePolicy

    @abstractmethod
    def evaluate_request(self, client_address: str, api_key: str = "") -> RateLimitDecision:
        """Gate a request by client address first, then by API key if present.

        Args:
            client_address: Non-empty client address resolved by the HTTP layer.
            api_key: Raw X-API-Key header value, or "" when absent.

        Returns:
            RateLimitDecision for the request.
        """
        raise NotImplementedError

    @abstractmethod
    def start(self) -> None:
        """Start background eviction."""
        raise NotImplementedError

    @abstractmethod
    def stop(self) -> None:
        """Stop background eviction."""
        raise NotImplementedError
