"""Request gating by client address and API key.

This module wires the rate limiting adapter into the HTTP layer.

Design goals:
- Gate before routing: runs as HTTP middleware, so unknown paths and
  unauthenticated endpoints are throttled too.
- Explicit instance: the limiter is built by the app factory and stored on
  ``app.state``; nothing here holds a process-wide singleton.
- Safe logs: addresses and keys are logged as truncated hashes.

Strategy:
- Every request consumes one slot from its client address budget.
- Requests carrying X-API-Key also consume one slot from that key's budget,
  but only when the address check passed.
"""

from __future__ import annotations

import logging
import math

from fastapi import Request, Response

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitDecision, RatePolicy
from app.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from app.core.config import RateLimitSettings, settings
from app.core.errors import RateLimitAppError
from app.core.exception_handlers import build_error_response
from app.core.logging import hash_identifier

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-API-Key"
UNKNOWN_CLIENT_ADDRESS = "unknown"

_WINDOW_UNITS = (
    (86400, "day"),
    (3600, "hour"),
    (60, "minute"),
    (1, "second"),
)


def build_rate_limiter(
    rate_limit_settings: RateLimitSettings | None = None,
    *,
    autostart: bool = True,
) -> InMemoryFixedWindowRateLimiter:
    """Construct the limiter from settings.

    Args:
        rate_limit_settings: Limits and windows; defaults to global settings.
        autostart: Start the eviction thread immediately.
    """

    cfg = rate_limit_settings or settings.rate_limit
    return InMemoryFixedWindowRateLimiter(
        key_policy=RatePolicy(limit=cfg.key_limit, window_seconds=cfg.key_window_seconds),
        address_policy=RatePolicy(
            limit=cfg.address_limit, window_seconds=cfg.address_window_seconds
        ),
        cleanup_interval_seconds=cfg.cleanup_interval_seconds,
        autostart=autostart,
    )


def describe_window(window_seconds: float) -> str:
    """Render a window length for client messages.

    Examples:
        >>> describe_window(86400)
        'day'
        >>> describe_window(7200)
        '2 hours'
        >>> describe_window(1.5)
        '1.5 seconds'
    """

    for unit_seconds, unit_name in _WINDOW_UNITS:
        if window_seconds >= unit_seconds and window_seconds % unit_seconds == 0:
            count = int(window_seconds // unit_seconds)
            return unit_name if count == 1 else f"{count} {unit_name}s"
    return f"{window_seconds:g} seconds"


def describe_policy(policy: RatePolicy) -> str:
    """Render a policy as ``limit/window``, e.g. ``1000/day``."""

    return f"{policy.limit}/{describe_window(policy.window_seconds)}"


def resolve_client_address(request: Request) -> str:
    """Determine the client address used for per-address limits.

    Priority: X-Forwarded-For, X-Real-IP, then the socket peer. Header values
    are used verbatim; any non-empty value wins.
    """

    for header in ("X-Forwarded-For", "X-Real-IP"):
        value = request.headers.get(header, "")
        if value:
            return value

    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_CLIENT_ADDRESS


def rejection_error(decision: RateLimitDecision, limiter: AbstractRateLimiter) -> RateLimitAppError:
    """Build the client-facing error for a rejected decision."""

    if decision is RateLimitDecision.REJECTED_ADDRESS:
        policy = limiter.address_policy
        return RateLimitAppError(
            code="rate_limit_address",
            message=(
                "Rate limit exceeded: Too many requests from this IP "
                f"({describe_policy(policy)})"
            ),
            details={"limit": policy.limit, "window_seconds": policy.window_seconds},
        )

    policy = limiter.key_policy
    return RateLimitAppError(
        code="rate_limit_api_key",
        message=(
            "Rate limit exceeded: Too many requests with this API key "
            f"({describe_policy(policy)})"
        ),
        details={"limit": policy.limit, "window_seconds": policy.window_seconds},
    )


async def rate_limit_middleware(request: Request, call_next) -> Response:
    """HTTP middleware enforcing address and API key limits before routing.

    Reads the limiter from ``request.app.state.rate_limiter``. Rejections
    short-circuit with 429 and a Retry-After header set to the policy window.
    """

    limiter: AbstractRateLimiter | None = getattr(request.app.state, "rate_limiter", None)
    if limiter is None or not settings.rate_limit.enabled:
        return await call_next(request)

    client_address = resolve_client_address(request)
    api_key = request.headers.get(API_KEY_HEADER, "")

    decision = limiter.evaluate_request(client_address, api_key)
    if decision is RateLimitDecision.ADMITTED:
        return await call_next(request)

    error = rejection_error(decision, limiter)
    policy = (
        limiter.address_policy
        if decision is RateLimitDecision.REJECTED_ADDRESS
        else limiter.key_policy
    )

    logger.warning(
        "rate_limit.rejected",
        extra={
            "decision": decision.value,
            "address_hash": hash_identifier(client_address),
            "api_key_hash": hash_identifier(api_key) if api_key else None,
            "limit": policy.limit,
            "window_s": policy.window_seconds,
            "request_path": request.url.path,
        },
    )

    return build_error_response(
        error,
        headers={"Retry-After": str(math.ceil(policy.window_seconds))},
    )
