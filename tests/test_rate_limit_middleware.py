"""HTTP-level tests for the rate limit gate."""

from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from app.adapters.rate_limit.base import RatePolicy
from app.core.rate_limit import (
    build_rate_limiter,
    describe_policy,
    describe_window,
    resolve_client_address,
)
from app.core.config import RateLimitSettings


def _forwarded(address: str, **extra: str) -> dict[str, str]:
    return {"X-Forwarded-For": address, **extra}


class TestGate:
    def test_key_window_scenario_over_http(self, make_app, clock) -> None:
        app = make_app(key_limit=2, key_window=1)
        client = TestClient(app)
        headers = _forwarded("10.0.0.1", **{"X-API-Key": "abc"})

        assert client.get("/health", headers=headers).status_code == 200
        clock.advance(0.1)
        assert client.get("/health", headers=headers).status_code == 200
        clock.advance(0.1)
        rejected = client.get("/health", headers=headers)
        assert rejected.status_code == 429
        assert rejected.json()["error"]["code"] == "rate_limit_api_key"
        clock.advance(0.9)
        assert client.get("/health", headers=headers).status_code == 200

    def test_address_limit_rejects_before_key_check(self, make_app) -> None:
        app = make_app(address_limit=1)
        client = TestClient(app)

        first = client.get("/health", headers=_forwarded("1.2.3.4", **{"X-API-Key": "key-1"}))
        second = client.get("/health", headers=_forwarded("1.2.3.4", **{"X-API-Key": "key-2"}))

        assert first.status_code == 200
        assert second.status_code == 429
        body = second.json()["error"]
        assert body["code"] == "rate_limit_address"
        assert body["message"] == (
            "Rate limit exceeded: Too many requests from this IP (1/day)"
        )
        assert app.state.rate_limiter.keys.snapshot("key-2") is None

    def test_default_messages_name_limit_and_window(self, make_app) -> None:
        app = make_app(key_limit=1)
        client = TestClient(app)
        headers = _forwarded("1.2.3.4", **{"X-API-Key": "k"})

        client.get("/health", headers=headers)
        response = client.get("/health", headers=headers)

        assert response.json()["error"]["message"] == (
            "Rate limit exceeded: Too many requests with this API key (1/hour)"
        )
        assert response.json()["error"]["details"] == {"limit": 1, "window_seconds": 3600}

    def test_rejection_sets_retry_after_and_request_id(self, make_app) -> None:
        client = TestClient(make_app(address_limit=1, address_window=90.5))

        client.get("/health", headers=_forwarded("1.2.3.4"))
        response = client.get(
            "/health",
            headers=_forwarded("1.2.3.4", **{"X-Request-ID": "req-429"}),
        )

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "91"
        assert response.headers["X-Request-ID"] == "req-429"
        assert response.json()["error"]["request_id"] == "req-429"

    def test_gate_runs_before_routing(self, make_app) -> None:
        client = TestClient(make_app(address_limit=1))

        assert client.get("/no-such-path", headers=_forwarded("1.2.3.4")).status_code == 404
        assert client.get("/no-such-path", headers=_forwarded("1.2.3.4")).status_code == 429

    def test_gate_runs_before_authentication(self, make_app) -> None:
        app = make_app(key_limit=1)
        client = TestClient(app)
        headers = _forwarded("1.2.3.4", **{"X-API-Key": "not-issued"})

        assert client.get("/images", headers=headers).status_code == 401
        assert client.get("/images", headers=headers).status_code == 429

    def test_addresses_are_limited_independently(self, make_app) -> None:
        client = TestClient(make_app(address_limit=1))

        assert client.get("/health", headers=_forwarded("1.1.1.1")).status_code == 200
        assert client.get("/health", headers=_forwarded("2.2.2.2")).status_code == 200
        assert client.get("/health", headers=_forwarded("1.1.1.1")).status_code == 429

    def test_disabled_gate_admits_everything(self, make_app) -> None:
        app = make_app(address_limit=1)
        client = TestClient(app)

        with patch("app.core.rate_limit.settings") as mock_settings:
            mock_settings.rate_limit.enabled = False
            for _ in range(3):
                assert client.get("/health", headers=_forwarded("1.2.3.4")).status_code == 200

        assert len(app.state.rate_limiter.addresses) == 0


class TestClientAddress:
    def _request(self, headers: dict[str, str], host: str | None = "9.9.9.9") -> MagicMock:
        request = MagicMock()
        request.headers = headers
        request.client = MagicMock(host=host) if host else None
        return request

    def test_prefers_forwarded_for(self) -> None:
        request = self._request({"X-Forwarded-For": "1.1.1.1", "X-Real-IP": "2.2.2.2"})
        assert resolve_client_address(request) == "1.1.1.1"

    def test_forwarded_for_used_verbatim(self) -> None:
        request = self._request({"X-Forwarded-For": " 1.1.1.1, 10.0.0.1 "})
        assert resolve_client_address(request) == " 1.1.1.1, 10.0.0.1 "

    def test_whitespace_only_forwarded_for_is_still_used(self) -> None:
        request = self._request({"X-Forwarded-For": " ", "X-Real-IP": "2.2.2.2"})
        assert resolve_client_address(request) == " "

    def test_empty_forwarded_for_falls_through(self) -> None:
        request = self._request({"X-Forwarded-For": "", "X-Real-IP": "2.2.2.2"})
        assert resolve_client_address(request) == "2.2.2.2"

    def test_falls_back_to_real_ip(self) -> None:
        request = self._request({"X-Real-IP": "2.2.2.2"})
        assert resolve_client_address(request) == "2.2.2.2"

    def test_falls_back_to_peer(self) -> None:
        assert resolve_client_address(self._request({})) == "9.9.9.9"

    def test_unknown_without_peer(self) -> None:
        assert resolve_client_address(self._request({}, host=None)) == "unknown"


class TestDescriptions:
    @pytest.mark.parametrize(
        ("seconds", "expected"),
        [
            (86400, "day"),
            (172800, "2 days"),
            (3600, "hour"),
            (7200, "2 hours"),
            (60, "minute"),
            (90, "90 seconds"),
            (1, "second"),
            (0.5, "0.5 seconds"),
        ],
    )
    def test_describe_window(self, seconds: float, expected: str) -> None:
        assert describe_window(seconds) == expected

    def test_describe_policy(self) -> None:
        assert describe_policy(RatePolicy(limit=1000, window_seconds=86400)) == "1000/day"
        assert describe_policy(RatePolicy(limit=100, window_seconds=3600)) == "100/hour"


def test_build_rate_limiter_from_settings() -> None:
    cfg = RateLimitSettings(
        key_limit=5,
        key_window_seconds=30,
        address_limit=50,
        address_window_seconds=300,
        cleanup_interval_seconds=15,
    )

    limiter = build_rate_limiter(cfg, autostart=False)
    try:
        assert limiter.key_policy == RatePolicy(limit=5, window_seconds=30)
        assert limiter.address_policy == RatePolicy(limit=50, window_seconds=300)
        assert limiter.cleanup_interval_seconds == 15
        assert limiter.running is False
    finally:
        limiter.stop()


def test_lifespan_starts_and_stops_eviction(make_app) -> None:
    app = make_app()
    limiter = app.state.rate_limiter
    assert limiter.running is False

    with TestClient(app) as client:
        assert limiter.running is True
        assert client.get("/health").status_code == 200

    assert limiter.running is False


def test_lifespan_can_run_twice_on_one_app(make_app) -> None:
    app = make_app()
    limiter = app.state.rate_limiter

    with TestClient(app) as client:
        assert client.get("/health").status_code == 200
    assert limiter.running is False

    with TestClient(app) as client:
        assert limiter.running is True
        assert client.get("/health").status_code == 200

    assert limiter.running is False
