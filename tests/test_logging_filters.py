"""Tests for sensitive data filtering in logs."""

from __future__ import annotations

import json
import logging
from io import StringIO

import pytest

from app.core.logging import (
    JsonFormatter,
    RequestIdFilter,
    SensitiveDataFilter,
    clear_request_id,
    hash_identifier,
    set_request_id,
)


@pytest.fixture
def capture() -> tuple[logging.Logger, StringIO]:
    logger = logging.getLogger("test_redaction")
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    return logger, stream


def test_sensitive_filter_redacts_api_keys(capture):
    logger, stream = capture

    logger.info(
        "api_key.created",
        extra={
            "api_key": "4f2a9c-secret",
            "x-api-key": "another-secret",
            "api_key_id": 3,
        },
    )

    output = stream.getvalue()
    assert "4f2a9c-secret" not in output
    assert "another-secret" not in output
    assert "[REDACTED]" in output
    assert json.loads(output)["api_key_id"] == 3


def test_sensitive_filter_allows_rate_limit_fields(capture):
    logger, stream = capture

    logger.warning(
        "rate_limit.rejected",
        extra={
            "decision": "rejected_address",
            "address_hash": hash_identifier("1.2.3.4"),
            "limit": 1000,
            "window_s": 86400,
        },
    )

    payload = json.loads(stream.getvalue())
    assert payload["message"] == "rate_limit.rejected"
    assert payload["level"] == "warning"
    assert payload["decision"] == "rejected_address"
    assert payload["limit"] == 1000
    assert "1.2.3.4" not in stream.getvalue()


def test_sensitive_filter_redacts_nested_dicts(capture):
    logger, stream = capture

    logger.info(
        "request.headers",
        extra={"headers": {"X-API-Key": "secret-key", "user-agent": "pytest"}},
    )

    output = stream.getvalue()
    assert "secret-key" not in output
    assert "pytest" in output


def test_request_id_attached_from_context(capture):
    logger, stream = capture
    set_request_id("req-abc")
    try:
        logger.info("with_request_id")
    finally:
        clear_request_id()

    assert json.loads(stream.getvalue())["request_id"] == "req-abc"


def test_hash_identifier_is_stable_and_short():
    assert hash_identifier("1.2.3.4") == hash_identifier("1.2.3.4")
    assert hash_identifier("1.2.3.4") != hash_identifier("1.2.3.5")
    assert len(hash_identifier("anything")) == 16
