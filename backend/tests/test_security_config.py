"""Tests for startup security gates, token handling, rate limiting and trace-aware logging."""
from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import pytest
from fastapi import HTTPException

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from auth.utils import create_token, decode_token, hash_password, normalize_email, verify_password  # noqa: E402
from config import Settings  # noqa: E402
from services.rate_limit_service import InMemoryRateLimiter, RateLimitRule  # noqa: E402
from services.request_context import (  # noqa: E402
    add_request_db_query,
    consume_request_scope,
    normalize_trace_id,
    set_request_user,
    start_request_scope,
)
from utils.logging_utils import JsonFormatter, TraceIdFilter  # noqa: E402


def test_production_rejects_default_secret():
    settings = Settings(ENVIRONMENT="production", AUTH_COOKIE_SECURE=True)
    with pytest.raises(RuntimeError, match="SECRET_KEY"):
        settings.validate_security_configuration()


def test_production_rejects_insecure_cookie():
    settings = Settings(ENVIRONMENT="production", SECRET_KEY="x" * 40, AUTH_COOKIE_SECURE=False)
    with pytest.raises(RuntimeError, match="AUTH_COOKIE_SECURE"):
        settings.validate_security_configuration()


def test_only_production_enforces_cookie_security():
    assert Settings(ENVIRONMENT="staging", AUTH_COOKIE_SECURE=False).security_problems() == []
    assert Settings(ENVIRONMENT="test").security_problems() == []
    assert len(Settings(ENVIRONMENT="prod").security_problems()) == 2


def test_production_accepts_hardened_settings():
    settings = Settings(ENVIRONMENT="production", SECRET_KEY="x" * 40, AUTH_COOKIE_SECURE=True)
    settings.validate_security_configuration()


def test_development_skips_security_gate():
    Settings(ENVIRONMENT="development").validate_security_configuration()


def test_token_round_trip_and_rejection():
    token = create_token(7, "someone@example.com")
    payload = decode_token(token)
    assert payload["sub"] == "7"
    assert payload["email"] == "someone@example.com"

    with pytest.raises(HTTPException) as exc:
        decode_token(token + "tampered")
    assert exc.value.status_code == 401

    expired = create_token(7, "someone@example.com", expiry_hours_override=-1)
    with pytest.raises(HTTPException) as exc:
        decode_token(expired)
    assert exc.value.detail == "Token expired"


def test_password_hashing_and_email_normalization():
    hashed = hash_password("secret123")
    assert verify_password("secret123", hashed)
    assert not verify_password("secret124", hashed)
    assert normalize_email("  Mixed@Case.COM ") == "mixed@case.com"


def test_rate_limiter_blocks_after_limit():
    limiter = InMemoryRateLimiter()
    rule = RateLimitRule(endpoint="/api/auth/login", limit=3, window_seconds=60)
    results = [limiter.hit("k", rule) for _ in range(4)]

    assert results[:3] == [0, 0, 0]
    assert 1 <= results[3] <= 60
    assert limiter.hit("other", rule) == 0

    limiter.reset()
    assert limiter.hit("k", rule) == 0


def test_normalize_trace_id():
    assert normalize_trace_id("abc-123") == "abc-123"
    assert normalize_trace_id("  padded  ") == "padded"
    assert len(normalize_trace_id(None)) == 36
    assert normalize_trace_id("x" * 200) != "x" * 200
    assert normalize_trace_id("bad\nvalue") != "bad\nvalue"


def test_request_scope_tracks_user_and_queries():
    start_request_scope("/api/profile", "GET", trace_id="scope-1")
    set_request_user(42)
    add_request_db_query(1.5)
    add_request_db_query(2.5)

    scope = consume_request_scope()

    assert scope.trace_id == "scope-1"
    assert scope.user_id == 42
    assert scope.db_query_count == 2
    assert scope.db_query_time_ms == pytest.approx(4.0)
    assert consume_request_scope() is None


def test_json_formatter_includes_trace_id_and_extras():
    record = logging.LogRecord("prayers.test", logging.INFO, __file__, 1, "hello %s", ("world",), None)
    record.user_id = 9

    start_request_scope("/api/health", "GET", trace_id="trace-xyz")
    try:
        TraceIdFilter().filter(record)
    finally:
        consume_request_scope()

    payload = json.loads(JsonFormatter().format(record))
    assert payload["message"] == "hello world"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "prayers.test"
    assert payload["trace_id"] == "trace-xyz"
    assert payload["user_id"] == 9
