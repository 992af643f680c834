"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It sets TESTING so no .env file is loaded, and selects the in-process store
so no Redis server is needed.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["TESTING"] = "true"
os.environ["APP_ENV"] = "testing"

os.environ.setdefault("APP_RATE_LIMIT_BACKEND", "memory")
os.environ.setdefault("APP_RATE_LIMIT_FAILURE_MODE", "closed")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest  # noqa: E402

from ratelimit_service.core import rate_limit  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_limiter(monkeypatch: pytest.MonkeyPatch) -> None:
    """Give every test its own process-wide limiter (and empty in-memory store)."""
    monkeypatch.setattr(rate_limit, "_store", None)
    monkeypatch.setattr(rate_limit, "_limiters", {})
    monkeypatch.setattr(rate_limit, "_limiter_config", None)
    monkeypatch.setattr(rate_limit, "_retired_stores", [])
