"""Shared test fixtures and configuration for the Herald test suite.

This module provides reusable fixtures for common test scenarios including:
- LLM completion mocking
- Google API and telephony configuration objects
- httpx.MockTransport-backed Google clients
- A fixed reference clock
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import AsyncMock, Mock

import httpx
import pytest

from herald.assistant.config import GoogleConfig, LLMConfig, TelephonyConfig
from herald.assistant.credentials import Credential
from herald.assistant.google_client import GoogleApiClient

IST = timezone(timedelta(hours=5, minutes=30))

# ============================================================================
# Pytest Configuration
# ============================================================================


@pytest.fixture(scope="session")
def anyio_backend():
    """Configure anyio backend for async tests."""
    return "asyncio"


# ============================================================================
# Logging Fixtures
# ============================================================================


@pytest.fixture
def mock_logger():
    """Create a mock logger for testing.

    Returns a Mock with spec=logging.Logger to ensure only valid
    logger methods can be called.
    """
    return Mock(spec=logging.Logger)


# ============================================================================
# Clock Fixtures
# ============================================================================


@pytest.fixture
def now():
    """Fixed reference time: Saturday 2026-01-17 10:00 at +05:30."""
    return datetime(2026, 1, 17, 10, 0, tzinfo=IST)


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def make_llm_config():
    """Factory fixture for creating LLM configs with custom overrides.

    Usage:
        config = make_llm_config(provider="gemini", gemini_api_key="key")
    """

    def _create_config(**overrides: Any) -> LLMConfig:
        defaults: dict[str, Any] = {
            "provider": "openai",
            "openai_model": "gpt-4",
            "openai_api_key": "test_key",
            "openai_base_url": "https://api.openai.com/v1",
            "openai_timeout": 30,
            "gemini_model": "gemini-pro",
            "gemini_api_key": None,
            "gemini_base_url": "https://generativelanguage.googleapis.com/v1beta",
            "gemini_timeout": 30,
            "openrouter_model": "openai/gpt-3.5-turbo",
            "openrouter_api_key": None,
            "openrouter_base_url": "https://openrouter.ai/api/v1",
            "openrouter_timeout": 45,
            "openrouter_referer": "http://localhost:4000",
            "openrouter_title": None,
        }
        defaults.update(overrides)
        return LLMConfig(**defaults)

    return _create_config


@pytest.fixture
def google_config():
    """Google API configuration pointing at the public endpoints."""
    return GoogleConfig(
        gmail_base_url="https://gmail.googleapis.com/gmail/v1",
        calendar_base_url="https://www.googleapis.com/calendar/v3",
        calendar_id="primary",
        timeout=5,
        event_timezone="Asia/Kolkata",
    )


@pytest.fixture
def make_telephony_config():
    """Factory fixture for telephony configs with custom overrides."""

    def _create_config(**overrides: Any) -> TelephonyConfig:
        defaults: dict[str, Any] = {
            "provider": "twilio",
            "twilio_account_sid": "AC123",
            "twilio_auth_token": "twilio_token",
            "twilio_phone_number": "+15550001111",
            "twilio_base_url": "https://api.twilio.com",
            "exotel_account_sid": "exo_sid",
            "exotel_api_key": "exo_key",
            "exotel_api_token": "exo_token",
            "exotel_virtual_number": "08012345678",
            "exotel_base_url": "https://api.exotel.com/v1",
            "backend_url": "https://herald.example.com",
            "timeout": 5,
        }
        defaults.update(overrides)
        return TelephonyConfig(**defaults)

    return _create_config


@pytest.fixture
def credential():
    """Credential for a linked Google account."""
    return Credential(access_token="ya29.test-token", email="owner@example.com")


# ============================================================================
# LLM Fixtures
# ============================================================================


@pytest.fixture
def mock_completion():
    """Completion provider whose complete() is an AsyncMock."""
    completion = Mock()
    completion.complete = AsyncMock(return_value="")
    return completion


# ============================================================================
# Google API Fixtures
# ============================================================================


class RecordingHandler:
    """httpx.MockTransport handler that records requests and replays routes.

    Routes map "METHOD path-suffix" to a JSON payload, an httpx.Response, or
    a callable taking the request.
    """

    def __init__(self, routes: dict[str, Any]) -> None:
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = f"{request.method} {request.url.path}"
        for route, reply in self.routes.items():
            method, _, suffix = route.partition(" ")
            if request.method == method and request.url.path.endswith(suffix):
                if callable(reply) and not isinstance(reply, httpx.Response):
                    reply = reply(request)
                if isinstance(reply, httpx.Response):
                    return reply
                return httpx.Response(200, json=reply)
        return httpx.Response(404, json={"error": {"message": f"no route for {key}"}})

    def bodies(self, method: str, suffix: str) -> list[dict[str, Any]]:
        return [
            json.loads(request.content)
            for request in self.requests
            if request.method == method and request.url.path.endswith(suffix) and request.content
        ]


@pytest.fixture
def google_api(google_config) -> Callable[[dict[str, Any]], tuple[RecordingHandler, Callable[[str], GoogleApiClient]]]:
    """Build (handler, client_factory) for agents under test.

    Usage:
        handler, factory = google_api({"POST /messages/send": {"id": "m1"}})
    """

    def _build(routes: dict[str, Any]) -> tuple[RecordingHandler, Callable[[str], GoogleApiClient]]:
        handler = RecordingHandler(routes)
        transport = httpx.MockTransport(handler)

        def factory(token: str) -> GoogleApiClient:
            return GoogleApiClient(google_config, token, transport=transport)

        return handler, factory

    return _build
