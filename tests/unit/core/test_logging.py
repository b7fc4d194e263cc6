"""
Tests for logging middleware.
Tests PII masking, nested data and the request log events.
"""

import json
import logging
from unittest.mock import Mock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from core.middleware.logging import (
    StructuredFormatter,
    StructuredLoggingMiddleware,
    get_client_ip,
    is_sensitive_field,
    mask_headers,
    mask_pii,
    mask_sensitive_data,
    should_log_request,
)


class TestSensitiveFieldDetection:
    """Test sensitive field name detection."""

    @pytest.mark.parametrize("field_name,expected", [
        ("password", True),
        ("access_token", True),
        ("id_token", True),
        ("api_key", True),
        ("apiKey", True),
        ("client_secret", True),
        ("Authorization", True),
        ("cookie", True),
        ("session_id", True),
        ("private_key", True),
        ("content", True),
        ("message", True),
        ("ciphertext", True),
        ("encrypted_key", True),
        # Non-sensitive fields
        ("email_verified", False),
        ("full_name", False),
        ("id", False),
        ("user_id", False),
        ("chat_id", False),
        ("status", False),
        ("message_ids", False),
    ])
    def test_sensitive_field_patterns(self, field_name, expected):
        assert is_sensitive_field(field_name) == expected


class TestDataMasking:
    def test_pii_in_free_text(self):
        masked = mask_pii("contact jane@example.com or +14155550123")

        assert "jane@example.com" not in masked
        assert "[EMAIL]" in masked
        assert "[PHONE]" in masked

    def test_nested_structures(self):
        data = {
            "id_token": "eyJ...",
            "profile": {"full_name": "Jane", "phone": "+14155550123"},
            "messages": [{"content": "secret plans", "chat_id": 3}],
        }

        masked = mask_sensitive_data(data)

        assert masked["id_token"] == "[REDACTED]"
        assert masked["profile"]["full_name"] == "Jane"
        assert masked["profile"]["phone"] == "[PHONE]"
        assert masked["messages"][0]["content"] == "[REDACTED]"
        assert masked["messages"][0]["chat_id"] == 3

    def test_max_depth(self):
        data = {"a": {"a": {"a": "deep"}}}

        assert mask_sensitive_data(data, max_depth=1) == {"a": {"a": "[MAX_DEPTH_EXCEEDED]"}}

    def test_headers_keep_scheme_only(self):
        masked = mask_headers({
            "Authorization": "Bearer abc.def.ghi",
            "Cookie": "sid=1",
            "User-Agent": "pytest",
        })

        assert masked == {
            "Authorization": "Bearer [REDACTED]",
            "Cookie": "[REDACTED]",
            "User-Agent": "pytest",
        }


class TestRequestHelpers:
    @pytest.mark.parametrize("path,expected", [
        ("/health", False),
        ("/ready", False),
        ("/api/v1/jobs", True),
    ])
    def test_should_log_request(self, path, expected):
        assert should_log_request(path) is expected

    def test_client_ip_is_masked(self):
        request = Mock()
        request.headers = {"x-forwarded-for": "203.0.113.9, 10.0.0.1"}

        assert get_client_ip(request) == "203.0.113.xxx"

    def test_non_ipv4_client(self):
        request = Mock()
        request.headers = {}
        request.client = None

        assert get_client_ip(request) == "unknown"


class TestStructuredLoggingMiddleware:
    def _app(self) -> FastAPI:
        app = FastAPI()
        app.add_middleware(StructuredLoggingMiddleware, log_request_body=True)

        @app.post("/echo")
        async def echo(payload: dict):
            return {"received": True}

        return app

    def test_request_id_is_echoed(self):
        client = TestClient(self._app())

        response = client.post("/echo", json={}, headers={"x-request-id": "req-123"})

        assert response.headers["x-request-id"] == "req-123"

    def test_body_is_masked_in_logs(self, caplog):
        client = TestClient(self._app())

        with caplog.at_level(logging.INFO, logger="core.middleware.logging"):
            client.post("/echo", json={"id_token": "top-secret", "email": "a@b.com"})

        started = [
            json.loads(r.getMessage())
            for r in caplog.records
            if '"request_started"' in r.getMessage()
        ]
        assert started
        assert started[0]["body"] == {"id_token": "[REDACTED]", "email": "[EMAIL]"}
        assert "top-secret" not in caplog.text


class TestStructuredFormatter:
    def test_json_output(self):
        record = logging.LogRecord("app", logging.WARNING, __file__, 1, "hello %s", ("there",), None)
        record.request_id = "r-1"

        output = json.loads(StructuredFormatter().format(record))

        assert output["level"] == "WARNING"
        assert output["message"] == "hello there"
        assert output["request_id"] == "r-1"
