"""
Tests for the error taxonomy.

Covers status classification, error body parsing in its various wire forms and Retry-After
handling.
"""

from datetime import datetime, timezone

import pytest

from social.graze.atkit.errors import (
    AuthenticationError,
    EmptyServiceURLError,
    ErrorKind,
    MissingActiveSessionError,
    TransportError,
    XRPCError,
    kind_for_status,
    parse_error_body,
    parse_retry_after,
)


class TestKindForStatus:
    """Test mapping HTTP status codes to error kinds."""

    @pytest.mark.parametrize(
        "status,kind",
        [
            (400, ErrorKind.bad_request),
            (401, ErrorKind.authentication_failed),
            (404, ErrorKind.not_found),
            (413, ErrorKind.payload_too_large),
            (429, ErrorKind.rate_limited),
            (500, ErrorKind.server_error),
            (502, ErrorKind.bad_gateway),
            (503, ErrorKind.service_unavailable),
            (504, ErrorKind.gateway_timeout),
        ],
    )
    def test_known_statuses(self, status, kind):
        assert kind_for_status(status) == kind

    def test_unmapped_status_is_unknown(self):
        assert kind_for_status(418) == ErrorKind.unknown


class TestRetryable:
    """Only gateway and transport failures are transient."""

    @pytest.mark.parametrize("status", [502, 503, 504])
    def test_gateway_errors_are_retryable(self, status):
        assert XRPCError.from_response(status, {}, None).retryable

    @pytest.mark.parametrize("status", [400, 401, 404, 429, 500])
    def test_other_errors_are_not_retryable(self, status):
        assert not XRPCError.from_response(status, {}, None).retryable

    def test_transport_is_retryable(self):
        assert TransportError("connection reset").retryable

    def test_prepare_and_auth_errors_are_not_retryable(self):
        assert not EmptyServiceURLError("empty").retryable
        assert not MissingActiveSessionError("none").retryable
        assert AuthenticationError("expired").kind == ErrorKind.authentication_failed


class TestParseErrorBody:
    """Test extracting the error short-code and message."""

    def test_dict_body(self):
        assert parse_error_body({"error": "InvalidRequest", "message": "bad"}) == (
            "InvalidRequest",
            "bad",
        )

    def test_bytes_body(self):
        assert parse_error_body(b'{"error":"ExpiredToken"}') == ("ExpiredToken", None)

    def test_plain_text_body(self):
        assert parse_error_body("Bad Gateway") == (None, "Bad Gateway")

    def test_non_string_fields_ignored(self):
        assert parse_error_body({"error": 5, "message": ["x"]}) == (None, None)

    def test_none_body(self):
        assert parse_error_body(None) == (None, None)


class TestRetryAfter:
    """Test Retry-After parsing for rate-limited responses."""

    def test_delta_seconds(self):
        error = XRPCError.from_response(429, {"Retry-After": "30"}, None)
        assert error.kind == ErrorKind.rate_limited
        assert error.retry_after == 30.0

    def test_http_date(self):
        now = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        headers = {"Retry-After": "Mon, 01 Jan 2024 12:00:45 GMT"}
        assert parse_retry_after(headers, now) == 45.0

    def test_ratelimit_reset_fallback(self):
        now = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        headers = {"ratelimit-reset": str(int(now.timestamp()) + 10)}
        assert parse_retry_after(headers, now) == 10.0

    def test_missing_header(self):
        assert parse_retry_after({}) is None

    def test_only_parsed_for_429(self):
        error = XRPCError.from_response(503, {"Retry-After": "30"}, None)
        assert error.retry_after is None


class TestXRPCError:
    """Test XRPCError construction from responses."""

    def test_www_authenticate_kept_for_401(self):
        error = XRPCError.from_response(
            401,
            {"WWW-Authenticate": 'Bearer error="invalid_token"'},
            {"error": "ExpiredToken", "message": "Token has expired"},
        )
        assert error.www_authenticate == 'Bearer error="invalid_token"'
        assert error.token_rejected
        assert "ExpiredToken" in str(error)

    def test_headers_and_body_kept(self):
        error = XRPCError.from_response(404, {"X-Test": "1"}, {"error": "NotFound"})
        assert error.headers == {"X-Test": "1"}
        assert error.body == {"error": "NotFound"}
        assert error.kind == ErrorKind.not_found
