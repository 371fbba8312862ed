"""Unit tests for the request pipeline.

Tests cover:
- Write-safety gate (nothing is sent when writes are disabled)
- Bearer, tenant, content and idempotency headers
- 401: one refresh and retry, then ReauthRequiredError
- Transport errors: retried for reads and keyed writes, never for unkeyed writes
- 5xx backoff, 429 waits via the limiter, day-limit 429s surface at once
- 400 validation message extraction and 404 mapping
- Local input validation (idempotency keys, filter literals, tenant id)
"""

from decimal import Decimal
from typing import Callable

import httpx
import pytest

from conftest import TENANT_ID, Server, build_pipeline, json_response
from ledgerlink.core.errors import (
    ApiError,
    NetworkError,
    NotFoundError,
    ParseError,
    RateLimitedError,
    ReauthRequiredError,
    ValidationError,
    WriteNotAllowedError,
)
from ledgerlink.services.pipeline import extract_validation_messages, validate_idempotency_key


def raising(exc_type: type) -> Callable[[httpx.Request], httpx.Response]:
    def handler(request: httpx.Request) -> httpx.Response:
        raise exc_type("simulated failure", request=request)
    return handler


OK = json_response(200, {"Invoices": []})


# =============================================================================
# Headers and success
# =============================================================================


class TestRequestShape:
    """Tests for what goes on the wire."""

    @pytest.mark.asyncio
    async def test_get_headers_and_query(self, sdk_settings, wall_clock, clock):
        """Test bearer, tenant and accept headers plus query encoding."""
        server = Server(OK)
        pipeline = build_pipeline(sdk_settings, wall_clock, clock, server)

        body = await pipeline.request_json("GET", "Invoices", query={"page": 2, "where": None})

        assert body == {"Invoices": []}
        request = server.api_requests[0]
        assert str(request.url) == "https://api.example.com/api.xro/2.0/Invoices?page=2"
        assert request.headers["Authorization"] == "Bearer access-1"
        assert request.headers["xero-tenant-id"] == TENANT_ID
        assert request.headers["Accept"] == "application/json"
        assert "Idempotency-Key" not in request.headers

    @pytest.mark.asyncio
    async def test_write_body_and_idempotency_key(self, sdk_settings, wall_clock, clock):
        """Test that writes send exact decimals and the idempotency key."""
        sdk_settings.allow_writes = True
        server = Server(OK)
        pipeline = build_pipeline(sdk_settings, wall_clock, clock, server)

        await pipeline.execute("PUT", "Payments", body={"Amount": Decimal("10.00")}, idempotency_key="key-1")

        request = server.api_requests[0]
        assert request.content == b'{"Amount":10.00}'
        assert request.headers["Idempotency-Key"] == "key-1"
        assert request.headers["Content-Type"] == "application/json"

    @pytest.mark.asyncio
    async def test_absolute_url_without_tenant(self, sdk_settings, wall_clock, clock):
        """Test identity calls skip the tenant header."""
        server = Server(json_response(200, []))
        pipeline = build_pipeline(sdk_settings, wall_clock, clock, server, tenant_id=None)

        await pipeline.execute("GET", "https://api.example.com/connections", include_tenant=False)

        request = server.api_requests[0]
        assert request.url.path == "/connections"
        assert "xero-tenant-id" not in request.headers

    @pytest.mark.asyncio
    async def test_missing_tenant(self, sdk_settings, wall_clock, clock):
        """Test that tenant-scoped calls need a tenant id."""
        server = Server(OK)
        pipeline = build_pipeline(sdk_settings, wall_clock, clock, server, tenant_id=None)
        with pytest.raises(ValidationError):
            await pipeline.execute("GET", "Invoices")
        assert server.api_requests == []

    @pytest.mark.asyncio
    async def test_invalid_json_body(self, sdk_settings, wall_clock, clock):
        """Test that an undecodable success body raises ParseError."""
        server = Server(httpx.Response(200, text="<html>oops</html>"))
        pipeline = build_pipeline(sdk_settings, wall_clock, clock, server)
        with pytest.raises(ParseError):
            await pipeline.request_json("GET", "Invoices")


# =============================================================================
# Write safety
# =============================================================================


class TestWriteSafety:
    """Tests for the write gate and local validation."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", ["POST", "PUT", "PATCH", "DELETE"])
    async def test_writes_blocked_by_default(self, sdk_settings, wall_clock, clock, method):
        """Test that no request is made for a write while writes are disabled."""
        server = Server(OK)
        pipeline = build_pipeline(sdk_settings, wall_clock, clock, server)

        with pytest.raises(WriteNotAllowedError):
            await pipeline.execute(method, "Invoices", body={"Invoices": []})

        assert server.api_requests == []
        assert server.token_requests == []
        assert pipeline.limiter.state.calls_in_window == 0

    @pytest.mark.asyncio
    async def test_bad_idempotency_key(self, sdk_settings, wall_clock, clock):
        """Test that malformed keys are rejected before sending."""
        sdk_settings.allow_writes = True
        server = Server(OK)
        pipeline = build_pipeline(sdk_settings, wall_clock, clock, server)
        with pytest.raises(ValidationError):
            await pipeline.execute("PUT", "Invoices", body={}, idempotency_key="has space")
        assert server.api_requests == []

    @pytest.mark.asyncio
    async def test_write_query_literal_checked(self, sdk_settings, wall_clock, clock):
        """Test that write query values cannot break out of a filter literal."""
        sdk_settings.allow_writes = True
        server = Server(OK)
        pipeline = build_pipeline(sdk_settings, wall_clock, clock, server)
        with pytest.raises(ValidationError):
            await pipeline.execute("POST", "Invoices", query={"where": 'X=="a" OR "1"'}, body={})
        assert server.api_requests == []

    @pytest.mark.parametrize("key", ["", "a" * 129, "tab\tkey", "ключ"])
    def test_validate_idempotency_key_rejects(self, key):
        """Test empty, over-long and non-printable keys."""
        with pytest.raises(ValidationError):
            validate_idempotency_key(key)

    def test_validate_idempotency_key_accepts(self):
        """Test a 128 character printable key."""
        key = "k" * 128
        assert validate_idempotency_key(key) == key


# =============================================================================
# Retries
# =============================================================================


class TestUnauthorized:
    """Tests for 401 handling."""

    @pytest.mark.asyncio
    async def test_refresh_once_then_succeed(self, sdk_settings, wall_clock, clock):
        """Test that a 401 refreshes the token and retries with the new one."""
        server = Server(json_response(401, {"Title": "Unauthorized"}), OK)
        pipeline = build_pipeline(sdk_settings, wall_clock, clock, server)

        await pipeline.execute("GET", "Invoices")

        assert len(server.token_requests) == 1
        assert [r.headers["Authorization"] for r in server.api_requests] == [
            "Bearer access-1",
            "Bearer access-2",
        ]

    @pytest.mark.asyncio
    async def test_second_401_requires_reauth(self, sdk_settings, wall_clock, clock):
        """Test that a 401 after refreshing raises ReauthRequiredError."""
        server = Server(json_response(401, {"Title": "Unauthorized"}))
        pipeline = build_pipeline(sdk_settings, wall_clock, clock, server)

        with pytest.raises(ReauthRequiredError):
            await pipeline.execute("GET", "Invoices")

        assert len(server.api_requests) == 2
        assert len(server.token_requests) == 1


class TestTransportErrors:
    """Tests for retries after transport failures."""

    @pytest.mark.asyncio
    async def test_read_retried_with_backoff(self, sdk_settings, wall_clock, clock):
        """Test that a connection failure on a read is retried."""
        server = Server(raising(httpx.ConnectError), raising(httpx.ReadTimeout), OK)
        pipeline = build_pipeline(sdk_settings, wall_clock, clock, server)

        await pipeline.execute("GET", "Invoices")

        assert len(server.api_requests) == 3
        assert clock.sleeps == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_read_gives_up(self, sdk_settings, wall_clock, clock):
        """Test that max_retries bounds the attempts."""
        server = Server(raising(httpx.ConnectError))
        pipeline = build_pipeline(sdk_settings, wall_clock, clock, server)

        with pytest.raises(NetworkError):
            await pipeline.execute("GET", "Invoices")

        assert len(server.api_requests) == 4
        assert clock.sleeps == [1.0, 2.0, 4.0]

    @pytest.mark.asyncio
    async def test_unkeyed_write_timeout_not_retried(self, sdk_settings, wall_clock, clock):
        """Test that a write that may have been sent is not repeated without a key."""
        sdk_settings.allow_writes = True
        server = Server(raising(httpx.ReadTimeout))
        pipeline = build_pipeline(sdk_settings, wall_clock, clock, server)

        with pytest.raises(NetworkError, match="may have reached the server"):
            await pipeline.execute("PUT", "Invoices", body={"Invoices": []})

        assert len(server.api_requests) == 1

    @pytest.mark.asyncio
    async def test_keyed_write_timeout_retried(self, sdk_settings, wall_clock, clock):
        """Test that a keyed write is retried up to the budget."""
        sdk_settings.allow_writes = True
        server = Server(raising(httpx.ReadTimeout))
        pipeline = build_pipeline(sdk_settings, wall_clock, clock, server)

        with pytest.raises(NetworkError):
            await pipeline.execute("PUT", "Invoices", body={"Invoices": []}, idempotency_key="k-1")

        assert len(server.api_requests) == 4
        assert {r.headers["Idempotency-Key"] for r in server.api_requests} == {"k-1"}

    @pytest.mark.asyncio
    async def test_unkeyed_write_connect_error_retried(self, sdk_settings, wall_clock, clock):
        """Test that a write that never left the machine may be retried."""
        sdk_settings.allow_writes = True
        server = Server(raising(httpx.ConnectError), OK)
        pipeline = build_pipeline(sdk_settings, wall_clock, clock, server)

        await pipeline.execute("PUT", "Invoices", body={"Invoices": []})

        assert len(server.api_requests) == 2


class TestServerErrors:
    """Tests for 5xx and 429 handling."""

    @pytest.mark.asyncio
    async def test_5xx_retried_for_reads(self, sdk_settings, wall_clock, clock):
        """Test that a server error on a read is retried."""
        server = Server(json_response(503, {"Message": "busy"}), OK)
        pipeline = build_pipeline(sdk_settings, wall_clock, clock, server)

        await pipeline.execute("GET", "Invoices")

        assert len(server.api_requests) == 2
        assert clock.sleeps == [1.0]

    @pytest.mark.asyncio
    async def test_5xx_not_retried_for_unkeyed_write(self, sdk_settings, wall_clock, clock):
        """Test that a server error on an unkeyed write surfaces at once."""
        sdk_settings.allow_writes = True
        server = Server(json_response(500, {"Message": "boom"}))
        pipeline = build_pipeline(sdk_settings, wall_clock, clock, server)

        with pytest.raises(ApiError) as exc_info:
            await pipeline.execute("POST", "Invoices/1", body={})

        assert exc_info.value.status == 500
        assert "boom" in exc_info.value.message
        assert len(server.api_requests) == 1

    @pytest.mark.asyncio
    async def test_429_waits_then_succeeds(self, sdk_settings, wall_clock, clock):
        """Test that a 429 holds the retry for Retry-After plus jitter."""
        server = Server(json_response(429, {}, headers={"Retry-After": "2"}), OK)
        pipeline = build_pipeline(sdk_settings, wall_clock, clock, server)
        start = clock.now

        await pipeline.execute("GET", "Invoices")

        assert len(server.api_requests) == 2
        assert clock.now - start > 2.0

    @pytest.mark.asyncio
    async def test_429_exhausts_budget(self, sdk_settings, wall_clock, clock):
        """Test that persistent throttling raises RateLimitedError."""
        server = Server(json_response(429, {}, headers={"Retry-After": "3"}))
        pipeline = build_pipeline(sdk_settings, wall_clock, clock, server)

        with pytest.raises(RateLimitedError) as exc_info:
            await pipeline.execute("GET", "Invoices")

        assert exc_info.value.retry_after == 3
        assert len(server.api_requests) == 4

    @pytest.mark.asyncio
    async def test_day_limit_not_retried(self, sdk_settings, wall_clock, clock):
        """Test that the daily limit surfaces without retries."""
        server = Server(
            json_response(429, {}, headers={"Retry-After": "3600", "X-Rate-Limit-Problem": "day"})
        )
        pipeline = build_pipeline(sdk_settings, wall_clock, clock, server)

        with pytest.raises(RateLimitedError) as exc_info:
            await pipeline.execute("GET", "Invoices")

        assert exc_info.value.retry_after == 3600
        assert len(server.api_requests) == 1


# =============================================================================
# Error classification
# =============================================================================


class TestClassification:
    """Tests for mapping failure responses to errors."""

    @pytest.mark.asyncio
    async def test_400_validation_messages(self, sdk_settings, wall_clock, clock):
        """Test that every ValidationErrors message is collected."""
        body = {
            "ErrorNumber": 10,
            "Type": "ValidationException",
            "Message": "A validation exception occurred",
            "Elements": [
                {"ValidationErrors": [{"Message": "Email address must be valid."}]},
                {"ValidationErrors": [{"Message": "Contact name is required."}]},
            ],
        }
        server = Server(json_response(400, body))
        pipeline = build_pipeline(sdk_settings, wall_clock, clock, server)

        with pytest.raises(ValidationError) as exc_info:
            await pipeline.execute("GET", "Contacts")

        assert exc_info.value.messages == ["Email address must be valid.", "Contact name is required."]

    @pytest.mark.asyncio
    async def test_400_without_messages_is_api_error(self, sdk_settings, wall_clock, clock):
        """Test that an unstructured 400 becomes ApiError."""
        server = Server(json_response(400, {"Detail": "Bad where clause"}))
        pipeline = build_pipeline(sdk_settings, wall_clock, clock, server)
        with pytest.raises(ApiError, match="Bad where clause"):
            await pipeline.execute("GET", "Invoices")

    @pytest.mark.asyncio
    async def test_404(self, sdk_settings, wall_clock, clock):
        """Test that a 404 names the resource and id."""
        server = Server(json_response(404, {}))
        pipeline = build_pipeline(sdk_settings, wall_clock, clock, server)

        with pytest.raises(NotFoundError) as exc_info:
            await pipeline.execute("GET", "Invoices/abc", resource="Invoice", record_id="abc")

        assert exc_info.value.resource == "Invoice"
        assert exc_info.value.id == "abc"

    def test_extract_messages_fallback(self):
        """Test the top-level message fallback and non-dict bodies."""
        assert extract_validation_messages({"Type": "ValidationException", "Message": "Nope"}) == ["Nope"]
        assert extract_validation_messages({"Message": "Other"}) == []
        assert extract_validation_messages(None) == []

    def test_extract_messages_any_array(self):
        """Test that errors under a resource array are collected too."""
        body = {"Invoices": [{"ValidationErrors": [{"Message": "Date required"}]}]}
        assert extract_validation_messages(body) == ["Date required"]
