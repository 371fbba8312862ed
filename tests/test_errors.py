"""Unit tests for the error taxonomy, filters, logging and settings.

Tests cover:
- Error kinds, retryability and structured payloads
- Message truncation
- Filter literal validation and date parsing
- Secret redaction in log records
- Settings defaults and environment overrides
"""

import logging
from datetime import date
from unittest.mock import patch

import pytest

from ledgerlink.core.config import SdkSettings
from ledgerlink.core.errors import (
    ApiError,
    AuthError,
    ErrorKind,
    NetworkError,
    NotFoundError,
    RateLimitedError,
    ReauthRequiredError,
    SdkError,
    StateMismatchError,
    ValidationError,
    WriteNotAllowedError,
    truncate,
)
from ledgerlink.core.logging import LoggerAdapter, SecretRedactingFilter, get_logger, redact, setup_logging
from ledgerlink.services import filters


# =============================================================================
# Error taxonomy
# =============================================================================


class TestErrorTaxonomy:
    """Tests for SdkError subclasses and payloads."""

    def test_kinds(self):
        """Test that every error carries its kind."""
        assert ReauthRequiredError("x").kind is ErrorKind.REAUTH_REQUIRED
        assert StateMismatchError("x").kind is ErrorKind.STATE_MISMATCH
        assert WriteNotAllowedError("x").kind is ErrorKind.WRITE_NOT_ALLOWED
        assert NotFoundError("Invoice", "1").kind is ErrorKind.NOT_FOUND
        assert isinstance(StateMismatchError("x"), AuthError)
        assert isinstance(ApiError(500), SdkError)

    def test_retryable(self):
        """Test that only rate limits and network failures are retryable."""
        assert RateLimitedError().is_retryable
        assert NetworkError("reset").is_retryable
        assert not ValidationError(["bad"]).is_retryable
        assert not ApiError(500).is_retryable

    def test_rate_limited_default_retry_after(self):
        """Test that retry_after defaults to 60 seconds."""
        error = RateLimitedError()
        assert error.retry_after == 60
        assert error.to_payload().retry_after == 60

    def test_validation_payload(self):
        """Test that validation messages appear in the payload details."""
        payload = ValidationError(["Email is invalid", "Name is required"]).to_payload()
        assert payload.error_code == "VALIDATION"
        assert payload.details == {"messages": ["Email is invalid", "Name is required"]}
        assert "Email is invalid" in payload.message

    def test_not_found_payload(self):
        """Test that not-found errors name the resource and id."""
        error = NotFoundError("Invoice", "abc")
        assert error.details() == {"resource": "Invoice", "id": "abc"}
        assert "Invoice abc" in error.message

    def test_api_error_status(self):
        """Test that ApiError keeps the status code."""
        error = ApiError(503, "Service unavailable")
        assert error.status == 503
        assert error.to_payload().details == {"status": 503}

    def test_truncate(self):
        """Test that long bodies are cut to 500 characters."""
        assert truncate("short") == "short"
        long_text = "x" * 600
        assert truncate(long_text) == "x" * 500 + "..."


# =============================================================================
# Filters
# =============================================================================


class TestFilters:
    """Tests for where-clause builders."""

    def test_equals(self):
        """Test a quoted equality clause."""
        assert filters.equals("InvoiceNumber", "INV-001") == 'InvoiceNumber=="INV-001"'

    @pytest.mark.parametrize("value", ['INV"1', "INV\\1", "INV\n1", "a\x00b"])
    def test_literal_breakout_rejected(self, value):
        """Test that quotes, backslashes and control characters are rejected."""
        with pytest.raises(ValidationError):
            filters.equals("InvoiceNumber", value)

    def test_field_name_checked(self):
        """Test that field names cannot carry expressions."""
        with pytest.raises(ValidationError):
            filters.equals('Status=="PAID" OR 1', "x")

    def test_date_between(self):
        """Test inclusive date range clauses."""
        clause = filters.date_between("Date", "2024-01-01", date(2024, 3, 31))
        assert clause == "Date>=DateTime(2024,01,01) AND Date<=DateTime(2024,03,31)"
        assert filters.date_between("Date") is None

    @pytest.mark.parametrize("value", ["2024-1-01", "01/02/2024", "2024-02-30", "2024-01-01T00:00:00"])
    def test_bad_dates_rejected(self, value):
        """Test that only exact YYYY-MM-DD dates are accepted."""
        with pytest.raises(ValidationError):
            filters.parse_date_literal(value)

    def test_combine(self):
        """Test joining clauses with AND."""
        assert filters.combine(None, "A==1") == "A==1"
        assert filters.combine("A==1", "B==2") == "A==1 AND B==2"
        assert filters.combine('S=="A" OR S=="B"', "B==2") == '(S=="A" OR S=="B") AND B==2'
        assert filters.combine(None, None) is None

    def test_any_of(self):
        """Test an OR clause over several values."""
        assert filters.any_of("Status", ["DRAFT", "PAID"]) == 'Status=="DRAFT" OR Status=="PAID"'

    def test_header_value(self):
        """Test that CR/LF is rejected in header values."""
        with pytest.raises(ValidationError):
            filters.check_header_value("abc\r\nX-Injected: 1", "Tenant id")


# =============================================================================
# Logging
# =============================================================================


class TestLogging:
    """Tests for logging helpers."""

    def test_redact_bearer(self):
        """Test that bearer tokens are scrubbed."""
        assert redact("Authorization: Bearer abc.def-ghi") == "Authorization: Bearer ***"

    def test_redact_form_fields(self):
        """Test that OAuth form secrets are scrubbed."""
        text = "grant_type=refresh_token&refresh_token=r123&client_id=abc"
        assert redact(text) == "grant_type=refresh_token&refresh_token=***&client_id=abc"

    def test_filter_rewrites_record(self):
        """Test that the filter scrubs formatted messages."""
        record = logging.LogRecord("ledgerlink", logging.INFO, __file__, 1, "token %s", ("Bearer xyz",), None)
        assert SecretRedactingFilter().filter(record)
        assert record.getMessage() == "token Bearer ***"

    def test_get_logger_namespaces(self):
        """Test that loggers live under the package logger."""
        assert get_logger("tests").name == "ledgerlink.tests"
        assert get_logger("ledgerlink.services").name == "ledgerlink.services"

    def test_adapter_appends_context(self):
        """Test that the adapter appends key=value context."""
        adapter = LoggerAdapter(logging.getLogger("ledgerlink.test"), {"tenant": "t1"})
        msg, _ = adapter.process("Fetched page", {})
        assert msg == "Fetched page - tenant=t1"

    def test_setup_logging_reads_debug_setting(self):
        """Test that setup_logging falls back to settings.debug."""
        sdk_logger = logging.getLogger("ledgerlink")
        saved_level, saved_handlers = sdk_logger.level, sdk_logger.handlers[:]
        try:
            with patch("ledgerlink.core.logging.settings", SdkSettings(debug=True)):
                setup_logging()
            assert sdk_logger.level == logging.DEBUG

            setup_logging(debug=False)
            assert sdk_logger.level == logging.INFO
        finally:
            sdk_logger.setLevel(saved_level)
            sdk_logger.handlers[:] = saved_handlers


# =============================================================================
# Settings
# =============================================================================


class TestSettings:
    """Tests for SdkSettings."""

    def test_defaults(self, monkeypatch):
        """Test the documented defaults."""
        for name in ("LEDGERLINK_MAX_RETRIES", "LEDGERLINK_ALLOW_WRITES", "LEDGERLINK_MAX_CONCURRENT"):
            monkeypatch.delenv(name, raising=False)
        settings = SdkSettings()
        assert settings.max_retries == 3
        assert settings.allow_writes is False
        assert settings.max_concurrent == 5
        assert settings.max_per_minute == 60
        assert settings.refresh_margin == 300.0
        assert "offline_access" in settings.default_scopes

    def test_environment_override(self, monkeypatch):
        """Test that LEDGERLINK_ variables override defaults."""
        monkeypatch.setenv("LEDGERLINK_ALLOW_WRITES", "true")
        monkeypatch.setenv("LEDGERLINK_MAX_RETRIES", "5")
        settings = SdkSettings()
        assert settings.allow_writes is True
        assert settings.max_retries == 5
