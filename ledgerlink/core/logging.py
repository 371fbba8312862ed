"""Logging configuration for the SDK."""

import logging
import re
import sys
from typing import Any, Optional

from ledgerlink.core.config import settings

PACKAGE_LOGGER = "ledgerlink"

_SECRET_PATTERNS = [
    re.compile(r"(Bearer\s+)[A-Za-z0-9\-._~+/]+=*", re.IGNORECASE),
    re.compile(
        r"\b((?:access_token|refresh_token|code_verifier|client_secret|code)=)[^&\s]+",
        re.IGNORECASE,
    ),
]


def redact(text: str) -> str:
    """Replace bearer tokens and OAuth secrets in ``text`` with ``***``."""
    for pattern in _SECRET_PATTERNS:
        text = pattern.sub(r"\1***", text)
    return text


class SecretRedactingFilter(logging.Filter):
    """Scrub token material from log records before they are emitted."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        scrubbed = redact(message)
        if scrubbed != message:
            record.msg = scrubbed
            record.args = None
        return True


def setup_logging(debug: Optional[bool] = None) -> None:
    """Configure SDK logging.

    Intended for consumers (CLI, tool servers) that want the SDK's log output
    on stdout. Library code never calls this itself.

    Args:
        debug: Log at DEBUG instead of INFO; defaults to ``settings.debug``
    """
    if debug is None:
        debug = settings.debug
    log_level = logging.DEBUG if debug else logging.INFO

    formatter = logging.Formatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    sdk_logger = logging.getLogger(PACKAGE_LOGGER)
    sdk_logger.setLevel(log_level)

    # Remove existing stream handlers to avoid duplicates
    for handler in sdk_logger.handlers[:]:
        if isinstance(handler, logging.StreamHandler):
            sdk_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(SecretRedactingFilter())
    sdk_logger.addHandler(console_handler)

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the SDK namespace.

    Args:
        name: The name of the module (typically __name__)

    Returns:
        A logger instance
    """
    if name == PACKAGE_LOGGER or name.startswith(PACKAGE_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{PACKAGE_LOGGER}.{name}")


class LoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that adds context to log messages.

    Usage:
        logger = LoggerAdapter(get_logger(__name__), {"tenant": "abc"})
        logger.info("Fetched page")  # Logs: "Fetched page - tenant=abc"
    """

    def process(self, msg: str, kwargs: Any) -> tuple[str, Any]:
        """Process the log message to include extra context."""
        extra = " - ".join(f"{k}={v}" for k, v in self.extra.items())
        return f"{msg} - {extra}" if extra else msg, kwargs
