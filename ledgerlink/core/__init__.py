"""Core SDK modules."""

from ledgerlink.core.config import SdkSettings, settings
from ledgerlink.core.errors import ErrorKind, ErrorPayload, SdkError
from ledgerlink.core.logging import get_logger, setup_logging

__all__ = [
    "SdkSettings",
    "settings",
    "ErrorKind",
    "ErrorPayload",
    "SdkError",
    "get_logger",
    "setup_logging",
]
