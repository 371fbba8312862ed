"""ledgerlink: typed async client for a cloud accounting REST API."""

import logging

from ledgerlink.core.config import SdkSettings
from ledgerlink.core.errors import (
    ApiError,
    AuthError,
    AuthRequiredError,
    ErrorKind,
    FlowAbortedError,
    NetworkError,
    NotFoundError,
    ParseError,
    RateLimitedError,
    ReauthRequiredError,
    SdkError,
    StateMismatchError,
    StorageError,
    ValidationError,
    WriteNotAllowedError,
)
from ledgerlink.services.auth import AuthManager
from ledgerlink.services.blocking import BlockingClient
from ledgerlink.services.client import LedgerClient
from ledgerlink.services.pagination import ListResult
from ledgerlink.services.rate_limiter import RateLimitConfig, RateLimiter
from ledgerlink.services.token_store import CredentialStore, CredentialStoreWarning

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    "ApiError",
    "AuthError",
    "AuthManager",
    "AuthRequiredError",
    "BlockingClient",
    "CredentialStore",
    "CredentialStoreWarning",
    "ErrorKind",
    "FlowAbortedError",
    "LedgerClient",
    "ListResult",
    "NetworkError",
    "NotFoundError",
    "ParseError",
    "RateLimitConfig",
    "RateLimitedError",
    "RateLimiter",
    "ReauthRequiredError",
    "SdkError",
    "SdkSettings",
    "StateMismatchError",
    "StorageError",
    "ValidationError",
    "WriteNotAllowedError",
]
