"""Pytest configuration and fixtures for tests.

Provides a fake monotonic clock, an in-memory keyring backend, token pair
builders and httpx mock transports so no test touches the network, the OS
keychain or real time.
"""

import json
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest
from keyring.errors import KeyringError, PasswordDeleteError
from pydantic import SecretStr

from ledgerlink.core.config import SdkSettings
from ledgerlink.services.auth import AuthManager
from ledgerlink.services.pipeline import RequestPipeline
from ledgerlink.services.rate_limiter import RateLimitConfig, RateLimiter
from ledgerlink.services.token_store import MemoryCredentialStore
from ledgerlink.services.tokens import CredentialKind, TokenPair

NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)
TENANT_ID = "2f3a6b1c-1111-4222-8333-944455556666"


# =============================================================================
# Clocks
# =============================================================================


class FakeClock:
    """Monotonic clock whose ``sleep`` advances time instantly."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        if seconds > 0:
            self.now += seconds


class WallClock:
    """Settable UTC clock for token expiry checks."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: Any) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def wall_clock() -> WallClock:
    return WallClock()


# =============================================================================
# Keyring
# =============================================================================


class FakeKeyring:
    """In-memory stand-in for the ``keyring`` module's password functions."""

    def __init__(self, available: bool = True):
        self.available = available
        self.passwords: Dict[tuple, str] = {}

    def _check(self) -> None:
        if not self.available:
            raise KeyringError("No recommended backend was available")

    def get_password(self, service: str, username: str) -> Optional[str]:
        self._check()
        return self.passwords.get((service, username))

    def set_password(self, service: str, username: str, password: str) -> None:
        self._check()
        self.passwords[(service, username)] = password

    def delete_password(self, service: str, username: str) -> None:
        self._check()
        if (service, username) not in self.passwords:
            raise PasswordDeleteError("Password not found")
        del self.passwords[(service, username)]


@pytest.fixture
def fake_keyring() -> FakeKeyring:
    return FakeKeyring()


@pytest.fixture
def broken_keyring() -> FakeKeyring:
    return FakeKeyring(available=False)


# =============================================================================
# Tokens and settings
# =============================================================================


def make_pair(
    access: str = "access-1",
    refresh: Optional[str] = "refresh-1",
    expires_in: timedelta = timedelta(minutes=30),
    now: datetime = NOW,
    kind: CredentialKind = CredentialKind.AUTHORIZATION_CODE,
) -> TokenPair:
    """Build a token pair expiring ``expires_in`` after ``now``."""
    return TokenPair(
        access_token=SecretStr(access),
        refresh_token=SecretStr(refresh) if refresh else None,
        expires_at=now + expires_in,
        scopes=["openid", "offline_access"],
        kind=kind,
    )


def token_response(access: str, refresh: Optional[str] = None, expires_in: int = 1800) -> Dict[str, Any]:
    payload = {"access_token": access, "expires_in": expires_in, "token_type": "Bearer"}
    if refresh:
        payload["refresh_token"] = refresh
    return payload


def json_response(status: int, body: Any, headers: Optional[Dict[str, str]] = None) -> httpx.Response:
    return httpx.Response(
        status,
        content=json.dumps(body).encode("utf-8"),
        headers={"Content-Type": "application/json", **(headers or {})},
    )


@pytest.fixture
def sdk_settings(tmp_path) -> SdkSettings:
    """Settings isolated from the environment and the real config dir."""
    return SdkSettings(
        client_id="test-client",
        config_dir=tmp_path,
        base_url="https://api.example.com/api.xro/2.0/",
        token_url="https://identity.example.com/connect/token",
        connections_url="https://api.example.com/connections",
        max_retries=3,
        allow_writes=False,
    )


def mock_http(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    """AsyncClient routed through ``handler``."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


# =============================================================================
# Mock API server
# =============================================================================


class Server:
    """Mock transport handler that answers token calls and queues API replies.

    Each queued reply is an ``httpx.Response`` or a callable taking the
    request. The last reply is repeated once the queue runs down.
    """

    def __init__(self, *replies: Any):
        self.replies = list(replies)
        self.api_requests: List[httpx.Request] = []
        self.token_requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == "identity.example.com":
            self.token_requests.append(request)
            n = len(self.token_requests) + 1
            return json_response(200, token_response(f"access-{n}", f"refresh-{n}"))
        self.api_requests.append(request)
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if callable(reply):
            return reply(request)
        return httpx.Response(reply.status_code, headers=reply.headers, content=reply.content)


def build_pipeline(
    sdk_settings: SdkSettings,
    wall_clock: WallClock,
    clock: FakeClock,
    server: Server,
    tenant_id: Optional[str] = TENANT_ID,
) -> RequestPipeline:
    """Pipeline wired to ``server`` with fake clocks and a fresh credential."""
    http = mock_http(server)
    auth = AuthManager(
        settings=sdk_settings,
        store=MemoryCredentialStore(make_pair(now=wall_clock.now)),
        http_client=http,
        clock=wall_clock,
    )
    limiter = RateLimiter(RateLimitConfig(), clock=clock, sleep=clock.sleep)
    return RequestPipeline(
        auth,
        limiter,
        tenant_id=tenant_id,
        settings=sdk_settings,
        http_client=http,
        sleep=clock.sleep,
        clock=clock,
    )
