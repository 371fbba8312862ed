"""PKCE (RFC 7636) helpers and the loopback redirect listener.

Flow:
1. ``PkceSession.generate`` creates the verifier, its S256 challenge and an
   anti-CSRF state token.
2. The user's browser is sent to ``PkceSession.authorize_url``.
3. ``CallbackListener`` receives ``GET /callback?code=...&state=...`` on
   127.0.0.1, checks the state and hands back the authorization code.
"""

import asyncio
import base64
import hashlib
import logging
import secrets
import string
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import parse_qs, urlencode, urlsplit

from pydantic import SecretStr

from ledgerlink.core.errors import AuthRequiredError, FlowAbortedError, StateMismatchError

logger = logging.getLogger(__name__)

# RFC 7636 unreserved characters
VERIFIER_CHARS = string.ascii_letters + string.digits + "-._~"
VERIFIER_LENGTH = 64
STATE_LENGTH = 32


def random_token(length: int) -> str:
    """Cryptographically random string over the unreserved alphabet."""
    return "".join(secrets.choice(VERIFIER_CHARS) for _ in range(length))


def derive_challenge(verifier: str) -> str:
    """S256 code challenge: base64url(sha256(verifier)) without padding."""
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


@dataclass(frozen=True)
class PkceSession:
    """Ephemeral secrets for one interactive login."""

    verifier: SecretStr
    challenge: str
    state: str
    redirect_uri: str

    @classmethod
    def generate(cls, redirect_uri: str, length: int = VERIFIER_LENGTH) -> "PkceSession":
        """Create a new session.

        Raises:
            ValueError: If ``length`` is outside 43..128
        """
        if not 43 <= length <= 128:
            raise ValueError("PKCE verifier length must be between 43 and 128")
        verifier = random_token(length)
        return cls(
            verifier=SecretStr(verifier),
            challenge=derive_challenge(verifier),
            state=random_token(STATE_LENGTH),
            redirect_uri=redirect_uri,
        )

    def authorize_url(self, authorize_endpoint: str, client_id: str, scopes: List[str]) -> str:
        query = urlencode(
            {
                "response_type": "code",
                "client_id": client_id,
                "redirect_uri": self.redirect_uri,
                "scope": " ".join(scopes),
                "code_challenge": self.challenge,
                "code_challenge_method": "S256",
                "state": self.state,
            }
        )
        return f"{authorize_endpoint}?{query}"


_PAGE = (
    "<!DOCTYPE html><html><body><h2>{title}</h2><p>{body}</p></body></html>"
)


class CallbackListener:
    """One-shot HTTP listener for the OAuth redirect.

    Binds to the loopback interface only. Requests for other paths (favicon
    probes) get a 404 and the listener keeps waiting.

    Usage:
        async with CallbackListener(port=0) as listener:
            url = session_for(listener.redirect_uri)
            code = await listener.wait_for_code(expected_state, timeout=300)
    """

    CALLBACK_PATH = "/callback"

    def __init__(self, host: str = "127.0.0.1", port: int = 0):
        self.host = host
        self.port = port
        self._server: Optional[asyncio.AbstractServer] = None
        self._result: Optional[asyncio.Future] = None
        self._expected_state: Optional[str] = None

    @property
    def redirect_uri(self) -> str:
        return f"http://localhost:{self.port}{self.CALLBACK_PATH}"

    async def start(self) -> None:
        """Bind the listener; resolves ``port`` when it was 0.

        Raises:
            AuthRequiredError: If the port cannot be bound
        """
        self._result = asyncio.get_running_loop().create_future()
        try:
            self._server = await asyncio.start_server(self._handle, self.host, self.port)
        except OSError as e:
            raise AuthRequiredError(f"Failed to start callback server: {e}")
        self.port = self._server.sockets[0].getsockname()[1]
        logger.debug(f"Callback listener on {self.host}:{self.port}")

    async def close(self) -> None:
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
        if self._result is not None and not self._result.done():
            self._result.cancel()

    async def __aenter__(self) -> "CallbackListener":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def expect(self, state: str) -> None:
        """Set the state the callback must carry. Call before opening the browser."""
        self._expected_state = state

    async def wait_for_code(self, expected_state: str, timeout: Optional[float]) -> str:
        """Wait for the browser redirect and return the authorization code.

        Raises:
            FlowAbortedError: If no callback arrives within ``timeout``
            StateMismatchError: If the callback's state is not ``expected_state``
            AuthRequiredError: If the user denied access or no code was sent
        """
        if self._result is None:
            raise RuntimeError("CallbackListener.start() must be awaited first")
        self._expected_state = expected_state
        try:
            return await asyncio.wait_for(asyncio.shield(self._result), timeout)
        except asyncio.TimeoutError:
            raise FlowAbortedError(f"No authorization callback within {timeout}s")

    # =========================================================================
    # Connection handling
    # =========================================================================

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        try:
            request_line = (await reader.readline()).decode("latin-1").strip()
            # Drain headers
            while True:
                line = await reader.readline()
                if not line or line in (b"\r\n", b"\n"):
                    break
            status, title, body = self._process(request_line)
            await self._respond(writer, status, title, body)
        except (ConnectionError, asyncio.IncompleteReadError) as e:
            logger.debug(f"Callback connection dropped: {e}")
        finally:
            writer.close()

    def _process(self, request_line: str) -> tuple:
        parts = request_line.split(" ")
        if len(parts) < 2 or parts[0] != "GET":
            return 405, "Method not allowed", "Only GET is supported."
        target = urlsplit(parts[1])
        if target.path != self.CALLBACK_PATH:
            return 404, "Not found", "Unknown path."
        if self._result is None or self._result.done():
            return 409, "Already handled", "This login has already completed."

        params = {k: v[0] for k, v in parse_qs(target.query).items()}
        error = params.get("error")
        if error:
            description = params.get("error_description", "")
            self._result.set_exception(
                AuthRequiredError(f"Authorization denied: {error} {description}".strip())
            )
            return 400, "Authorization failed", "You can close this window."

        returned_state = params.get("state", "")
        expected = self._expected_state or ""
        if not expected or not secrets.compare_digest(returned_state.encode("utf-8"), expected.encode("utf-8")):
            logger.warning("OAuth callback state mismatch, rejecting callback")
            self._result.set_exception(
                StateMismatchError("OAuth state parameter mismatch, possible CSRF attempt")
            )
            return 400, "Authorization failed", "State parameter mismatch."

        code = params.get("code")
        if not code:
            self._result.set_exception(AuthRequiredError("Callback carried no authorization code"))
            return 400, "Authorization failed", "No authorization code received."

        self._result.set_result(code)
        return 200, "Authorization successful", "You can close this window and return to the terminal."

    @staticmethod
    async def _respond(writer: asyncio.StreamWriter, status: int, title: str, body: str) -> None:
        reasons = {200: "OK", 400: "Bad Request", 404: "Not Found", 405: "Method Not Allowed", 409: "Conflict"}
        content = _PAGE.format(title=title, body=body).encode("utf-8")
        head = (
            f"HTTP/1.1 {status} {reasons[status]}\r\n"
            "Content-Type: text/html; charset=utf-8\r\n"
            f"Content-Length: {len(content)}\r\n"
            "Connection: close\r\n\r\n"
        ).encode("ascii")
        writer.write(head + content)
        await writer.drain()
