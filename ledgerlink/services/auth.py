"""Authentication manager.

Owns the active credential for one organisation connection and hands out
valid bearer tokens. Supports:
- Authorization code with PKCE (interactive, browser based)
- Client credentials (unattended, custom connections)
- Transparent refresh shortly before expiry

Refresh tokens are single use. Concurrent callers that find the token near
expiry share one refresh: the first starts it as a task, the rest await the
same task. A refresh that fails is final for the credential, which is wiped
from memory and storage, and the caller must log in again.
"""

import asyncio
import logging
import webbrowser
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
from pydantic import SecretStr

from ledgerlink.core.config import SdkSettings
from ledgerlink.core.errors import (
    AuthRequiredError,
    NetworkError,
    ParseError,
    ReauthRequiredError,
    SdkError,
    truncate,
)
from ledgerlink.services.pkce import CallbackListener, PkceSession
from ledgerlink.services.token_store import CredentialStore
from ledgerlink.services.tokens import (
    ClientCredentialsSecret,
    CredentialKind,
    Token,
    TokenPair,
    utcnow,
)

logger = logging.getLogger(__name__)

# Scopes that only make sense for a signed-in user
USER_ONLY_SCOPES = {"openid", "profile", "email", "offline_access"}


class AuthManager:
    """Holds and renews the credential for one connection.

    Example:
        ```python
        auth = AuthManager(client_id="ABC123", settings=SdkSettings())
        await auth.login_interactive()
        token = await auth.get_valid_access_token()
        ```
    """

    def __init__(
        self,
        client_id: str = "",
        settings: Optional[SdkSettings] = None,
        store: Any = None,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], datetime] = utcnow,
        open_browser: Callable[[str], bool] = webbrowser.open,
    ):
        """Initialize AuthManager.

        Args:
            client_id: OAuth client id of the app registration
            settings: SDK settings; defaults to ``SdkSettings()``
            store: Credential store (``CredentialStore`` interface). Defaults
                to a keyring-backed store configured from ``settings``.
            http_client: Client for token endpoint calls. Created lazily
                when omitted.
            clock: Returns the current UTC time
            open_browser: Opens the authorization URL; returns False when no
                browser could be launched
        """
        self.settings = settings or SdkSettings()
        self.client_id = client_id or self.settings.client_id
        self.store = store if store is not None else CredentialStore(
            service=self.settings.keyring_service,
            config_dir=self.settings.config_dir,
            encryption_key=self.settings.encryption_key,
        )
        self.clock = clock
        self.open_browser = open_browser
        self.refresh_margin = timedelta(seconds=self.settings.refresh_margin)

        self._client = http_client
        self._owns_client = http_client is None
        self._pair: Optional[TokenPair] = None
        self._secret: Optional[ClientCredentialsSecret] = None
        self._generation = 0
        self._store_checked = False
        self._lock = asyncio.Lock()
        self._load_lock = asyncio.Lock()
        self._refresh_task: Optional[asyncio.Task] = None

    # =========================================================================
    # HTTP client lifecycle
    # =========================================================================

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.settings.timeout))
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if this manager created it."""
        if self._owns_client and self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    # =========================================================================
    # State
    # =========================================================================

    @property
    def generation(self) -> int:
        """Counter bumped whenever the credential is replaced or wiped."""
        return self._generation

    @property
    def is_authenticated(self) -> bool:
        return self._pair is not None

    @property
    def credential_kind(self) -> Optional[CredentialKind]:
        return self._pair.kind if self._pair is not None else None

    async def load_stored(self) -> bool:
        """Load a persisted token pair into memory.

        Returns:
            True if a usable pair was found

        Raises:
            StorageError: If stored data exists but cannot be read
        """
        pair = await asyncio.to_thread(self.store.load)
        self._store_checked = True
        if pair is None:
            return False
        self._pair = pair
        self._generation += 1
        logger.debug("Loaded stored credential")
        return True

    async def _install(self, pair: TokenPair, secret: Optional[ClientCredentialsSecret]) -> None:
        # Replace in one step so readers never see a half-updated credential
        self._pair, self._secret = pair, secret
        self._generation += 1
        self._store_checked = True
        try:
            await asyncio.to_thread(self.store.save, pair)
        except SdkError as e:
            logger.error(f"Credential obtained but could not be persisted: {e}")

    async def _wipe(self) -> None:
        self._pair = None
        self._secret = None
        self._generation += 1
        await asyncio.to_thread(self.store.clear)

    def _usable_token(self) -> Optional[Token]:
        pair = self._pair
        if pair is None or pair.needs_refresh(self.refresh_margin, self.clock()):
            return None
        return Token(value=pair.access_token, expires_at=pair.expires_at, generation=self._generation)

    # =========================================================================
    # Login flows
    # =========================================================================

    async def login_interactive(
        self,
        scopes: Optional[List[str]] = None,
        port: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> TokenPair:
        """Run the authorization-code flow with PKCE.

        Opens the user's browser at the authorization endpoint and waits on a
        loopback listener for the redirect. The returned state must match
        before the code is exchanged.

        Args:
            scopes: Scopes to request; defaults to ``settings.default_scopes``
            port: Loopback port; defaults to ``settings.callback_port``
            timeout: Seconds to wait for the redirect; defaults to
                ``settings.callback_timeout``

        Returns:
            The new token pair (also persisted)

        Raises:
            FlowAbortedError: If the redirect does not arrive in time
            StateMismatchError: If the redirect carries the wrong state
            AuthRequiredError: If the user denies access or the exchange fails
        """
        if not self.client_id:
            raise AuthRequiredError("A client_id is required for interactive login")
        scopes = scopes or list(self.settings.default_scopes)
        port = self.settings.callback_port if port is None else port
        timeout = self.settings.callback_timeout if timeout is None else timeout

        async with CallbackListener(port=port) as listener:
            session = PkceSession.generate(listener.redirect_uri)
            listener.expect(session.state)
            url = session.authorize_url(self.settings.authorize_url, self.client_id, scopes)

            logger.info("Opening browser for authorization")
            if not self.open_browser(url):
                logger.info(f"Could not open a browser. Open this URL to continue: {url}")

            code = await listener.wait_for_code(session.state, timeout)

        logger.debug("Received authorization code, exchanging for tokens")
        payload = await self._post_token(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": session.redirect_uri,
                "client_id": self.client_id,
                "code_verifier": session.verifier.get_secret_value(),
            }
        )
        pair = self._pair_from(payload, CredentialKind.AUTHORIZATION_CODE)
        await self._install(pair, None)
        logger.info("Interactive login complete")
        return pair

    async def login_client_credentials(
        self,
        client_id: str,
        client_secret: str,
        scopes: Optional[List[str]] = None,
        timeout: Optional[float] = None,
    ) -> TokenPair:
        """Obtain a token with the client-credentials grant.

        No user is involved and no refresh token is issued; the secret is
        kept in memory to request a new token when this one nears expiry.
        Neither the token nor the secret is persisted.

        Raises:
            AuthRequiredError: If the token endpoint rejects the credentials
            NetworkError: If the token endpoint is unreachable
            asyncio.TimeoutError: If ``timeout`` elapses before a token arrives
        """
        if scopes is None:
            scopes = [s for s in self.settings.default_scopes if s not in USER_ONLY_SCOPES]
        secret = ClientCredentialsSecret(
            client_id=client_id,
            client_secret=SecretStr(client_secret),
            scopes=[s for s in scopes if s != "offline_access"],
        )
        if timeout is not None:
            pair = await asyncio.wait_for(self._request_client_credentials(secret), timeout)
        else:
            pair = await self._request_client_credentials(secret)
        await self._install(pair, secret)
        logger.info("Client-credentials login complete")
        return pair

    async def logout(self) -> None:
        """Wipe the credential from memory and storage."""
        await self._wipe()
        logger.info("Logged out")

    # =========================================================================
    # Tokens and refresh
    # =========================================================================

    async def get_valid_access_token(self, timeout: Optional[float] = None) -> Token:
        """Return a token with more than the refresh margin left.

        Refreshes first when the current token is within the margin. Waiting
        for another caller's refresh counts as a suspension point and honors
        ``timeout``.

        Raises:
            AuthRequiredError: If there is no credential
            ReauthRequiredError: If the refresh failed
            asyncio.TimeoutError: If ``timeout`` elapses
        """
        if timeout is not None:
            return await asyncio.wait_for(self._valid_token(), timeout)
        return await self._valid_token()

    async def _ensure_loaded(self) -> None:
        if self._pair is not None or self._store_checked:
            return
        async with self._load_lock:
            if self._pair is None and not self._store_checked:
                await self.load_stored()

    async def _valid_token(self) -> Token:
        await self._ensure_loaded()
        if self._pair is None:
            raise AuthRequiredError("Not logged in")
        token = self._usable_token()
        if token is not None:
            return token
        return await self._refresh(self._generation)

    async def refresh(self) -> Token:
        """Refresh now, regardless of remaining lifetime."""
        await self._ensure_loaded()
        return await self._refresh(self._generation)

    async def force_refresh(self, rejected: Token) -> Token:
        """Refresh after the server rejected ``rejected`` with a 401.

        If the credential has already been replaced since ``rejected`` was
        issued, the current token is returned without another refresh.
        """
        return await self._refresh(rejected.generation)

    async def _refresh(self, stale_generation: int) -> Token:
        async with self._lock:
            if self._generation != stale_generation:
                token = self._usable_token()
                if token is not None:
                    return token
            task = self._refresh_task
            if task is None or task.done():
                task = asyncio.get_running_loop().create_task(self._exchange_refresh())
                self._refresh_task = task
        # Shielded so one waiter's cancellation does not abort the shared refresh
        return await asyncio.shield(task)

    async def _exchange_refresh(self) -> Token:
        pair = self._pair
        if pair is None:
            raise AuthRequiredError("Not logged in")

        try:
            if pair.kind is CredentialKind.CLIENT_CREDENTIALS:
                if self._secret is None:
                    raise ReauthRequiredError("Client credentials are no longer available")
                logger.debug("Requesting a new client-credentials token")
                new_pair = await self._request_client_credentials(self._secret)
                secret = self._secret
            else:
                refresh_token = pair.consume_refresh_token()
                logger.debug("Refreshing access token")
                payload = await self._post_token(
                    {
                        "grant_type": "refresh_token",
                        "refresh_token": refresh_token,
                        "client_id": self.client_id,
                    }
                )
                new_pair = self._pair_from(payload, CredentialKind.AUTHORIZATION_CODE)
                secret = None
        except SdkError as e:
            logger.warning(f"Token refresh failed, credential discarded: {e}")
            try:
                await self._wipe()
            except SdkError as wipe_error:
                logger.error(f"Could not clear stored credential: {wipe_error}")
            if isinstance(e, ReauthRequiredError):
                raise
            raise ReauthRequiredError(f"Token refresh failed: {e.message}") from e

        await self._install(new_pair, secret)
        logger.info("Access token refreshed")
        return Token(value=new_pair.access_token, expires_at=new_pair.expires_at, generation=self._generation)

    # =========================================================================
    # Token endpoint
    # =========================================================================

    async def _request_client_credentials(self, secret: ClientCredentialsSecret) -> TokenPair:
        payload = await self._post_token(
            {"grant_type": "client_credentials", "scope": " ".join(secret.scopes)},
            auth=(secret.client_id, secret.client_secret.get_secret_value()),
        )
        return self._pair_from(payload, CredentialKind.CLIENT_CREDENTIALS)

    def _pair_from(self, payload: Dict[str, Any], kind: CredentialKind) -> TokenPair:
        try:
            return TokenPair.from_response(payload, kind=kind, now=self.clock())
        except (KeyError, TypeError, ValueError) as e:
            raise ParseError(f"Unexpected token response: {e}")

    async def _post_token(
        self,
        data: Dict[str, str],
        auth: Optional[Tuple[str, str]] = None,
    ) -> Dict[str, Any]:
        """POST a form to the token endpoint.

        Raises:
            AuthRequiredError: For a non-success response
            NetworkError: For transport failures
            ParseError: For a body that is not a JSON object
        """
        client = await self._get_client()
        try:
            response = await client.post(
                self.settings.token_url,
                data=data,
                auth=auth,
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            raise NetworkError(f"Token endpoint unreachable: {e}")

        if not response.is_success:
            raise AuthRequiredError(
                f"Token endpoint returned {response.status_code}: {truncate(response.text)}"
            )
        try:
            payload = response.json()
        except ValueError:
            raise ParseError(f"Token endpoint returned invalid JSON: {truncate(response.text)}")
        if not isinstance(payload, dict):
            raise ParseError("Token endpoint returned a non-object body")
        return payload
