"""Request pipeline.

Wraps every API call with the write-safety gate, rate limiting, bearer and
tenant headers, retries and response classification. Resource APIs and the
paginator call ``RequestPipeline.execute``; nothing else talks to the
accounting API directly.
"""

import asyncio
import logging
import re
import time
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

import httpx

from ledgerlink.core.config import SdkSettings
from ledgerlink.core.errors import (
    ApiError,
    NetworkError,
    NotFoundError,
    ParseError,
    RateLimitedError,
    ReauthRequiredError,
    ValidationError,
    WriteNotAllowedError,
    truncate,
)
from ledgerlink.core.logging import LoggerAdapter
from ledgerlink.models.wire import dumps, loads
from ledgerlink.services.auth import AuthManager
from ledgerlink.services.filters import check_header_value, check_literal
from ledgerlink.services.rate_limiter import RateLimiter, parse_retry_after, rate_limit_problem
from ledgerlink.services.retry import RetryCause, RetryState
from ledgerlink.services.tokens import Token

logger = logging.getLogger(__name__)

TENANT_HEADER = "xero-tenant-id"
IDEMPOTENCY_HEADER = "Idempotency-Key"
WRITE_METHODS = {"POST", "PUT", "PATCH", "DELETE"}
MAX_IDEMPOTENCY_KEY_LENGTH = 128

_IDEMPOTENCY_KEY = re.compile(r"^[\x21-\x7e]+$")

# Failures raised before any request byte can have left the machine
_NOT_SENT_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout, httpx.PoolTimeout)


def validate_idempotency_key(key: str) -> str:
    """Check an idempotency key before it is sent.

    Raises:
        ValidationError: If the key is empty, longer than 128 characters or
            contains anything but printable ASCII without spaces
    """
    if not key:
        raise ValidationError(["Idempotency key must not be empty"])
    if len(key) > MAX_IDEMPOTENCY_KEY_LENGTH:
        raise ValidationError(
            [f"Idempotency key exceeds {MAX_IDEMPOTENCY_KEY_LENGTH} characters ({len(key)})"]
        )
    if not _IDEMPOTENCY_KEY.match(key):
        raise ValidationError(["Idempotency key must be printable ASCII without spaces"])
    return key


def extract_validation_messages(body: Any) -> List[str]:
    """Collect ``ValidationErrors[*].Message`` from a 400 response body.

    Looks in ``Elements`` and in any other top-level array of records, then
    falls back to a top-level ``Message`` when no structured errors exist.
    """
    messages: List[str] = []
    if not isinstance(body, dict):
        return messages
    for value in body.values():
        if not isinstance(value, list):
            continue
        for element in value:
            if not isinstance(element, dict):
                continue
            for error in element.get("ValidationErrors") or []:
                if isinstance(error, dict) and error.get("Message"):
                    messages.append(str(error["Message"]))
    if not messages and body.get("Message") and body.get("Type") == "ValidationException":
        messages.append(str(body["Message"]))
    return messages


def error_message(response: httpx.Response) -> str:
    """Best diagnostic text for a failed response."""
    try:
        body = loads(response.text)
    except ValueError:
        return truncate(response.text)
    if isinstance(body, dict):
        for key in ("Message", "Detail", "Title", "message", "detail"):
            if body.get(key):
                return truncate(str(body[key]))
    return truncate(response.text)


def decode_json(response: httpx.Response) -> Any:
    """Decode a response body with exact decimals.

    Raises:
        ParseError: If the body is not valid JSON
    """
    text = response.text
    if not text.strip():
        return None
    try:
        return loads(text)
    except ValueError as e:
        raise ParseError(f"Failed to parse response: {e}; body: {truncate(text)}")


class RequestPipeline:
    """Executes API calls for one organisation connection.

    Example:
        ```python
        pipeline = RequestPipeline(auth, limiter, tenant_id="...", settings=settings)
        response = await pipeline.execute("GET", "Invoices", query={"page": 1})
        ```
    """

    def __init__(
        self,
        auth: AuthManager,
        limiter: RateLimiter,
        tenant_id: Optional[str] = None,
        settings: Optional[SdkSettings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize RequestPipeline.

        Args:
            auth: Source of bearer tokens
            limiter: Shared rate limiter for this connection
            tenant_id: Organisation id sent in the tenant header
            settings: SDK settings; defaults to ``SdkSettings()``
            http_client: Client to send with. Created lazily when omitted.
            sleep: Awaitable sleep used for backoff
            clock: Monotonic clock used for backoff
        """
        self.settings = settings or SdkSettings()
        self.auth = auth
        self.limiter = limiter
        self.tenant_id = tenant_id
        self.allow_writes = self.settings.allow_writes
        self.max_retries = self.settings.max_retries
        self.sleep = sleep
        self.clock = clock
        self._client = http_client
        self._owns_client = http_client is None

    # =========================================================================
    # HTTP client lifecycle
    # =========================================================================

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.settings.timeout))
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        if self._owns_client and self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    # =========================================================================
    # Public API
    # =========================================================================

    async def execute(
        self,
        method: str,
        path: str,
        query: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        body: Any = None,
        idempotency_key: Optional[str] = None,
        *,
        resource: Optional[str] = None,
        record_id: str = "",
        include_tenant: bool = True,
        timeout: Optional[float] = None,
    ) -> httpx.Response:
        """Send one API call with retries.

        Args:
            method: HTTP method
            path: Path under ``settings.base_url``, or an absolute URL
            query: Query parameters
            headers: Extra headers (e.g. ``If-Modified-Since``)
            body: JSON-compatible request body, encoded with exact decimals
            idempotency_key: Key the server deduplicates writes by. Without
                one, a write that may have reached the server is never retried.
            resource: Resource name reported by ``NotFoundError``
            record_id: Record id reported by ``NotFoundError``
            include_tenant: Send the tenant header (False for identity calls)
            timeout: Overall deadline in seconds, including waits

        Returns:
            The successful response

        Raises:
            WriteNotAllowedError: For a write while writes are disabled
            ValidationError: For rejected local input or a 400 with
                validation messages
            ReauthRequiredError: If the call is still unauthorized after one
                refresh
            RateLimitedError: If throttling outlasts the retry budget
            NotFoundError: For a 404
            NetworkError: For transport failures
            ApiError: For any other failure status
            asyncio.TimeoutError: If ``timeout`` elapses
        """
        coro = self._execute(
            method.upper(), path, query, headers, body, idempotency_key,
            resource or path, record_id, include_tenant,
        )
        if timeout is not None:
            return await asyncio.wait_for(coro, timeout)
        return await coro

    async def request_json(self, method: str, path: str, **kwargs: Any) -> Any:
        """``execute`` and decode the JSON body."""
        response = await self.execute(method, path, **kwargs)
        return decode_json(response)

    # =========================================================================
    # Internals
    # =========================================================================

    def _check_request(
        self,
        method: str,
        path: str,
        query: Optional[Mapping[str, Any]],
        idempotency_key: Optional[str],
    ) -> None:
        is_write = method in WRITE_METHODS
        if is_write and not self.allow_writes:
            raise WriteNotAllowedError(f"{method} {path} blocked: writes are disabled")
        check_header_value(path, "Request path")
        if idempotency_key is not None:
            validate_idempotency_key(idempotency_key)
        if is_write and query:
            for name, value in query.items():
                check_literal(str(value), f"Query parameter {name}")

    def _url(self, path: str) -> str:
        if path.startswith(("https://", "http://")):
            return path
        return f"{self.settings.base_url.rstrip('/')}/{path.lstrip('/')}"

    def _build_headers(
        self,
        token: Token,
        extra: Optional[Mapping[str, str]],
        idempotency_key: Optional[str],
        include_tenant: bool,
    ) -> Dict[str, str]:
        headers = {
            "Authorization": check_header_value(token.bearer(), "Access token"),
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if include_tenant:
            if not self.tenant_id:
                raise ValidationError(["No tenant id configured; choose a connection first"])
            headers[TENANT_HEADER] = check_header_value(self.tenant_id, "Tenant id")
        for name, value in (extra or {}).items():
            headers[name] = check_header_value(value, f"Header {name}")
        if idempotency_key is not None:
            headers[IDEMPOTENCY_HEADER] = idempotency_key
        return headers

    async def _execute(
        self,
        method: str,
        path: str,
        query: Optional[Mapping[str, Any]],
        headers: Optional[Mapping[str, str]],
        body: Any,
        idempotency_key: Optional[str],
        resource: str,
        record_id: str,
        include_tenant: bool,
    ) -> httpx.Response:
        # All local checks run before the first permit, refresh or send
        self._check_request(method, path, query, idempotency_key)
        is_write = method in WRITE_METHODS
        content = dumps(body).encode("utf-8") if body is not None else None
        params = {k: str(v) for k, v in (query or {}).items() if v is not None}
        url = self._url(path)
        client = await self._get_client()
        state = RetryState(max_retries=self.max_retries)
        log = LoggerAdapter(logger, {"method": method, "path": path})

        while True:
            wait = state.wait_time(self.clock())
            if wait > 0:
                await self.sleep(wait)

            attempt = state.start_attempt()
            response: Optional[httpx.Response] = None
            failure: Optional[httpx.TransportError] = None
            async with await self.limiter.admit():
                token = await self.auth.get_valid_access_token()
                request_headers = self._build_headers(token, headers, idempotency_key, include_tenant)
                log.debug(f"Sending request (attempt {attempt}/{self.max_retries + 1})")
                try:
                    response = await client.request(
                        method, url, params=params, content=content, headers=request_headers
                    )
                except httpx.TransportError as e:
                    failure = e
                else:
                    self.limiter.record_response(response.headers, response.status_code)

            if failure is not None:
                sent = not isinstance(failure, _NOT_SENT_ERRORS)
                if is_write and sent and idempotency_key is None:
                    log.warning(f"Write failed after sending, not retried without an idempotency key: {failure}")
                    raise NetworkError(
                        f"{type(failure).__name__}: {failure}; the request may have reached the server"
                    )
                if not state.record_failure(RetryCause.TRANSIENT, self.clock()):
                    raise NetworkError(f"{type(failure).__name__}: {failure}")
                log.warning(
                    f"Transport error: {failure}. Retrying in {state.wait_time(self.clock()):.1f}s"
                )
                continue

            status = response.status_code
            if response.is_success:
                return response

            if status == 401:
                if not state.record_failure(RetryCause.UNAUTHORIZED, self.clock()):
                    raise ReauthRequiredError("Request still unauthorized after refreshing the token")
                log.info("Unauthorized, refreshing token and retrying once")
                await self.auth.force_refresh(token)
                continue

            if status == 429:
                retry_after = parse_retry_after(response.headers, 60.0)
                if rate_limit_problem(response.headers) == "day":
                    raise RateLimitedError("Daily API limit reached", retry_after=int(retry_after))
                # The limiter already holds every caller until its resume time
                if not state.record_failure(RetryCause.THROTTLED, self.clock(), delay=0.0):
                    raise RateLimitedError(retry_after=int(retry_after))
                log.warning("Rate limited, waiting for the limiter before retrying")
                continue

            if status >= 500:
                message = error_message(response)
                if is_write and idempotency_key is None:
                    raise ApiError(status, message)
                if not state.record_failure(RetryCause.TRANSIENT, self.clock()):
                    raise ApiError(status, message)
                log.warning(
                    f"Server error ({status}). Retrying in {state.wait_time(self.clock()):.1f}s"
                )
                continue

            self._raise_for_status(response, resource, record_id)

    def _raise_for_status(self, response: httpx.Response, resource: str, record_id: str) -> None:
        """Map a non-retryable failure response to an exception.

        Raises:
            ValidationError: For a 400 carrying validation messages
            NotFoundError: For a 404
            ApiError: For everything else
        """
        status = response.status_code
        if status == 400:
            try:
                body = loads(response.text)
            except ValueError:
                body = None
            messages = extract_validation_messages(body)
            if messages:
                raise ValidationError(messages)
        elif status == 404:
            raise NotFoundError(resource, record_id)
        raise ApiError(status, error_message(response))
