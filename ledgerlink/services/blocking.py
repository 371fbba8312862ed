"""Synchronous wrapper around ``LedgerClient``.

For callers that cannot use ``await`` (scripts, synchronous CLI dispatch).
The wrapper runs a private event loop on a daemon thread and blocks the
calling thread on each operation. All shared state (credential, limiter,
HTTP connections) lives on that one loop, so the wrapper may be used from
several threads at once.
"""

import asyncio
import functools
import inspect
import logging
import threading
from typing import Any, Awaitable, Callable, List, Optional

from ledgerlink.core.config import SdkSettings
from ledgerlink.models.reference import Connection
from ledgerlink.services.client import LedgerClient
from ledgerlink.services.tokens import TokenPair

logger = logging.getLogger(__name__)


class BlockingResource:
    """Synchronous view of a resource API; coroutine methods block."""

    def __init__(self, resource: Any, run: Callable[[Awaitable[Any]], Any]):
        self._resource = resource
        self._run = run

    def __getattr__(self, name: str) -> Any:
        attr = getattr(self._resource, name)
        if not inspect.iscoroutinefunction(attr):
            return attr

        @functools.wraps(attr)
        def call(*args: Any, **kwargs: Any) -> Any:
            return self._run(attr(*args, **kwargs))

        return call


class BlockingClient:
    """Blocking counterpart of ``LedgerClient``.

    Example:
        ```python
        with BlockingClient(SdkSettings(client_id="ABC123")) as client:
            client.select_tenant()
            invoices = client.invoices.list(cap=10, timeout=30)
        ```
    """

    RESOURCES = (
        "invoices", "credit_notes", "contacts", "payments", "bank_transactions",
        "accounts", "items", "currencies", "tax_rates", "journals", "organisation",
    )

    def __init__(
        self,
        settings: Optional[SdkSettings] = None,
        tenant_id: Optional[str] = None,
        client: Optional[LedgerClient] = None,
        **kwargs: Any,
    ):
        """Initialize BlockingClient.

        Args:
            settings: SDK settings for a new ``LedgerClient``
            tenant_id: Organisation to address
            client: Existing async client to wrap instead of building one
            **kwargs: Passed to ``LedgerClient``
        """
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run_loop, name="ledgerlink-loop", daemon=True)
        self._thread.start()
        self._closed = False
        self.inner = client or LedgerClient(settings, tenant_id=tenant_id, **kwargs)
        for name in self.RESOURCES:
            setattr(self, name, BlockingResource(getattr(self.inner, name), self._run))

    def _run_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    def _run(self, coro: Awaitable[Any]) -> Any:
        if self._closed:
            if inspect.iscoroutine(coro):
                coro.close()
            raise RuntimeError("BlockingClient is closed")
        if threading.current_thread() is self._thread:
            if inspect.iscoroutine(coro):
                coro.close()
            raise RuntimeError("BlockingClient cannot be called from its own event loop")
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result()

    # =========================================================================
    # Pass-through settings
    # =========================================================================

    @property
    def tenant_id(self) -> Optional[str]:
        return self.inner.tenant_id

    @tenant_id.setter
    def tenant_id(self, value: Optional[str]) -> None:
        self.inner.tenant_id = value

    @property
    def allow_writes(self) -> bool:
        return self.inner.allow_writes

    @allow_writes.setter
    def allow_writes(self, value: bool) -> None:
        self.inner.allow_writes = value

    # =========================================================================
    # Authentication and connections
    # =========================================================================

    def login_interactive(self, scopes: Optional[List[str]] = None, **kwargs: Any) -> TokenPair:
        return self._run(self.inner.login_interactive(scopes, **kwargs))

    def login_client_credentials(
        self,
        client_id: str,
        client_secret: str,
        scopes: Optional[List[str]] = None,
        timeout: Optional[float] = None,
    ) -> TokenPair:
        return self._run(self.inner.login_client_credentials(client_id, client_secret, scopes, timeout))

    def refresh(self) -> None:
        self._run(self.inner.refresh())

    def logout(self) -> None:
        self._run(self.inner.logout())

    def get_valid_access_token(self, timeout: Optional[float] = None):
        return self._run(self.inner.auth.get_valid_access_token(timeout))

    def connections(self, timeout: Optional[float] = None) -> List[Connection]:
        return self._run(self.inner.connections(timeout))

    def select_tenant(self, tenant_id: Optional[str] = None) -> Connection:
        return self._run(self.inner.select_tenant(tenant_id))

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def close(self) -> None:
        """Close the client and stop the background loop."""
        if self._closed:
            return
        try:
            self._run(self.inner.close())
        finally:
            self._closed = True
            self._loop.call_soon_threadsafe(self._loop.stop)
            self._thread.join()
            self._loop.close()
            logger.debug("Blocking client closed")

    def __enter__(self) -> "BlockingClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
