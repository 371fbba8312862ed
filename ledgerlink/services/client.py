"""Async client facade.

``LedgerClient`` owns one credential, one rate limiter and one HTTP client for
a single organisation connection, and exposes the typed resource APIs on top
of them.
"""

import logging
from typing import List, Optional

import httpx

from ledgerlink.core.config import SdkSettings
from ledgerlink.core.errors import NotFoundError, ParseError, ValidationError
from ledgerlink.models.reference import Connection
from ledgerlink.services.auth import AuthManager
from ledgerlink.services.pagination import Paginator
from ledgerlink.services.pipeline import RequestPipeline
from ledgerlink.services.rate_limiter import RateLimitConfig, RateLimiter
from ledgerlink.services.resources import (
    ACCOUNTS,
    BANK_TRANSACTIONS,
    CONTACTS,
    CREDIT_NOTES,
    CURRENCIES,
    INVOICES,
    ITEMS,
    JOURNALS,
    ORGANISATIONS,
    PAYMENTS,
    TAX_RATES,
    ContactsApi,
    InvoicesApi,
    ListableResource,
    OrganisationApi,
    ReadOnlyResource,
    Resource,
)
from ledgerlink.services.tokens import TokenPair

logger = logging.getLogger(__name__)


class LedgerClient:
    """Async client for one organisation connection.

    Example:
        ```python
        settings = SdkSettings(client_id="ABC123")
        async with LedgerClient(settings) as client:
            await client.select_tenant()
            result = await client.invoices.list(cap=50)
        ```
    """

    def __init__(
        self,
        settings: Optional[SdkSettings] = None,
        tenant_id: Optional[str] = None,
        auth: Optional[AuthManager] = None,
        limiter: Optional[RateLimiter] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        store=None,
    ):
        """Initialize LedgerClient.

        Args:
            settings: SDK settings; defaults to ``SdkSettings()``
            tenant_id: Organisation to address; see ``select_tenant``
            auth: Credential manager; built from ``settings`` when omitted
            limiter: Rate limiter; built from ``settings`` when omitted
            http_client: Client shared by API and token calls. Created lazily
                when omitted.
            store: Credential store handed to the default ``AuthManager``
        """
        self.settings = settings or SdkSettings()
        self.auth = auth or AuthManager(settings=self.settings, store=store, http_client=http_client)
        self.limiter = limiter or RateLimiter(RateLimitConfig.from_settings(self.settings))
        self.pipeline = RequestPipeline(
            self.auth,
            self.limiter,
            tenant_id=tenant_id,
            settings=self.settings,
            http_client=http_client,
        )
        self.paginator = Paginator(self.pipeline)

        self.invoices = InvoicesApi(INVOICES, self.pipeline, self.paginator)
        self.credit_notes = Resource(CREDIT_NOTES, self.pipeline, self.paginator)
        self.contacts = ContactsApi(CONTACTS, self.pipeline, self.paginator)
        self.payments = Resource(PAYMENTS, self.pipeline, self.paginator)
        self.bank_transactions = Resource(BANK_TRANSACTIONS, self.pipeline, self.paginator)
        self.accounts = Resource(ACCOUNTS, self.pipeline, self.paginator)
        self.items = Resource(ITEMS, self.pipeline, self.paginator)
        self.currencies = ListableResource(CURRENCIES, self.pipeline, self.paginator)
        self.tax_rates = ListableResource(TAX_RATES, self.pipeline, self.paginator)
        self.journals = ReadOnlyResource(JOURNALS, self.pipeline, self.paginator)
        self.organisation = OrganisationApi(ORGANISATIONS, self.pipeline, self.paginator)

    # =========================================================================
    # Settings passed through by consumers
    # =========================================================================

    @property
    def tenant_id(self) -> Optional[str]:
        return self.pipeline.tenant_id

    @tenant_id.setter
    def tenant_id(self, value: Optional[str]) -> None:
        self.pipeline.tenant_id = value

    @property
    def allow_writes(self) -> bool:
        return self.pipeline.allow_writes

    @allow_writes.setter
    def allow_writes(self, value: bool) -> None:
        self.pipeline.allow_writes = value

    # =========================================================================
    # Authentication
    # =========================================================================

    async def login_interactive(self, scopes: Optional[List[str]] = None, **kwargs) -> TokenPair:
        return await self.auth.login_interactive(scopes, **kwargs)

    async def login_client_credentials(
        self,
        client_id: str,
        client_secret: str,
        scopes: Optional[List[str]] = None,
        timeout: Optional[float] = None,
    ) -> TokenPair:
        return await self.auth.login_client_credentials(client_id, client_secret, scopes, timeout)

    async def refresh(self) -> None:
        await self.auth.refresh()

    async def logout(self) -> None:
        await self.auth.logout()

    # =========================================================================
    # Connections
    # =========================================================================

    async def connections(self, timeout: Optional[float] = None) -> List[Connection]:
        """List the organisations the credential is connected to.

        Raises:
            ParseError: If the identity endpoint returns an unexpected shape
        """
        body = await self.pipeline.request_json(
            "GET",
            self.settings.connections_url,
            include_tenant=False,
            resource="Connection",
            timeout=timeout,
        )
        if not isinstance(body, list):
            raise ParseError("Expected a JSON array of connections")
        try:
            return [Connection.model_validate(item) for item in body]
        except ValueError as e:
            raise ParseError(f"Failed to parse connections: {e}")

    async def select_tenant(self, tenant_id: Optional[str] = None) -> Connection:
        """Point the client at one connected organisation.

        Args:
            tenant_id: Organisation to select. May be omitted when the
                credential has exactly one connection.

        Raises:
            NotFoundError: If ``tenant_id`` is not among the connections
            ValidationError: If it is omitted and there is not exactly one
        """
        connections = await self.connections()
        if tenant_id is None:
            if len(connections) != 1:
                raise ValidationError(
                    [f"{len(connections)} connections available; pass tenant_id to choose one"]
                )
            chosen = connections[0]
        else:
            matches = [c for c in connections if str(c.tenant_id) == str(tenant_id)]
            if not matches:
                raise NotFoundError("Connection", str(tenant_id))
            chosen = matches[0]
        self.tenant_id = str(chosen.tenant_id)
        logger.info(f"Selected tenant {chosen.tenant_name or chosen.tenant_id}")
        return chosen

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def close(self) -> None:
        await self.pipeline.close()
        await self.auth.close()

    async def __aenter__(self) -> "LedgerClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
