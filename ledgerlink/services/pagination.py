"""Auto-pagination for list endpoints.

Three shapes exist:
- ``PAGED``: ``?page=N&pageSize=M`` with a ``pagination`` object in the
  envelope (invoices, contacts, payments, ...)
- ``OFFSET``: ``?offset=N`` returning up to 100 records numbered after N
  (journals)
- ``NONE``: everything in one response (accounts, currencies, tax rates, ...)

Pages are fetched one at a time, in order. A failure on any page discards
what was collected so far and propagates; callers that want bounded exposure
should pass a smaller ``cap``.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, AsyncIterator, Dict, Generic, List, Optional, Type, TypeVar, Union

from ledgerlink.core.errors import ParseError, ValidationError
from ledgerlink.models.base import ApiWarning, EntityCollection, Pagination, WireModel
from ledgerlink.services.pipeline import RequestPipeline

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 100
MAX_PAGE_SIZE = 1000
OFFSET_BATCH_SIZE = 100


class PageMode(str, Enum):
    PAGED = "paged"
    OFFSET = "offset"
    NONE = "none"


@dataclass(frozen=True)
class ResourceSpec:
    """Static description of one API resource family.

    Attributes:
        name: Plural resource name; used as the path and envelope key
        model: Record model
        label: Singular name reported in ``NotFoundError``
        id_field: Python field holding the record id
        mode: How the list endpoint pages
        offset_field: Python field carrying the offset cursor (``OFFSET`` only)
        path: URL path when it differs from ``name``
        date_field: Wire field the ``date_from``/``date_to`` filters apply to
        delete_status: Status that deletes a record by update; empty when the
            endpoint supports HTTP DELETE
    """

    name: str
    model: Type[WireModel]
    label: str
    id_field: str = ""
    mode: PageMode = PageMode.PAGED
    offset_field: str = ""
    path: str = ""
    date_field: str = ""
    delete_status: str = ""

    @property
    def url_path(self) -> str:
        return self.path or self.name


@dataclass
class PageCursor:
    """Position within one list call."""

    page: int = 1
    offset: int = 0
    fetched: int = 0
    pages: int = 0
    cap: Optional[int] = None

    @property
    def remaining(self) -> Optional[int]:
        if self.cap is None:
            return None
        return max(self.cap - self.fetched, 0)

    @property
    def reached_cap(self) -> bool:
        return self.cap is not None and self.fetched >= self.cap


@dataclass
class ListResult(Generic[T]):
    """Collected records with aggregate metadata.

    Attributes:
        items: Records in server order, at most ``cap`` of them
        pagination: Page metadata as last reported by the server (or
            synthesized for unpaged resources)
        pages_fetched: Number of requests made
        truncated: True when the cap stopped the listing while the server
            still had more records
    """

    items: List[T]
    pagination: Pagination
    pages_fetched: int = 0
    truncated: bool = False
    warnings: List[ApiWarning] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self):
        return iter(self.items)


def format_modified_since(value: Union[date, datetime, str]) -> str:
    """Value for the ``If-Modified-Since`` header (UTC, second precision)."""
    if isinstance(value, str):
        return value
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value.strftime("%Y-%m-%dT%H:%M:%S")
    return f"{value.isoformat()}T00:00:00"


def normalize_cap(cap: Optional[int]) -> Optional[int]:
    """None and 0 mean unbounded."""
    if cap is None or cap == 0:
        return None
    if cap < 0:
        raise ValidationError([f"cap must not be negative: {cap}"])
    return cap


class Paginator:
    """Drives repeated pipeline calls for list operations."""

    def __init__(self, pipeline: RequestPipeline):
        self.pipeline = pipeline

    async def list(
        self,
        resource: ResourceSpec,
        where: Optional[str] = None,
        order: Optional[str] = None,
        page_size: Optional[int] = None,
        cap: Optional[int] = None,
        modified_since: Union[date, datetime, str, None] = None,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> ListResult:
        """Fetch records until the server runs out or ``cap`` is reached.

        Args:
            resource: Resource to list
            where: Filter expression (see ``ledgerlink.services.filters``)
            order: Sort expression, e.g. ``"Date DESC"``
            page_size: Records per page for ``PAGED`` resources (1..1000)
            cap: Maximum records to return; None or 0 for no limit
            modified_since: Only records changed after this instant
            params: Extra query parameters
            timeout: Deadline in seconds for the whole listing

        Returns:
            ListResult with at most ``cap`` records in server order

        Raises:
            SdkError: From the first failing page; earlier pages are discarded
            asyncio.TimeoutError: If ``timeout`` elapses
        """
        coro = self._collect(resource, where, order, page_size, cap, modified_since, params)
        if timeout is not None:
            return await asyncio.wait_for(coro, timeout)
        return await coro

    async def pages(
        self,
        resource: ResourceSpec,
        where: Optional[str] = None,
        order: Optional[str] = None,
        page_size: Optional[int] = None,
        cap: Optional[int] = None,
        modified_since: Union[date, datetime, str, None] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> AsyncIterator[EntityCollection]:
        """Yield one ``EntityCollection`` per request, in order.

        The last page is trimmed so the total never exceeds ``cap``.
        """
        cursor = PageCursor(cap=normalize_cap(cap))
        size = self._page_size(resource, page_size)
        headers = {}
        if modified_since is not None:
            headers["If-Modified-Since"] = format_modified_since(modified_since)

        while True:
            query = self._query(resource, cursor, size, where, order, params)
            body = await self.pipeline.request_json(
                "GET",
                resource.url_path,
                query=query,
                headers=headers,
                resource=resource.label,
            )
            page = self._parse_page(resource, body)
            cursor.pages += 1
            batch = len(page.items)
            logger.debug(
                f"Fetched {resource.name} page {cursor.pages}: {batch} records "
                f"(total {cursor.fetched + batch})"
            )

            remaining = cursor.remaining
            if remaining is not None and batch > remaining:
                page = EntityCollection(
                    items=page.items[:remaining],
                    pagination=page.pagination,
                    warnings=page.warnings,
                )
            cursor.fetched += len(page.items)
            yield page

            if batch == 0 or cursor.reached_cap or not self._advance(resource, cursor, page, batch):
                return

    async def _collect(
        self,
        resource: ResourceSpec,
        where: Optional[str],
        order: Optional[str],
        page_size: Optional[int],
        cap: Optional[int],
        modified_since: Union[date, datetime, str, None],
        params: Optional[Dict[str, Any]],
    ) -> ListResult:
        items: List[Any] = []
        warnings: List[ApiWarning] = []
        last: Optional[EntityCollection] = None
        pages_fetched = 0
        async for page in self.pages(resource, where, order, page_size, cap, modified_since, params):
            items.extend(page.items)
            warnings.extend(page.warnings)
            last = page
            pages_fetched += 1

        cap = normalize_cap(cap)
        if resource.mode is PageMode.PAGED and last is not None:
            pagination = last.pagination
            truncated = cap is not None and len(items) >= cap and (
                pagination.has_more(pages_fetched) or (pagination.item_count or 0) > len(items)
            )
        else:
            pagination = Pagination(
                page=pages_fetched or 1,
                page_size=len(items) if resource.mode is PageMode.NONE else OFFSET_BATCH_SIZE,
                page_count=pages_fetched or 1,
                item_count=len(items),
            )
            truncated = False
        return ListResult(
            items=items,
            pagination=pagination,
            pages_fetched=pages_fetched,
            truncated=truncated,
            warnings=warnings,
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _page_size(resource: ResourceSpec, page_size: Optional[int]) -> int:
        if resource.mode is not PageMode.PAGED:
            return OFFSET_BATCH_SIZE
        if page_size is None:
            return DEFAULT_PAGE_SIZE
        if not 1 <= page_size <= MAX_PAGE_SIZE:
            raise ValidationError([f"page_size must be between 1 and {MAX_PAGE_SIZE}: {page_size}"])
        return page_size

    @staticmethod
    def _query(
        resource: ResourceSpec,
        cursor: PageCursor,
        size: int,
        where: Optional[str],
        order: Optional[str],
        params: Optional[Dict[str, Any]],
    ) -> Dict[str, Any]:
        query: Dict[str, Any] = dict(params or {})
        if where:
            query["where"] = where
        if order:
            query["order"] = order
        if resource.mode is PageMode.PAGED:
            query["page"] = cursor.page
            query["pageSize"] = size
        elif resource.mode is PageMode.OFFSET:
            query["offset"] = cursor.offset
        return query

    @staticmethod
    def _parse_page(resource: ResourceSpec, body: Any) -> EntityCollection:
        if not isinstance(body, dict):
            raise ParseError(f"Expected a JSON object for {resource.name}, got {type(body).__name__}")
        try:
            return EntityCollection.from_envelope(body, resource.name, resource.model)
        except ValueError as e:
            raise ParseError(f"Failed to parse {resource.name} response: {e}")

    @staticmethod
    def _advance(resource: ResourceSpec, cursor: PageCursor, page: EntityCollection, batch: int) -> bool:
        """Move the cursor; False when the server has nothing more."""
        if resource.mode is PageMode.NONE:
            return False
        if resource.mode is PageMode.OFFSET:
            if batch < OFFSET_BATCH_SIZE:
                return False
            last_number = getattr(page.items[-1], resource.offset_field, None)
            if last_number is None or last_number <= cursor.offset:
                return False
            cursor.offset = last_number
            return True
        if not page.pagination.has_more(cursor.page):
            return False
        cursor.page += 1
        return True
