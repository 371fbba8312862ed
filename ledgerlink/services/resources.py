"""Typed resource APIs.

Each API is a thin layer over the pipeline and paginator:
- ``list`` pages through the collection
- ``get`` fetches one record by id
- ``create`` (PUT), ``update`` (POST) and ``delete`` send writes, which the
  pipeline refuses unless writes are enabled

Request bodies use the same envelope as responses: ``{"Invoices": [...]}``.
"""

import logging
import uuid
from datetime import date, datetime
from typing import Any, Dict, Generic, List, Optional, Sequence, TypeVar, Union
from urllib.parse import quote

from ledgerlink.core.errors import NotFoundError, ParseError, ValidationError
from ledgerlink.models.account import Account
from ledgerlink.models.bank_transaction import BankTransaction
from ledgerlink.models.base import EntityCollection, WireModel
from ledgerlink.models.contact import Contact
from ledgerlink.models.invoice import CreditNote, Invoice
from ledgerlink.models.journal import Journal
from ledgerlink.models.payment import Payment
from ledgerlink.models.reference import Currency, Item, Organisation, TaxRate
from ledgerlink.services import filters
from ledgerlink.services.pagination import ListResult, PageMode, Paginator, ResourceSpec
from ledgerlink.services.pipeline import RequestPipeline

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=WireModel)

RecordId = Union[uuid.UUID, str, int]
DateLike = Union[date, str, None]


# =============================================================================
# Resource catalog
# =============================================================================

INVOICES = ResourceSpec("Invoices", Invoice, "Invoice", id_field="invoice_id", date_field="Date", delete_status="DELETED")
CREDIT_NOTES = ResourceSpec("CreditNotes", CreditNote, "CreditNote", id_field="credit_note_id", date_field="Date", delete_status="DELETED")
CONTACTS = ResourceSpec("Contacts", Contact, "Contact", id_field="contact_id", delete_status="ARCHIVED")
PAYMENTS = ResourceSpec("Payments", Payment, "Payment", id_field="payment_id", date_field="Date", delete_status="DELETED")
BANK_TRANSACTIONS = ResourceSpec(
    "BankTransactions", BankTransaction, "BankTransaction",
    id_field="bank_transaction_id", date_field="Date", delete_status="DELETED",
)
ACCOUNTS = ResourceSpec("Accounts", Account, "Account", id_field="account_id", mode=PageMode.NONE)
ITEMS = ResourceSpec("Items", Item, "Item", id_field="item_id", mode=PageMode.NONE)
CURRENCIES = ResourceSpec("Currencies", Currency, "Currency", mode=PageMode.NONE)
TAX_RATES = ResourceSpec("TaxRates", TaxRate, "TaxRate", mode=PageMode.NONE)
ORGANISATIONS = ResourceSpec("Organisations", Organisation, "Organisation", mode=PageMode.NONE, path="Organisation")
JOURNALS = ResourceSpec(
    "Journals", Journal, "Journal",
    id_field="journal_id", mode=PageMode.OFFSET, offset_field="journal_number",
)


def path_segment(record_id: RecordId) -> str:
    """Encode a record id for use as a URL path segment."""
    text = str(record_id).strip()
    if not text:
        raise ValidationError(["Record id must not be empty"])
    filters.check_literal(text, "Record id")
    return quote(text, safe="")


# =============================================================================
# Base APIs
# =============================================================================


class ListableResource(Generic[M]):
    """Resource that can be listed."""

    def __init__(self, spec: ResourceSpec, pipeline: RequestPipeline, paginator: Paginator):
        self.spec = spec
        self.pipeline = pipeline
        self.paginator = paginator

    async def list(
        self,
        where: Optional[str] = None,
        order: Optional[str] = None,
        page_size: Optional[int] = None,
        cap: Optional[int] = None,
        modified_since: Union[date, datetime, str, None] = None,
        date_from: DateLike = None,
        date_to: DateLike = None,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> ListResult:
        """List records.

        Args:
            where: Raw filter expression; build values with
                ``ledgerlink.services.filters`` so literals are checked
            order: Sort expression
            page_size: Records per page
            cap: Maximum records; None or 0 for all
            modified_since: Only records changed since then
            date_from: Inclusive lower bound on the resource's date field
            date_to: Inclusive upper bound on the resource's date field
            params: Extra query parameters
            timeout: Deadline in seconds for the whole listing

        Returns:
            ListResult of records
        """
        if (date_from is not None or date_to is not None) and not self.spec.date_field:
            raise ValidationError([f"{self.spec.name} cannot be filtered by date"])
        if self.spec.date_field:
            where = filters.combine(where, filters.date_between(self.spec.date_field, date_from, date_to))
        return await self.paginator.list(
            self.spec,
            where=where,
            order=order,
            page_size=page_size,
            cap=cap,
            modified_since=modified_since,
            params=params,
            timeout=timeout,
        )

    def _first(self, body: Any, missing_id: str) -> M:
        page = self._collection(body)
        if not page.items:
            raise NotFoundError(self.spec.label, missing_id)
        return page.items[0]

    def _collection(self, body: Any) -> EntityCollection:
        if not isinstance(body, dict):
            raise ParseError(f"Expected a JSON object for {self.spec.name}")
        try:
            return EntityCollection.from_envelope(body, self.spec.name, self.spec.model)
        except ValueError as e:
            raise ParseError(f"Failed to parse {self.spec.name} response: {e}")


class ReadOnlyResource(ListableResource[M]):
    """Resource that can be listed and fetched by id."""

    async def get(self, record_id: RecordId, timeout: Optional[float] = None) -> M:
        """Fetch one record.

        Raises:
            NotFoundError: If no record has this id
        """
        segment = path_segment(record_id)
        body = await self.pipeline.request_json(
            "GET",
            f"{self.spec.url_path}/{segment}",
            resource=self.spec.label,
            record_id=str(record_id),
            timeout=timeout,
        )
        return self._first(body, str(record_id))


class Resource(ReadOnlyResource[M]):
    """Resource supporting create, update and delete."""

    def _envelope(self, records: Sequence[WireModel]) -> Dict[str, Any]:
        return {self.spec.name: [record.to_wire(request=True) for record in records]}

    def _record_id(self, record: WireModel) -> str:
        value = getattr(record, self.spec.id_field, None) if self.spec.id_field else None
        if value is None:
            raise ValidationError([f"{self.spec.label} has no {self.spec.id_field}; pass record_id"])
        return str(value)

    async def create(
        self,
        record: M,
        idempotency_key: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> M:
        """Create one record and return the server's copy.

        Raises:
            WriteNotAllowedError: If writes are disabled
            ValidationError: If the server rejects the record
        """
        created = await self.create_many([record], idempotency_key=idempotency_key, timeout=timeout)
        if not created:
            raise ParseError(f"Create {self.spec.label} returned no record")
        return created[0]

    async def create_many(
        self,
        records: Sequence[M],
        idempotency_key: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> List[M]:
        if not records:
            raise ValidationError([f"No {self.spec.name} to create"])
        body = await self.pipeline.request_json(
            "PUT",
            self.spec.url_path,
            body=self._envelope(records),
            idempotency_key=idempotency_key,
            resource=self.spec.label,
            timeout=timeout,
        )
        return list(self._collection(body).items)

    async def update(
        self,
        record: M,
        record_id: Optional[RecordId] = None,
        idempotency_key: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> M:
        """Update a record; the id comes from ``record`` unless given.

        Raises:
            WriteNotAllowedError: If writes are disabled
            NotFoundError: If the record does not exist
        """
        target = str(record_id) if record_id is not None else self._record_id(record)
        body = await self.pipeline.request_json(
            "POST",
            f"{self.spec.url_path}/{path_segment(target)}",
            body=self._envelope([record]),
            idempotency_key=idempotency_key,
            resource=self.spec.label,
            record_id=target,
            timeout=timeout,
        )
        return self._first(body, target)

    async def delete(
        self,
        record_id: RecordId,
        idempotency_key: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> Optional[M]:
        """Delete (or void/archive, as the resource requires) a record.

        Returns:
            The updated record for status-based deletes, None for HTTP DELETE
        """
        target = str(record_id)
        path = f"{self.spec.url_path}/{path_segment(target)}"
        if not self.spec.delete_status:
            await self.pipeline.execute(
                "DELETE",
                path,
                idempotency_key=idempotency_key,
                resource=self.spec.label,
                record_id=target,
                timeout=timeout,
            )
            return None
        body = await self.pipeline.request_json(
            "POST",
            path,
            body={self.spec.name: [{"Status": self.spec.delete_status}]},
            idempotency_key=idempotency_key,
            resource=self.spec.label,
            record_id=target,
            timeout=timeout,
        )
        return self._first(body, target)


# =============================================================================
# Resource specific APIs
# =============================================================================


class InvoicesApi(Resource[Invoice]):
    async def get_by_number(self, number: str, timeout: Optional[float] = None) -> Invoice:
        """Fetch an invoice by its invoice number.

        Raises:
            ValidationError: If ``number`` contains filter-breaking characters
            NotFoundError: If no invoice has this number
        """
        where = filters.equals("InvoiceNumber", number)
        body = await self.pipeline.request_json(
            "GET",
            self.spec.url_path,
            query={"where": where},
            resource=self.spec.label,
            record_id=number,
            timeout=timeout,
        )
        return self._first(body, number)


class ContactsApi(Resource[Contact]):
    async def search(
        self,
        term: str,
        cap: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> ListResult:
        """Search contacts by name, email or account number."""
        filters.check_literal(term, "Search term")
        return await self.list(cap=cap, params={"searchTerm": term}, timeout=timeout)


class OrganisationApi(ListableResource[Organisation]):
    async def get(self, timeout: Optional[float] = None) -> Organisation:
        """Fetch the connected organisation."""
        body = await self.pipeline.request_json(
            "GET", self.spec.url_path, resource=self.spec.label, timeout=timeout
        )
        return self._first(body, "")
