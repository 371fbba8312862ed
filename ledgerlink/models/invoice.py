"""Invoice and credit note models."""

import uuid
from typing import Any, List, Optional

from ledgerlink.models.base import ValidationItem, WireModel
from ledgerlink.models.common import Allocation, Attachment, LineItem
from ledgerlink.models.contact import Contact
from ledgerlink.models.enums import (
    CreditNoteStatus,
    CreditNoteType,
    CurrencyCode,
    InvoiceStatus,
    InvoiceType,
    LineAmountTypes,
)
from ledgerlink.models.payment import Payment
from ledgerlink.models.wire import Money, WireDate, WireDateTime


class Invoice(WireModel):
    """A sales (ACCREC) or purchase (ACCPAY) invoice."""
    invoice_id: Optional[uuid.UUID] = None
    type: Optional[InvoiceType] = None
    contact: Optional[Contact] = None
    line_items: Optional[List[LineItem]] = None
    date: Optional[WireDate] = None
    due_date: Optional[WireDate] = None
    line_amount_types: Optional[LineAmountTypes] = None
    invoice_number: Optional[str] = None
    reference: Optional[str] = None
    branding_theme_id: Optional[uuid.UUID] = None
    url: Optional[str] = None
    currency_code: Optional[CurrencyCode] = None
    currency_rate: Optional[Money] = None
    status: Optional[InvoiceStatus] = None
    sent_to_contact: Optional[bool] = None
    expected_payment_date: Optional[WireDate] = None
    planned_payment_date: Optional[WireDate] = None
    cis_deduction: Optional[Money] = None
    cis_rate: Optional[Money] = None
    sub_total: Optional[Money] = None
    total_tax: Optional[Money] = None
    total: Optional[Money] = None
    total_discount: Optional[Money] = None
    amount_due: Optional[Money] = None
    amount_paid: Optional[Money] = None
    amount_credited: Optional[Money] = None
    fully_paid_on_date: Optional[WireDate] = None
    payments: Optional[List[Payment]] = None
    has_attachments: Optional[bool] = None
    has_errors: Optional[bool] = None
    attachments: Optional[List[Attachment]] = None
    repeating_invoice_id: Optional[uuid.UUID] = None
    updated_date_utc: Optional[WireDateTime] = None
    validation_errors: Optional[List[ValidationItem]] = None
    status_attribute_string: Optional[str] = None

    @classmethod
    def new(
        cls,
        type: InvoiceType,
        contact: Contact,
        line_items: List[LineItem],
        **fields: Any,
    ) -> "Invoice":
        """Create an invoice for submission.

        Raises:
            ValueError: If no line items are given
        """
        if not line_items:
            raise ValueError("an invoice needs at least one line item")
        return cls(type=type, contact=contact, line_items=list(line_items), **fields)


class CreditNote(WireModel):
    """A credit note, optionally allocated against invoices."""
    credit_note_id: Optional[uuid.UUID] = None
    credit_note_number: Optional[str] = None
    type: Optional[CreditNoteType] = None
    contact: Optional[Contact] = None
    date: Optional[WireDate] = None
    due_date: Optional[WireDate] = None
    status: Optional[CreditNoteStatus] = None
    line_amount_types: Optional[LineAmountTypes] = None
    line_items: Optional[List[LineItem]] = None
    sub_total: Optional[Money] = None
    total_tax: Optional[Money] = None
    total: Optional[Money] = None
    remaining_credit: Optional[Money] = None
    currency_code: Optional[CurrencyCode] = None
    currency_rate: Optional[Money] = None
    reference: Optional[str] = None
    fully_paid_on_date: Optional[WireDate] = None
    allocations: Optional[List[Allocation]] = None
    payments: Optional[List[Payment]] = None
    has_attachments: Optional[bool] = None
    updated_date_utc: Optional[WireDateTime] = None
    validation_errors: Optional[List[ValidationItem]] = None
