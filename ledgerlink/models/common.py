"""Shapes shared by several accounting resources."""

import uuid
from typing import List, Optional

from ledgerlink.models.base import WireModel
from ledgerlink.models.enums import AddressType, PhoneType
from ledgerlink.models.wire import Money, WireDate


class LineItemTracking(WireModel):
    """Tracking category option applied to a line item."""
    name: Optional[str] = None
    option: Optional[str] = None
    tracking_category_id: Optional[uuid.UUID] = None
    tracking_option_id: Optional[uuid.UUID] = None


class LineItem(WireModel):
    """A line on an invoice, credit note or bank transaction."""
    line_item_id: Optional[uuid.UUID] = None
    description: Optional[str] = None
    quantity: Optional[Money] = None
    unit_amount: Optional[Money] = None
    item_code: Optional[str] = None
    account_code: Optional[str] = None
    account_id: Optional[uuid.UUID] = None
    tax_type: Optional[str] = None
    tax_amount: Optional[Money] = None
    line_amount: Optional[Money] = None
    discount_rate: Optional[Money] = None
    discount_amount: Optional[Money] = None
    tracking: Optional[List[LineItemTracking]] = None


class AllocationInvoice(WireModel):
    invoice_id: Optional[uuid.UUID] = None
    invoice_number: Optional[str] = None


class Allocation(WireModel):
    """Part of a credit note, prepayment or overpayment applied to an invoice."""
    amount: Optional[Money] = None
    date: Optional[WireDate] = None
    invoice: Optional[AllocationInvoice] = None
    is_deleted: Optional[bool] = None
    status_attribute_string: Optional[str] = None


class Attachment(WireModel):
    attachment_id: Optional[uuid.UUID] = None
    file_name: Optional[str] = None
    url: Optional[str] = None
    mime_type: Optional[str] = None
    content_length: Optional[int] = None
    include_online: Optional[bool] = None


class Address(WireModel):
    address_type: Optional[AddressType] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    address_line3: Optional[str] = None
    address_line4: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    attention_to: Optional[str] = None


class Phone(WireModel):
    phone_type: Optional[PhoneType] = None
    phone_number: Optional[str] = None
    phone_area_code: Optional[str] = None
    phone_country_code: Optional[str] = None


class ContactPerson(WireModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email_address: Optional[str] = None
    include_in_emails: Optional[bool] = None
