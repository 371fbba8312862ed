"""Contact and contact group models.

A contact lists the groups it belongs to and a group lists its contacts, so
the two models refer to each other and are rebuilt once both exist.
"""

import uuid
from typing import List, Optional

from ledgerlink.models.base import ValidationItem, WireModel
from ledgerlink.models.common import Address, Attachment, ContactPerson, Phone
from ledgerlink.models.enums import ContactStatus, CurrencyCode
from ledgerlink.models.wire import Money, WireDateTime


class ContactBalance(WireModel):
    outstanding: Optional[Money] = None
    overdue: Optional[Money] = None


class ContactBalances(WireModel):
    accounts_receivable: Optional[ContactBalance] = None
    accounts_payable: Optional[ContactBalance] = None


class Contact(WireModel):
    """A customer or supplier."""
    contact_id: Optional[uuid.UUID] = None
    contact_number: Optional[str] = None
    account_number: Optional[str] = None
    contact_status: Optional[ContactStatus] = None
    name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email_address: Optional[str] = None
    bank_account_details: Optional[str] = None
    tax_number: Optional[str] = None
    accounts_receivable_tax_type: Optional[str] = None
    accounts_payable_tax_type: Optional[str] = None
    addresses: Optional[List[Address]] = None
    phones: Optional[List[Phone]] = None
    contact_persons: Optional[List[ContactPerson]] = None
    is_supplier: Optional[bool] = None
    is_customer: Optional[bool] = None
    default_currency: Optional[CurrencyCode] = None
    contact_groups: Optional[List["ContactGroup"]] = None
    balances: Optional[ContactBalances] = None
    has_attachments: Optional[bool] = None
    attachments: Optional[List[Attachment]] = None
    updated_date_utc: Optional[WireDateTime] = None
    validation_errors: Optional[List[ValidationItem]] = None

    @classmethod
    def new(cls, name: str, **fields) -> "Contact":
        """Create a contact for submission; ``Name`` is the one required field."""
        if not name or not name.strip():
            raise ValueError("contact name must not be empty")
        return cls(name=name, **fields)


class ContactGroup(WireModel):
    """A named group of contacts."""
    contact_group_id: Optional[uuid.UUID] = None
    name: Optional[str] = None
    status: Optional[str] = None
    contacts: Optional[List[Contact]] = None


Contact.model_rebuild()
ContactGroup.model_rebuild()
