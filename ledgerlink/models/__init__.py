"""Wire models for the accounting API.

All record models are importable from here.
"""

from ledgerlink.models.account import Account
from ledgerlink.models.bank_transaction import BankAccountRef, BankTransaction, BankTransactionBuilder
from ledgerlink.models.base import ApiWarning, EntityCollection, Pagination, WireModel
from ledgerlink.models.common import Address, Allocation, LineItem, LineItemTracking, Phone
from ledgerlink.models.contact import Contact, ContactGroup
from ledgerlink.models.invoice import CreditNote, Invoice
from ledgerlink.models.journal import Journal, JournalLine
from ledgerlink.models.payment import (
    CreditNoteRef,
    InvoiceRef,
    OverpaymentRef,
    Payment,
    PaymentAccount,
    PrepaymentRef,
)
from ledgerlink.models.reference import Connection, Currency, Item, Organisation, TaxRate
from ledgerlink.models.wire import Money, WireDate, WireDateTime, WireEnum

__all__ = [
    "Account",
    "Address",
    "Allocation",
    "ApiWarning",
    "BankAccountRef",
    "BankTransaction",
    "BankTransactionBuilder",
    "Connection",
    "Contact",
    "ContactGroup",
    "CreditNote",
    "CreditNoteRef",
    "Currency",
    "EntityCollection",
    "Invoice",
    "InvoiceRef",
    "Item",
    "Journal",
    "JournalLine",
    "LineItem",
    "LineItemTracking",
    "Money",
    "Organisation",
    "OverpaymentRef",
    "Pagination",
    "Payment",
    "PaymentAccount",
    "Phone",
    "PrepaymentRef",
    "TaxRate",
    "WireDate",
    "WireDateTime",
    "WireEnum",
    "WireModel",
]
