"""Bank transaction model and its builder."""

import uuid
from typing import Any, List, Optional

from ledgerlink.models.base import ValidationItem, WireModel
from ledgerlink.models.common import LineItem
from ledgerlink.models.contact import Contact
from ledgerlink.models.enums import (
    BankTransactionStatus,
    BankTransactionType,
    CurrencyCode,
    LineAmountTypes,
)
from ledgerlink.models.wire import Money, WireDate, WireDateTime


class BankAccountRef(WireModel):
    account_id: Optional[uuid.UUID] = None
    code: Optional[str] = None
    name: Optional[str] = None


class BankTransaction(WireModel):
    """Money spent or received through a bank account."""
    bank_transaction_id: Optional[uuid.UUID] = None
    type: Optional[BankTransactionType] = None
    contact: Optional[Contact] = None
    line_items: Optional[List[LineItem]] = None
    bank_account: Optional[BankAccountRef] = None
    is_reconciled: Optional[bool] = None
    date: Optional[WireDate] = None
    reference: Optional[str] = None
    currency_code: Optional[CurrencyCode] = None
    currency_rate: Optional[Money] = None
    url: Optional[str] = None
    status: Optional[BankTransactionStatus] = None
    line_amount_types: Optional[LineAmountTypes] = None
    sub_total: Optional[Money] = None
    total_tax: Optional[Money] = None
    total: Optional[Money] = None
    prepayment_id: Optional[uuid.UUID] = None
    overpayment_id: Optional[uuid.UUID] = None
    has_attachments: Optional[bool] = None
    updated_date_utc: Optional[WireDateTime] = None
    validation_errors: Optional[List[ValidationItem]] = None


class BankTransactionBuilder:
    """Assembles a ``BankTransaction`` for submission.

    The API requires a type, a bank account and at least one line item;
    ``build`` refuses to produce a transaction without them.

    Example:
        ```python
        txn = (
            BankTransactionBuilder(BankTransactionType.SPEND)
            .bank_account(BankAccountRef(code="090"))
            .contact(Contact(name="Acme"))
            .line_item(LineItem(description="Paper", unit_amount="12.50", account_code="400"))
            .build()
        )
        ```
    """

    def __init__(self, type: BankTransactionType):
        self._type = type
        self._bank_account: Optional[BankAccountRef] = None
        self._contact: Optional[Contact] = None
        self._line_items: List[LineItem] = []
        self._fields: dict = {}

    def bank_account(self, account: BankAccountRef) -> "BankTransactionBuilder":
        self._bank_account = account
        return self

    def contact(self, contact: Contact) -> "BankTransactionBuilder":
        self._contact = contact
        return self

    def line_item(self, item: LineItem) -> "BankTransactionBuilder":
        self._line_items.append(item)
        return self

    def set(self, **fields: Any) -> "BankTransactionBuilder":
        """Set any optional field by its Python name."""
        self._fields.update(fields)
        return self

    def build(self) -> BankTransaction:
        """Return the transaction.

        Raises:
            ValueError: If the bank account or line items are missing
        """
        if self._bank_account is None:
            raise ValueError("a bank transaction needs a bank account")
        if not self._line_items:
            raise ValueError("a bank transaction needs at least one line item")
        return BankTransaction(
            type=self._type,
            bank_account=self._bank_account,
            contact=self._contact,
            line_items=list(self._line_items),
            **self._fields,
        )
