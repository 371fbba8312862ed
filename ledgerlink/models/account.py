"""Chart of accounts model."""

import uuid
from typing import Optional

from pydantic import Field

from ledgerlink.models.base import WireModel
from ledgerlink.models.enums import AccountClass, AccountStatus, AccountType, CurrencyCode
from ledgerlink.models.wire import WireDateTime


class Account(WireModel):
    """An account in the chart of accounts."""
    account_id: Optional[uuid.UUID] = None
    code: Optional[str] = None
    name: Optional[str] = None
    type: Optional[AccountType] = None
    bank_account_number: Optional[str] = None
    status: Optional[AccountStatus] = None
    description: Optional[str] = None
    bank_account_type: Optional[str] = None
    currency_code: Optional[CurrencyCode] = None
    tax_type: Optional[str] = None
    enable_payments_to_account: Optional[bool] = None
    show_in_expense_claims: Optional[bool] = None
    account_class: Optional[AccountClass] = Field(default=None, alias="Class")
    system_account: Optional[str] = None
    reporting_code: Optional[str] = None
    reporting_code_name: Optional[str] = None
    has_attachments: Optional[bool] = None
    add_to_watchlist: Optional[bool] = None
    updated_date_utc: Optional[WireDateTime] = None

