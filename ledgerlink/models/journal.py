"""General ledger journal models.

Journals are the one collection paged by offset: each request returns up to
100 journals whose ``JournalNumber`` is greater than the ``offset`` parameter.
"""

import uuid
from typing import List, Optional

from ledgerlink.models.base import WireModel
from ledgerlink.models.common import LineItemTracking
from ledgerlink.models.enums import AccountType, JournalSourceType
from ledgerlink.models.wire import Money, WireDate, WireDateTime


class JournalLine(WireModel):
    journal_line_id: Optional[uuid.UUID] = None
    account_id: Optional[uuid.UUID] = None
    account_code: Optional[str] = None
    account_type: Optional[AccountType] = None
    account_name: Optional[str] = None
    description: Optional[str] = None
    net_amount: Optional[Money] = None
    gross_amount: Optional[Money] = None
    tax_amount: Optional[Money] = None
    tax_type: Optional[str] = None
    tax_name: Optional[str] = None
    tracking_categories: Optional[List[LineItemTracking]] = None


class Journal(WireModel):
    """A read-only ledger journal."""
    journal_id: Optional[uuid.UUID] = None
    journal_date: Optional[WireDate] = None
    journal_number: Optional[int] = None
    created_date_utc: Optional[WireDateTime] = None
    reference: Optional[str] = None
    source_id: Optional[uuid.UUID] = None
    source_type: Optional[JournalSourceType] = None
    journal_lines: Optional[List[JournalLine]] = None
