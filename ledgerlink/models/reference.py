"""Reference data: currencies, tax rates, items, organisations, connections."""

import uuid
from typing import List, Optional

from pydantic import Field

from ledgerlink.models.base import CamelModel, WireModel
from ledgerlink.models.enums import CurrencyCode, TaxRateStatus
from ledgerlink.models.wire import Money, WireDateTime


class Currency(WireModel):
    code: Optional[CurrencyCode] = None
    description: Optional[str] = None


class TaxComponent(WireModel):
    name: Optional[str] = None
    rate: Optional[Money] = None
    is_compound: Optional[bool] = None
    is_non_recoverable: Optional[bool] = None


class TaxRate(WireModel):
    name: Optional[str] = None
    tax_type: Optional[str] = None
    tax_components: Optional[List[TaxComponent]] = None
    status: Optional[TaxRateStatus] = None
    report_tax_type: Optional[str] = None
    can_apply_to_assets: Optional[bool] = None
    can_apply_to_equity: Optional[bool] = None
    can_apply_to_expenses: Optional[bool] = None
    can_apply_to_liabilities: Optional[bool] = None
    can_apply_to_revenue: Optional[bool] = None
    display_tax_rate: Optional[Money] = None
    effective_rate: Optional[Money] = None


class ItemDetails(WireModel):
    unit_price: Optional[Money] = None
    account_code: Optional[str] = None
    cogs_account_code: Optional[str] = Field(default=None, alias="COGSAccountCode")
    tax_type: Optional[str] = None


class Item(WireModel):
    """A product or service sold or purchased."""
    item_id: Optional[uuid.UUID] = None
    code: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    purchase_description: Optional[str] = None
    is_sold: Optional[bool] = None
    is_purchased: Optional[bool] = None
    is_tracked_as_inventory: Optional[bool] = None
    purchase_details: Optional[ItemDetails] = None
    sales_details: Optional[ItemDetails] = None
    total_cost_pool: Optional[Money] = None
    quantity_on_hand: Optional[Money] = None
    updated_date_utc: Optional[WireDateTime] = None


class Organisation(WireModel):
    """The organisation behind a tenant connection."""
    organisation_id: Optional[uuid.UUID] = None
    name: Optional[str] = None
    legal_name: Optional[str] = None
    pays_tax: Optional[bool] = None
    version: Optional[str] = None
    organisation_type: Optional[str] = None
    base_currency: Optional[CurrencyCode] = None
    country_code: Optional[str] = None
    is_demo_company: Optional[bool] = None
    organisation_status: Optional[str] = None
    tax_number: Optional[str] = None
    financial_year_end_day: Optional[int] = None
    financial_year_end_month: Optional[int] = None
    sales_tax_basis: Optional[str] = None
    default_sales_tax: Optional[str] = None
    default_purchases_tax: Optional[str] = None
    short_code: Optional[str] = None
    edition: Optional[str] = None
    created_date_utc: Optional[WireDateTime] = None


class Connection(CamelModel):
    """A tenant the signed-in user has authorised (identity API, camelCase)."""
    id: Optional[uuid.UUID] = None
    tenant_id: Optional[uuid.UUID] = None
    tenant_type: Optional[str] = None
    tenant_name: Optional[str] = None
    created_date_utc: Optional[WireDateTime] = None
    updated_date_utc: Optional[WireDateTime] = None
