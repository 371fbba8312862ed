"""Payment model.

A payment settles exactly one document. On the wire that is one of four
sibling keys (``Invoice``, ``CreditNote``, ``Prepayment``, ``Overpayment``);
here it is the single ``target`` field holding one of four reference types.
"""

import uuid
from typing import Any, ClassVar, Dict, List, Optional, Union

from pydantic import SerializationInfo, model_validator

from ledgerlink.models.base import ValidationItem, WireModel
from ledgerlink.models.enums import CurrencyCode, PaymentStatus, PaymentType
from ledgerlink.models.wire import Money, WireDate, WireDateTime


class InvoiceRef(WireModel):
    WIRE_KEY: ClassVar[str] = "Invoice"
    invoice_id: Optional[uuid.UUID] = None
    invoice_number: Optional[str] = None


class CreditNoteRef(WireModel):
    WIRE_KEY: ClassVar[str] = "CreditNote"
    credit_note_id: Optional[uuid.UUID] = None
    credit_note_number: Optional[str] = None


class PrepaymentRef(WireModel):
    WIRE_KEY: ClassVar[str] = "Prepayment"
    prepayment_id: Optional[uuid.UUID] = None


class OverpaymentRef(WireModel):
    WIRE_KEY: ClassVar[str] = "Overpayment"
    overpayment_id: Optional[uuid.UUID] = None


PaymentTarget = Union[InvoiceRef, CreditNoteRef, PrepaymentRef, OverpaymentRef]

TARGET_TYPES = {ref.WIRE_KEY: ref for ref in (InvoiceRef, CreditNoteRef, PrepaymentRef, OverpaymentRef)}


class PaymentAccount(WireModel):
    account_id: Optional[uuid.UUID] = None
    code: Optional[str] = None
    name: Optional[str] = None


class Payment(WireModel):
    """A payment applied to an invoice, credit note, prepayment or overpayment."""
    payment_id: Optional[uuid.UUID] = None
    date: Optional[WireDate] = None
    amount: Optional[Money] = None
    currency_rate: Optional[Money] = None
    payment_type: Optional[PaymentType] = None
    status: Optional[PaymentStatus] = None
    reference: Optional[str] = None
    is_reconciled: Optional[bool] = None
    account: Optional[PaymentAccount] = None
    target: Optional[PaymentTarget] = None
    currency_code: Optional[CurrencyCode] = None
    bank_amount: Optional[Money] = None
    batch_payment_id: Optional[uuid.UUID] = None
    has_account: Optional[bool] = None
    has_validation_errors: Optional[bool] = None
    updated_date_utc: Optional[WireDateTime] = None
    validation_errors: Optional[List[ValidationItem]] = None

    @model_validator(mode="before")
    @classmethod
    def _collect_target(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        present = [key for key in TARGET_TYPES if data.get(key) is not None]
        if not present:
            return data
        if len(present) > 1:
            raise ValueError(
                f"payment must reference exactly one document, got {', '.join(present)}"
            )
        if data.get("target") is not None or data.get("Target") is not None:
            raise ValueError("payment target given twice")
        data = dict(data)
        key = present[0]
        value = data.pop(key)
        target_type = TARGET_TYPES[key]
        data["target"] = value if isinstance(value, target_type) else target_type.model_validate(value)
        return data

    def _reshape_wire(self, data: Dict[str, Any], info: SerializationInfo) -> Dict[str, Any]:
        if not info.by_alias or self.target is None:
            return data
        serialized = data.pop("Target", None)
        if serialized is not None:
            data[self.target.WIRE_KEY] = serialized
        return data

    @property
    def target_kind(self) -> Optional[str]:
        """Wire key of the settled document type, e.g. ``"Invoice"``."""
        return self.target.WIRE_KEY if self.target is not None else None

    @classmethod
    def new(
        cls,
        target: PaymentTarget,
        account: PaymentAccount,
        amount: Any,
        date: Any,
        **fields,
    ) -> "Payment":
        """Create a payment for submission with its required fields."""
        return cls(target=target, account=account, amount=amount, date=date, **fields)
