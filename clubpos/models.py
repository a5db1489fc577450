"""Domain models for clubpos."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Union

from clubpos.constant import RESOURCE_FIELD_ALIASES


class CheckoutFlow(str, Enum):
    """Checkout variant: close out only, or close out and deduct stock."""

    BILLOUT = "billout"
    PROCEED = "proceed"


class PaymentMethod(str, Enum):
    CASH = "cash"
    GCASH = "gcash"
    BANKCARD = "bankcard"


def to_number(value: Any) -> float:
    """Coerce backend/form input to a finite float, falling back to 0."""
    if isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number):
        return 0.0
    return number


def _first_present(row: Mapping[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = row.get(key)
        if value is not None and value != "":
            return value
    return None


@dataclass(frozen=True)
class MenuItem:
    """A searchable menu item."""

    item_id: int
    name: str
    price: float
    aliases: tuple[str, ...] = ()


@dataclass(frozen=True)
class ReservationResource:
    """A reservable table with its surcharge, as fetched from the backend."""

    id: int | str
    name: str = ""
    table_number: str = ""
    party_size: int = 0
    status: str = ""
    price: float = 0.0

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> ReservationResource | None:
        """Normalize one heterogeneous backend row; returns None when the row has no id."""
        resource_id = _first_present(row, RESOURCE_FIELD_ALIASES["id"])
        if resource_id is None:
            return None
        name = _first_present(row, RESOURCE_FIELD_ALIASES["name"])
        table_number = _first_present(row, RESOURCE_FIELD_ALIASES["table_number"])
        status = _first_present(row, RESOURCE_FIELD_ALIASES["status"])
        return cls(
            id=resource_id,
            name=str(name) if name is not None else "",
            table_number=str(table_number) if table_number is not None else "",
            party_size=int(to_number(_first_present(row, RESOURCE_FIELD_ALIASES["party_size"]))),
            status=str(status) if status is not None else "",
            price=to_number(_first_present(row, RESOURCE_FIELD_ALIASES["price"])),
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ReservationResource | None:
        """Read back the persisted shape (same keys as the backend's canonical row)."""
        return cls.from_row(data)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "table_number": self.table_number,
            "party_size": self.party_size,
            "status": self.status,
            "price": self.price,
        }


@dataclass
class CartLine:
    """One line of the working cart."""

    id: int
    name: str
    price: float
    qty: int = 1

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "price": self.price, "qty": self.qty}


@dataclass(frozen=True)
class CashPayment:
    amount_received: float = 0.0
    method: PaymentMethod = field(default=PaymentMethod.CASH, init=False)

    def to_dict(self) -> dict[str, Any]:
        return {"method": self.method.value, "amount_received": self.amount_received}


@dataclass(frozen=True)
class GCashPayment:
    number: str
    reference: str
    method: PaymentMethod = field(default=PaymentMethod.GCASH, init=False)

    def to_dict(self) -> dict[str, Any]:
        return {"method": self.method.value, "gcash_number": self.number, "gcash_ref": self.reference}


@dataclass(frozen=True)
class BankCardPayment:
    card_or_bank_label: str
    reference: str
    method: PaymentMethod = field(default=PaymentMethod.BANKCARD, init=False)

    def to_dict(self) -> dict[str, Any]:
        return {"method": self.method.value, "bank_card": self.card_or_bank_label, "bank_ref": self.reference}


PaymentDetails = Union[CashPayment, GCashPayment, BankCardPayment]


@dataclass(frozen=True)
class PaymentForm:
    """Raw values typed into the payment modal."""

    amount_received: str = ""
    gcash_number: str = ""
    gcash_ref: str = ""
    bank_card: str = ""
    bank_ref: str = ""


def build_payment(method: PaymentMethod, form: PaymentForm) -> PaymentDetails:
    """Build payment details from raw form strings (trimmed; cash amount is lenient)."""
    if method == PaymentMethod.GCASH:
        return GCashPayment(number=form.gcash_number.strip(), reference=form.gcash_ref.strip())
    if method == PaymentMethod.BANKCARD:
        return BankCardPayment(card_or_bank_label=form.bank_card.strip(), reference=form.bank_ref.strip())
    return CashPayment(amount_received=max(0.0, to_number(form.amount_received.strip() or 0)))


@dataclass(frozen=True)
class Totals:
    """Order totals as produced by the totals collaborator."""

    subtotal: float = 0.0
    service_charge: float = 0.0
    tax: float = 0.0
    discount_amount: float = 0.0
    table_price: float = 0.0
    payable: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return {
            "subtotal": self.subtotal,
            "serviceCharge": self.service_charge,
            "tax": self.tax,
            "discountAmount": self.discount_amount,
            "tablePrice": self.table_price,
            "payable": self.payable,
        }


@dataclass(frozen=True)
class SaleMeta:
    flow: CheckoutFlow
    cashier: str | None
    note: str
    timestamp: str
    attempt_id: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "flow": self.flow.value,
            "cashier": self.cashier,
            "note": self.note,
            "timestamp": self.timestamp,
            "attempt_id": self.attempt_id,
        }


@dataclass(frozen=True)
class SaleRecord:
    """Everything submitted for one checkout attempt."""

    cart: tuple[CartLine, ...]
    totals: Totals
    reservation: ReservationResource | None
    payment: PaymentDetails
    meta: SaleMeta

    def to_payload(self) -> dict[str, Any]:
        return {
            "cart": [line.to_dict() for line in self.cart],
            "totals": self.totals.to_dict(),
            "reserved": self.reservation.to_dict() if self.reservation is not None else None,
            "payment": self.payment.to_dict(),
            "meta": self.meta.to_dict(),
        }


@dataclass(frozen=True)
class ReceiptJob:
    """Data handed to the receipt renderer after a sale is saved."""

    cart: tuple[CartLine, ...]
    totals: Totals
    reserved: ReservationResource | None
    payment: PaymentDetails
    sale_id: int | str | None
