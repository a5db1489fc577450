"""Order totals arithmetic."""

from __future__ import annotations

from typing import Iterable

from clubpos.config import SERVICE_CHARGE_RATE, TAX_RATE
from clubpos.models import CartLine, Totals


def _money(value: float) -> float:
    return round(float(value), 2)


def compute_numbers(
    cart: Iterable[CartLine],
    table_price: float = 0.0,
    discount_rate: float = 0.0,
    service_charge_rate: float = SERVICE_CHARGE_RATE,
    tax_rate: float = TAX_RATE,
) -> Totals:
    """
    Compute order totals.

    Service charge, tax and discount are all taken on the item subtotal; the
    reserved table surcharge is added on top of everything.
    """
    if not (0.0 <= discount_rate <= 1.0):
        raise ValueError("discount_rate must be between 0 and 1")

    subtotal = sum(line.price * line.qty for line in cart)
    service_charge = subtotal * service_charge_rate
    tax = subtotal * tax_rate
    discount_amount = subtotal * discount_rate
    payable = subtotal + service_charge + tax - discount_amount + table_price
    return Totals(
        subtotal=_money(subtotal),
        service_charge=_money(service_charge),
        tax=_money(tax),
        discount_amount=_money(discount_amount),
        table_price=_money(table_price),
        payable=_money(payable),
    )
