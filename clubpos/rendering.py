"""Rendering helpers for cart, totals, reservations and error messages."""

from __future__ import annotations

import json

from rich.text import Text

from clubpos.config import CURRENCY_SYMBOL
from clubpos.errors import NetworkTimeout, PosError
from clubpos.models import CartLine, CheckoutFlow, ReservationResource, Totals


def money(value: float) -> str:
    return f"{CURRENCY_SYMBOL}{value:,.2f}"


def badge_style(category: str) -> str:
    """Return a consistent badge style for category tags."""
    if category == "F":
        return "bold #ffffff on #b23a48"
    return "bold #0b1f0f on #5fbf72"


def format_cart_line(line: CartLine) -> Text:
    text = Text()
    text.append(f"{line.name}")
    text.append(f" x{line.qty}", style="bold")
    text.append(f"  {money(line.price * line.qty)}", style="dim")
    return text


def format_totals(totals: Totals) -> Text:
    rows = [
        ("Subtotal", totals.subtotal),
        ("Service charge", totals.service_charge),
        ("Tax", totals.tax),
    ]
    if totals.discount_amount:
        rows.append(("Discount", -totals.discount_amount))
    if totals.table_price:
        rows.append(("Reserved table", totals.table_price))

    text = Text()
    for label, value in rows:
        text.append(f"{label:<16}{money(value):>14}\n")
    text.append(f"{'Payable':<16}{money(totals.payable):>14}", style="bold")
    return text


def format_selection_summary(resource: ReservationResource) -> str:
    name = resource.name or "—"
    party = resource.party_size or "—"
    return f"Selected table: {name} (Party size: {party}, Price: {money(resource.price)})"


def format_resource_row(resource: ReservationResource) -> str:
    number = resource.table_number or str(resource.id)
    party = resource.party_size or "—"
    status = resource.status or "—"
    return f"{resource.name or '—':<16} #{number:<5} pax {party!s:<4} {status:<10} {resource.price:>9.2f}"


def format_payment_summary(totals: Totals, reservation: ReservationResource | None) -> Text:
    text = Text()
    text.append("Payable: ", style="bold")
    text.append(money(totals.payable))
    text.append("\nReservation: ", style="bold")
    if reservation is None:
        text.append("No reservation")
    else:
        text.append(f"{reservation.name or '—'} (Party: {reservation.party_size or '—'})")
    return text


def flow_title(flow: CheckoutFlow) -> str:
    if flow == CheckoutFlow.BILLOUT:
        return "Bill Out (Cash / Print)"
    return "Proceed (Payment)"


def describe_fetch_error(exc: PosError) -> str:
    """User-facing text for a failed table listing, including the server's reply."""
    if isinstance(exc, NetworkTimeout):
        return "Request timed out. Try again or check the server."
    if exc.response_body:
        body = exc.response_body
        try:
            body = json.dumps(json.loads(body), indent=2)
        except ValueError:
            pass
        status = f" (HTTP {exc.status_code})" if exc.status_code is not None else ""
        return f"Failed to load tables{status}: {body}"
    return f"Failed to load tables: {exc.message or 'Unknown error'}"
