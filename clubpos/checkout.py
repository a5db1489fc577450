"""Payment transaction orchestration for one checkout attempt at a time."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Protocol
from uuid import uuid4

from clubpos.debug_log import log_debug
from clubpos.errors import (
    EmptyCartError,
    InventoryAdjustFailed,
    PosError,
    ReceiptRenderFailed,
    SaveFailed,
    ValidationError,
)
from clubpos.models import (
    BankCardPayment,
    CartLine,
    CheckoutFlow,
    GCashPayment,
    PaymentDetails,
    PaymentForm,
    PaymentMethod,
    ReceiptJob,
    ReservationResource,
    SaleMeta,
    SaleRecord,
    Totals,
    build_payment,
)
from clubpos.sale_client import BackendReply


class CheckoutState(str, Enum):
    IDLE = "idle"
    METHOD_SELECTION = "method_selection"
    VALIDATING = "validating"
    SAVING = "saving"
    ADJUSTING_INVENTORY = "adjusting_inventory"
    RENDERING = "rendering"
    FAILED = "failed"


IN_FLIGHT_STATES = frozenset(
    {CheckoutState.SAVING, CheckoutState.ADJUSTING_INVENTORY, CheckoutState.RENDERING}
)


class SaleBackend(Protocol):
    async def save_sale(self, record: SaleRecord) -> BackendReply: ...

    async def update_stock(
        self,
        cart: list[CartLine],
        totals: Totals,
        reserved: ReservationResource | None,
        attempt_id: str,
    ) -> BackendReply: ...


class ReceiptRenderer(Protocol):
    def render(self, job: ReceiptJob) -> None: ...


def _no_cart() -> list[CartLine]:
    return []


def _zero_totals() -> Totals:
    return Totals()


def _no_reservation() -> ReservationResource | None:
    return None


def _noop() -> None:
    return None


def _no_cashier() -> str | None:
    return None


def _empty_note() -> str:
    return ""


@dataclass
class CheckoutCollaborators:
    """
    Capabilities the orchestrator needs from the rest of the app.

    Every field has a fallback so a partially wired app still behaves: an empty
    cart, zero totals, no reservation, no-op cart clearing/rendering, no cashier
    and an empty note.
    """

    get_cart: Callable[[], list[CartLine]] = _no_cart
    compute_totals: Callable[[], Totals] = _zero_totals
    get_reservation: Callable[[], ReservationResource | None] = _no_reservation
    clear_cart: Callable[[], None] = _noop
    render_cart: Callable[[], None] = _noop
    get_cashier: Callable[[], str | None] = _no_cashier
    get_note: Callable[[], str] = _empty_note


@dataclass(frozen=True)
class CheckoutResult:
    """Outcome of one `checkout()` call, ready to show to the user."""

    ok: bool
    message: str
    sale_id: int | str | None = None
    error: PosError | None = None
    saved: bool = False


StateListener = Callable[[CheckoutState], None]


def validate_payment(payment: PaymentDetails) -> None:
    """Reject non-cash payments whose required fields are blank."""
    if isinstance(payment, GCashPayment):
        if not payment.number.strip() or not payment.reference.strip():
            raise ValidationError("Enter GCash number and reference")
    elif isinstance(payment, BankCardPayment):
        if not payment.card_or_bank_label.strip() or not payment.reference.strip():
            raise ValidationError("Enter bank/card and reference")


@dataclass
class _Attempt:
    flow: CheckoutFlow
    method: PaymentMethod = PaymentMethod.CASH
    failures: list[PosError] = field(default_factory=list)


class PaymentOrchestrator:
    """
    Sequence validate, save, adjust inventory, render receipt and reset cart.

    Saving strictly precedes inventory adjustment, which strictly precedes
    rendering. A failed save aborts the attempt. Failures after the save are
    reported but never compensated: the sale stays persisted on the backend.
    Only one attempt can be in flight; this is a UI guard, not a lock.
    """

    def __init__(
        self,
        backend: SaleBackend,
        renderer: ReceiptRenderer,
        collaborators: CheckoutCollaborators | None = None,
    ) -> None:
        self._backend = backend
        self._renderer = renderer
        self._collab = collaborators or CheckoutCollaborators()
        self._state = CheckoutState.IDLE
        self._attempt: _Attempt | None = None
        self._listeners: list[StateListener] = []

    @property
    def state(self) -> CheckoutState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._state in IN_FLIGHT_STATES

    @property
    def flow(self) -> CheckoutFlow | None:
        return self._attempt.flow if self._attempt is not None else None

    @property
    def method(self) -> PaymentMethod:
        return self._attempt.method if self._attempt is not None else PaymentMethod.CASH

    def subscribe(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def open(self, flow: CheckoutFlow) -> None:
        """Start choosing a payment method for the given flow."""
        if self.busy:
            log_debug("checkout_open_blocked", state=self._state.value)
            return
        self._attempt = _Attempt(flow=flow)
        self._set_state(CheckoutState.METHOD_SELECTION)

    def select_method(self, method: PaymentMethod) -> None:
        if self._state != CheckoutState.METHOD_SELECTION or self._attempt is None:
            return
        self._attempt.method = method
        log_debug("checkout_method", method=method.value)

    def cancel(self) -> None:
        if self.busy:
            return
        self._attempt = None
        self._set_state(CheckoutState.IDLE)

    async def checkout(self, form: PaymentForm) -> CheckoutResult:
        """Run one attempt with the values typed into the payment form."""
        if self.busy:
            log_debug("checkout_blocked", reason="in_flight", state=self._state.value)
            return CheckoutResult(ok=False, message="A checkout is already in progress")
        if self._state != CheckoutState.METHOD_SELECTION or self._attempt is None:
            return CheckoutResult(ok=False, message="Choose Bill Out or Proceed first")

        attempt = self._attempt
        payment = build_payment(attempt.method, form)

        try:
            if attempt.flow == CheckoutFlow.PROCEED and attempt.method != PaymentMethod.CASH:
                self._set_state(CheckoutState.VALIDATING)
                validate_payment(payment)
            cart = list(self._collab.get_cart())
            if not cart:
                raise EmptyCartError("Cart is empty")
        except (ValidationError, EmptyCartError) as exc:
            log_debug("checkout_rejected", error=exc.message)
            self._set_state(CheckoutState.METHOD_SELECTION)
            return CheckoutResult(ok=False, message=exc.message, error=exc)

        record = self._build_record(attempt, cart, payment)
        log_debug("checkout_start", attempt_id=record.meta.attempt_id, flow=attempt.flow.value, lines=len(cart))

        self._set_state(CheckoutState.SAVING)
        try:
            return await self._commit(attempt, record)
        except BaseException as exc:
            # Cancelled or unexpected: release the in-flight guard, then propagate.
            log_debug(
                "checkout_aborted",
                attempt_id=record.meta.attempt_id,
                state=self._state.value,
                error=repr(exc),
            )
            self._set_state(CheckoutState.FAILED)
            self._attempt = None
            self._set_state(CheckoutState.IDLE)
            raise

    async def _commit(self, attempt: _Attempt, record: SaleRecord) -> CheckoutResult:
        """Save, adjust stock, render and reset; every step after the save is reported, never undone."""
        try:
            reply = await self._backend.save_sale(record)
        except SaveFailed as exc:
            return self._finish_failed(exc, message=f"Failed to save sale: {exc.diagnostic()}")

        sale_id = reply.sale_id
        log_debug("checkout_saved", attempt_id=record.meta.attempt_id, sale_id=sale_id)

        if attempt.flow == CheckoutFlow.PROCEED:
            self._set_state(CheckoutState.ADJUSTING_INVENTORY)
            try:
                await self._backend.update_stock(
                    list(record.cart), record.totals, record.reservation, record.meta.attempt_id
                )
            except InventoryAdjustFailed as exc:
                exc.sale_id = sale_id
                attempt.failures.append(exc)
                log_debug("checkout_stock_failed", sale_id=sale_id, error=exc.diagnostic())

        self._set_state(CheckoutState.RENDERING)
        job = ReceiptJob(
            cart=record.cart,
            totals=record.totals,
            reserved=record.reservation,
            payment=record.payment,
            sale_id=sale_id,
        )
        try:
            await asyncio.to_thread(self._renderer.render, job)
        except ReceiptRenderFailed as exc:
            attempt.failures.append(exc)
            log_debug("checkout_render_failed", sale_id=sale_id, error=exc.diagnostic())

        if attempt.failures:
            details = "; ".join(failure.diagnostic() for failure in attempt.failures)
            label = f"Sale saved (ID: {sale_id})" if sale_id is not None else "Sale saved"
            return self._finish_failed(
                attempt.failures[0],
                message=f"{label} but: {details}",
                sale_id=sale_id,
                saved=True,
            )

        self._collab.clear_cart()
        try:
            self._collab.render_cart()
        except Exception as exc:
            log_debug("checkout_render_cart_failed", error=repr(exc))
        self._attempt = None
        self._set_state(CheckoutState.IDLE)
        message = "Sale saved" + (f" (ID: {sale_id})" if sale_id is not None else "")
        log_debug("checkout_done", sale_id=sale_id)
        return CheckoutResult(ok=True, message=message, sale_id=sale_id, saved=True)

    def _build_record(self, attempt: _Attempt, cart: list[CartLine], payment: PaymentDetails) -> SaleRecord:
        meta = SaleMeta(
            flow=attempt.flow,
            cashier=self._collab.get_cashier(),
            note=self._collab.get_note() or "",
            timestamp=datetime.now(timezone.utc).isoformat(),
            attempt_id=uuid4().hex,
        )
        return SaleRecord(
            cart=tuple(cart),
            totals=self._collab.compute_totals(),
            reservation=self._collab.get_reservation(),
            payment=payment,
            meta=meta,
        )

    def _finish_failed(
        self,
        error: PosError,
        message: str,
        sale_id: int | str | None = None,
        saved: bool = False,
    ) -> CheckoutResult:
        log_debug("checkout_failed", error=error.diagnostic(), sale_id=sale_id)
        self._set_state(CheckoutState.FAILED)
        self._attempt = None
        self._set_state(CheckoutState.IDLE)
        return CheckoutResult(ok=False, message=message, sale_id=sale_id, error=error, saved=saved)

    def _set_state(self, state: CheckoutState) -> None:
        if state == self._state:
            return
        self._state = state
        log_debug("checkout_state", state=state.value)
        for listener in list(self._listeners):
            listener(state)
