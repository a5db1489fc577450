"""Payment method modal screen."""

from __future__ import annotations

from rich.text import Text
from textual.app import ComposeResult
from textual.containers import Container, Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Static

from clubpos.checkout import PaymentOrchestrator
from clubpos.config import NOTICE_TIMEOUT_SECONDS
from clubpos.errors import EmptyCartError, ValidationError
from clubpos.models import PaymentForm, PaymentMethod
from clubpos.rendering import flow_title

_FIELD_GROUP_BY_METHOD = {
    PaymentMethod.CASH: "cash-fields",
    PaymentMethod.GCASH: "gcash-fields",
    PaymentMethod.BANKCARD: "bankcard-fields",
}


class PaymentModal(ModalScreen[None]):
    """Collect the payment method and its details, then save and print."""

    BINDINGS = [
        ("escape", "close", "Close"),
    ]

    CSS = """
    PaymentModal {
        align: center middle;
        background: $background 60%;
    }

    #payment-dialog {
        width: 64;
        height: auto;
        border: round $secondary;
        background: $panel;
        padding: 1 2;
    }

    #payment-title {
        text-style: bold;
        margin-bottom: 1;
        color: white;
    }

    #payment-summary {
        margin-bottom: 1;
        color: white;
    }

    .method-row, .action-row {
        height: auto;
    }

    .field-group {
        height: auto;
        margin-top: 1;
    }

    .action-row {
        margin-top: 1;
        align-horizontal: right;
    }
    """

    def __init__(self, orchestrator: PaymentOrchestrator, summary: Text) -> None:
        super().__init__(id="payment-modal")
        self.orchestrator = orchestrator
        self.summary = summary

    def compose(self) -> ComposeResult:
        flow = self.orchestrator.flow
        with Container(id="payment-dialog"):
            yield Static(flow_title(flow) if flow is not None else "Payment", id="payment-title")
            yield Static(self.summary, id="payment-summary")
            with Horizontal(classes="method-row"):
                yield Button("Cash", id="method-cash")
                yield Button("GCash", id="method-gcash")
                yield Button("Bank/Card", id="method-bankcard")
            with Vertical(id="cash-fields", classes="field-group"):
                yield Static("Amount Received (optional)")
                yield Input(placeholder="0.00", id="amount-received")
            with Vertical(id="gcash-fields", classes="field-group"):
                yield Static("GCash Number")
                yield Input(placeholder="09xxxxxxxxx", id="gcash-number")
                yield Static("GCash Reference (Txn ID)")
                yield Input(id="gcash-ref")
            with Vertical(id="bankcard-fields", classes="field-group"):
                yield Static("Bank or Card (last4)")
                yield Input(placeholder="Bank or Card last4", id="bank-card")
                yield Static("Reference / Auth")
                yield Input(id="bank-ref")
            with Horizontal(classes="action-row"):
                yield Button("Cancel", id="payment-cancel")
                yield Button("Save & Print", id="payment-save", variant="primary")

    def on_mount(self) -> None:
        self._select_method(PaymentMethod.CASH)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        button_id = event.button.id or ""
        event.stop()
        if button_id.startswith("method-"):
            self._select_method(PaymentMethod(button_id.removeprefix("method-")))
            return
        if button_id == "payment-cancel":
            self.action_close()
            return
        if button_id == "payment-save":
            if self.orchestrator.busy or event.button.disabled:
                return
            event.button.disabled = True
            self.run_worker(self._save(), group="payment-save")

    def action_close(self) -> None:
        if self.orchestrator.busy:
            return
        self.orchestrator.cancel()
        self.dismiss(None)

    def _select_method(self, method: PaymentMethod) -> None:
        self.orchestrator.select_method(method)
        # Switching method starts the per-method fields from scratch.
        for field in self.query(Input):
            field.value = ""
        for group_method, group_id in _FIELD_GROUP_BY_METHOD.items():
            self.query_one(f"#{group_id}").display = group_method == method
        for group_method in PaymentMethod:
            button = self.query_one(f"#method-{group_method.value}", Button)
            button.variant = "success" if group_method == method else "default"

    def _form(self) -> PaymentForm:
        def value(field_id: str) -> str:
            return self.query_one(f"#{field_id}", Input).value

        return PaymentForm(
            amount_received=value("amount-received"),
            gcash_number=value("gcash-number"),
            gcash_ref=value("gcash-ref"),
            bank_card=value("bank-card"),
            bank_ref=value("bank-ref"),
        )

    async def _save(self) -> None:
        save_button = self.query_one("#payment-save", Button)
        flow = self.orchestrator.flow
        method = self.orchestrator.method
        try:
            result = await self.orchestrator.checkout(self._form())
        finally:
            save_button.disabled = False

        if result.ok:
            self.app.notify(result.message, timeout=NOTICE_TIMEOUT_SECONDS)
            self.dismiss(None)
            return

        if isinstance(result.error, (ValidationError, EmptyCartError)):
            # Blocking message; the modal stays open for correction.
            self.app.notify(result.message, severity="warning")
            return

        self.app.notify(result.message, severity="error", timeout=10)
        if result.saved or flow is None:
            self.dismiss(None)
            return
        # Nothing was persisted: stay open with the typed details for another attempt.
        self.orchestrator.open(flow)
        self.orchestrator.select_method(method)
