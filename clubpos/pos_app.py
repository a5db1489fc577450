"""Main Textual app class."""

from __future__ import annotations

from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.css.query import NoMatches
from textual.events import Key
from textual.reactive import reactive
from textual.screen import ModalScreen
from textual.widgets import Button, Checkbox, Header, Static

from clubpos import config
from clubpos.cart import Cart
from clubpos.checkout import CheckoutCollaborators, CheckoutState, PaymentOrchestrator
from clubpos.data import MENU_BY_CATEGORY, category_label, search_menu
from clubpos.debug_log import log_debug
from clubpos.models import CheckoutFlow, MenuItem, ReservationResource, Totals
from clubpos.payment_modal import PaymentModal
from clubpos.receipt import ReceiptPrinter, check_printer_dependencies
from clubpos.reconcile import ReconciliationObserver
from clubpos.rendering import badge_style, format_cart_line, format_payment_summary, format_totals
from clubpos.resource_client import ResourceClient
from clubpos.sale_client import SaleClient
from clubpos.selection import NavigationType, SelectionChanged, SelectionStore
from clubpos.session_store import SessionStore
from clubpos.tables_modal import TablesModal
from clubpos.totals import compute_numbers
from clubpos.widgets import ObservedRegion, ReservationControls, TimerHandle


class ClubPosApp(App):
    """A Textual app for composing orders, attaching a reserved table and checking out."""

    TITLE = "Club Tryara POS"
    SUB_TITLE = "Orders / Tables / Payment"

    CSS = """
    Screen {
        layout: vertical;
    }

    #main-layout {
        height: 1fr;
    }

    #order-section {
        width: 3fr;
        border: round $primary;
        padding: 1;
    }

    #search-pane {
        width: 2fr;
        border: round $secondary;
        padding: 1;
    }

    #search-bar {
        border: heavy $secondary;
        padding: 0 1;
        margin-bottom: 1;
        height: 4;
    }

    #results {
        height: 1fr;
        border: tall $surface;
        padding: 0 1;
    }

    #order-lines {
        height: 1fr;
        border: tall $surface;
        padding: 0 1;
    }

    #order-compute {
        height: auto;
        padding: 0 1;
        margin-top: 1;
    }

    #compute-actions {
        height: auto;
        margin-top: 1;
    }

    .pane-title {
        text-style: bold;
        margin-bottom: 1;
    }
    """

    input_state = reactive("normal")
    category = reactive("D")
    search_text = reactive("")
    selected_index = reactive(0)
    order_selected_index = reactive(None)

    BINDINGS = [
        ("tab", "cycle_results(1)", "Next result"),
        ("up", "cycle_results(-1)", "Previous result"),
        ("down", "cycle_results(1)", "Next result"),
        ("enter", "register_selected", "Add item"),
        ("backspace", "backspace_query", "Delete query char"),
        Binding("f2", "open_payment('billout')", "Bill Out", priority=True),
        Binding("f3", "open_payment('proceed')", "Proceed", priority=True),
        Binding("f5", "hard_reload", "Reload", priority=True),
        ("ctrl+c", "cancel_active_mode", "Exit active mode"),
        ("ctrl+q", "quit", "Quit"),
    ]

    def __init__(
        self,
        navigation: NavigationType | None = None,
        session_id: str = config.SESSION_ID,
        db_path: str = config.DB_PATH,
        base_url: str = config.API_BASE_URL,
    ) -> None:
        super().__init__()
        self.navigation = navigation or NavigationType.parse(config.NAVIGATION)
        self.cart = Cart()
        self.selection = SelectionStore(SessionStore(session_id, db_path=db_path))
        self.resource_client = ResourceClient(base_url=base_url)
        self.sale_client = SaleClient(base_url=base_url)
        self.checkout = PaymentOrchestrator(
            self.sale_client,
            ReceiptPrinter(),
            CheckoutCollaborators(
                get_cart=self.cart.snapshot,
                compute_totals=self._compute_totals,
                get_reservation=self.selection.current,
                clear_cart=self._clear_cart,
                render_cart=self._render_order,
                get_cashier=lambda: config.CASHIER_NAME,
            ),
        )
        self.system_status = ""
        self._controls: ReservationControls | None = None
        self._observer: ReconciliationObserver | None = None
        log_debug("app_init", navigation=self.navigation.value, session=session_id)

    def compose(self) -> ComposeResult:
        yield Header()
        with Horizontal(id="main-layout"):
            yield ObservedRegion(id="order-section")
            with Vertical(id="search-pane"):
                yield Static(id="search-bar")
                yield Static(id="results")

    def on_mount(self) -> None:
        _, msg = check_printer_dependencies()
        self.system_status = msg
        main_screen = self.screen
        self._controls = ReservationControls(main_screen)
        self._observer = ReconciliationObserver(
            self.selection,
            self._controls,
            schedule=lambda delay, callback: TimerHandle(self.set_timer(delay, callback)),
        )
        self.selection.subscribe(self._on_selection_changed)
        self.checkout.subscribe(self._on_checkout_state)
        self.selection.start(self.navigation)
        main_screen.query_one("#order-section", ObservedRegion).observe(self._observer.notify)
        log_debug("on_mount", printer_status=msg)
        self._render_order()
        self._refresh_search()

    async def on_unmount(self) -> None:
        if self._observer is not None:
            self._observer.disconnect()
        await self.resource_client.close()
        await self.sale_client.close()

    def on_key(self, event: Key) -> None:
        if isinstance(self.screen, ModalScreen):
            return

        if not event.is_printable or not event.character or len(event.character) != 1:
            return
        if self.input_state == "normal":
            self._handle_normal_key(event.character.lower(), event)
            return

        if not event.character.isprintable():
            return
        self.search_text += event.character
        self.selected_index = 0
        self._refresh_search()
        event.stop()

    def _handle_normal_key(self, key: str, event: Key) -> None:
        if key == "j":
            self._move_order_selection(1)
        elif key == "k":
            self._move_order_selection(-1)
        elif key == "x":
            self._delete_selected_line()
        elif key == "-":
            self._decrement_selected_line()
        elif key == "t":
            self._open_tables()
        elif key.upper() in MENU_BY_CATEGORY:
            self.category = key.upper()
            self.input_state = "active"
            self.search_text = ""
            self.selected_index = 0
            self._refresh_search()
        else:
            return
        event.stop()

    # Search and cart editing

    def action_cancel_active_mode(self) -> None:
        if isinstance(self.screen, ModalScreen):
            return
        if self.input_state == "normal":
            return

        self.input_state = "normal"
        self.search_text = ""
        self.selected_index = 0
        self._refresh_search()

    def action_cycle_results(self, delta: int) -> None:
        if isinstance(self.screen, ModalScreen):
            return
        if self.input_state != "active":
            return

        results = self._filtered_results()
        if not results:
            self.selected_index = 0
            self._refresh_results(results)
            return
        self.selected_index = (self.selected_index + delta) % len(results)
        self._refresh_results(results)

    def action_register_selected(self) -> None:
        if isinstance(self.screen, ModalScreen):
            return
        if self.input_state != "active":
            return

        results = self._filtered_results()
        if not results:
            return

        item = results[self.selected_index]
        self.cart.add(item)
        self.order_selected_index = next(
            idx for idx, line in enumerate(self.cart.lines) if line.id == item.item_id
        )
        self._render_order()

    def action_backspace_query(self) -> None:
        if isinstance(self.screen, ModalScreen):
            return
        if self.input_state != "active":
            return

        if not self.search_text:
            return
        self.search_text = self.search_text[:-1]
        self.selected_index = 0
        self._refresh_search()

    def _filtered_results(self) -> list[MenuItem]:
        return search_menu(self.category, self.search_text)

    def _move_order_selection(self, delta: int) -> None:
        if not self.cart.lines:
            return

        if self.order_selected_index is None:
            self.order_selected_index = 0 if delta > 0 else len(self.cart.lines) - 1
        else:
            self.order_selected_index = (self.order_selected_index + delta) % len(self.cart.lines)
        self._render_order()

    def _delete_selected_line(self) -> None:
        if self.order_selected_index is None:
            return
        idx = self.order_selected_index
        if self.cart.remove_at(idx) is None:
            self.order_selected_index = None
        elif not self.cart.lines:
            self.order_selected_index = None
        else:
            self.order_selected_index = min(idx, len(self.cart.lines) - 1)
        self._render_order()

    def _decrement_selected_line(self) -> None:
        if self.order_selected_index is None:
            return
        self.cart.decrement_at(self.order_selected_index)
        if not self.cart.lines:
            self.order_selected_index = None
        elif self.order_selected_index >= len(self.cart.lines):
            self.order_selected_index = len(self.cart.lines) - 1
        self._render_order()

    def _clear_cart(self) -> None:
        self.cart.clear()
        self.order_selected_index = None

    # Totals

    def _compute_totals(self) -> Totals:
        return compute_numbers(self.cart.snapshot(), table_price=self.selection.price)

    def _refresh_totals(self) -> None:
        try:
            compute = self.screen_stack[0].query_one("#order-compute", Static)
        except NoMatches:
            return
        compute.update(format_totals(self._compute_totals()))

    # Host rendering of the order section

    def _render_order(self) -> None:
        self.run_worker(self._rebuild_order_section(), exclusive=True, group="render-order")

    async def _rebuild_order_section(self) -> None:
        """Rewrite the whole order section; the reservation panel is not part of it."""
        try:
            region = self.screen_stack[0].query_one("#order-section", ObservedRegion)
        except NoMatches:
            return

        await region.remove_children()
        busy = self.checkout.busy
        await region.mount(
            Static("Order", classes="pane-title"),
            Static(self._order_lines_text(), id="order-lines"),
            Static(format_totals(self._compute_totals()), id="order-compute"),
            Horizontal(
                Button("Bill Out", id="bill-out-btn", disabled=busy),
                Button("Proceed", id="proceed-btn", variant="primary", disabled=busy),
                id="compute-actions",
            ),
        )

    def _order_lines_text(self) -> Text:
        if not self.cart.lines:
            return Text("(no items yet)")

        if self.order_selected_index is not None and self.order_selected_index >= len(self.cart.lines):
            self.order_selected_index = len(self.cart.lines) - 1

        lines = Text()
        for idx, line in enumerate(self.cart.lines):
            if idx > 0:
                lines.append("\n")
            pointer = "➤ " if idx == self.order_selected_index else "  "
            lines.append(pointer)
            lines.append(f"{idx + 1}. ")
            lines.append_text(format_cart_line(line))
        return lines

    # Reservation selection

    def _on_selection_changed(self, event: SelectionChanged) -> None:
        if self._controls is not None:
            if event.resource is not None:
                self._controls.show_selection(event.resource)
            else:
                self._controls.show_cleared()
        self._refresh_totals()

    def on_checkbox_changed(self, event: Checkbox.Changed) -> None:
        if event.checkbox.id != "use-reserved-table":
            return
        if self._controls is not None:
            self._controls.set_checked(event.value)
        if not event.value:
            self.selection.clear()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        button_id = event.button.id
        if button_id == "open-tables-btn":
            self._open_tables()
        elif button_id == "clear-selected-table":
            self.selection.clear()
        elif button_id == "bill-out-btn":
            self.action_open_payment(CheckoutFlow.BILLOUT.value)
        elif button_id == "proceed-btn":
            self.action_open_payment(CheckoutFlow.PROCEED.value)

    def _open_tables(self) -> None:
        if isinstance(self.screen, ModalScreen):
            return
        try:
            checkbox = self.screen_stack[0].query_one("#use-reserved-table", Checkbox)
        except NoMatches:
            return
        if not checkbox.value:
            self.system_status = 'Check "Customer has a reserved table" first'
            self._refresh_search()
            return
        self.push_screen(TablesModal(lambda: self.resource_client.fetch("available")), self._on_table_chosen)

    def _on_table_chosen(self, resource: ReservationResource | None) -> None:
        if resource is None:
            return
        self.selection.select(resource)

    # Checkout

    def action_open_payment(self, flow: str) -> None:
        if isinstance(self.screen, ModalScreen):
            return
        if self.checkout.busy:
            return
        self.checkout.open(CheckoutFlow(flow))
        summary = format_payment_summary(self._compute_totals(), self.selection.current())
        self.push_screen(PaymentModal(self.checkout, summary))

    def _on_checkout_state(self, state: CheckoutState) -> None:
        busy = self.checkout.busy
        for button_id in ("bill-out-btn", "proceed-btn"):
            try:
                self.screen_stack[0].query_one(f"#{button_id}", Button).disabled = busy
            except NoMatches:
                continue

    def action_hard_reload(self) -> None:
        """Start over as a full reload would: no cart, no persisted selection."""
        if self.checkout.busy or isinstance(self.screen, ModalScreen):
            return
        self.selection.start(NavigationType.RELOAD)
        self._clear_cart()
        if self._controls is not None:
            self._controls.show_cleared()
        self.system_status = "Reloaded"
        self._render_order()
        self._refresh_search()

    # Search pane

    def _refresh_search(self) -> None:
        self._refresh_search_bar()
        if self.input_state == "normal":
            self._refresh_results([])
            return
        self._refresh_results(self._filtered_results())

    def _refresh_search_bar(self) -> None:
        bar = self.query_one("#search-bar", Static)
        if self.input_state == "normal":
            status = self.system_status or "Ready"
            bar.update(f"D drinks, F food, T tables. F2 bill out, F3 proceed, F5 reload.\n{status}")
            return

        text = Text()
        text.append(self.category, style=badge_style(self.category))
        text.append(f" {category_label(self.category)}: {self.search_text}")
        bar.update(text)

    def _refresh_results(self, results: list[MenuItem]) -> None:
        results_widget = self.query_one("#results", Static)
        if self.input_state == "normal":
            results_widget.update("")
            return

        if not results:
            results_widget.update("No results")
            return

        if self.selected_index >= len(results):
            self.selected_index = 0

        lines = Text()
        for idx, item in enumerate(results):
            if idx > 0:
                lines.append("\n")
            pointer = "➤ " if idx == self.selected_index else "  "
            lines.append(f"{pointer}{item.name}")
            lines.append(f"  {item.price:,.2f}", style="dim")
        results_widget.update(lines)
