"""Tests for PaymentOrchestrator - ordering, validation and failure handling."""

import asyncio

import pytest

from clubpos.checkout import CheckoutCollaborators, CheckoutState, PaymentOrchestrator, validate_payment
from clubpos.errors import (
    EmptyCartError,
    InventoryAdjustFailed,
    ReceiptRenderFailed,
    SaveFailed,
    ValidationError,
)
from clubpos.models import (
    BankCardPayment,
    CashPayment,
    CheckoutFlow,
    GCashPayment,
    PaymentForm,
    PaymentMethod,
)
from clubpos.sale_client import BackendReply
from clubpos.totals import compute_numbers


class FakeBackend:
    """Records calls in order; failures are injected per step."""

    def __init__(self, sale_id=42) -> None:
        self.sale_id = sale_id
        self.calls: list[str] = []
        self.records = []
        self.stock_calls = []
        self.save_error: Exception | None = None
        self.stock_error: Exception | None = None

    async def save_sale(self, record):
        self.calls.append("save")
        self.records.append(record)
        if self.save_error is not None:
            raise self.save_error
        return BackendReply(sale_id=self.sale_id, message="ok")

    async def update_stock(self, cart, totals, reserved, attempt_id):
        self.calls.append("stock")
        self.stock_calls.append((cart, totals, reserved, attempt_id))
        if self.stock_error is not None:
            raise self.stock_error
        return BackendReply(sale_id=None, message=None)


class FakeRenderer:
    def __init__(self, calls: list[str]) -> None:
        self.calls = calls
        self.jobs = []
        self.error: Exception | None = None

    def render(self, job) -> None:
        self.calls.append("render")
        self.jobs.append(job)
        if self.error is not None:
            raise self.error


class FakeCartHost:
    """Minimal cart owner wired through the collaborator callables."""

    def __init__(self, lines, reservation=None) -> None:
        self.lines = list(lines)
        self.reservation = reservation
        self.renders = 0

    def collaborators(self) -> CheckoutCollaborators:
        return CheckoutCollaborators(
            get_cart=lambda: list(self.lines),
            compute_totals=lambda: compute_numbers(
                self.lines,
                table_price=self.reservation.price if self.reservation is not None else 0.0,
            ),
            get_reservation=lambda: self.reservation,
            clear_cart=self.lines.clear,
            render_cart=self._render,
            get_cashier=lambda: "Ana",
        )

    def _render(self) -> None:
        self.renders += 1


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def renderer(backend) -> FakeRenderer:
    return FakeRenderer(backend.calls)


@pytest.fixture
def host(beer_line, reserved_table) -> FakeCartHost:
    return FakeCartHost([beer_line], reservation=reserved_table)


@pytest.fixture
def orchestrator(backend, renderer, host) -> PaymentOrchestrator:
    return PaymentOrchestrator(backend, renderer, host.collaborators())


class TestHappyPath:
    @pytest.mark.asyncio
    async def test_billout_cash_saves_and_renders_without_stock(self, orchestrator, backend, renderer, host):
        orchestrator.open(CheckoutFlow.BILLOUT)
        orchestrator.select_method(PaymentMethod.CASH)

        result = await orchestrator.checkout(PaymentForm(amount_received="1000"))

        assert result.ok
        assert backend.calls == ["save", "render"]
        assert host.lines == []
        assert host.renders == 1
        assert orchestrator.state == CheckoutState.IDLE
        assert renderer.jobs[0].payment == CashPayment(amount_received=1000.0)

    @pytest.mark.asyncio
    async def test_proceed_adjusts_stock_after_save(self, orchestrator, backend):
        orchestrator.open(CheckoutFlow.PROCEED)
        orchestrator.select_method(PaymentMethod.GCASH)

        result = await orchestrator.checkout(PaymentForm(gcash_number="09171234567", gcash_ref="TX-1"))

        assert result.ok
        assert backend.calls == ["save", "stock", "render"]
        _, _, _, attempt_id = backend.stock_calls[0]
        assert attempt_id == backend.records[0].meta.attempt_id

    @pytest.mark.asyncio
    async def test_reserved_table_scenario(self, orchestrator, backend, renderer, reserved_table):
        orchestrator.open(CheckoutFlow.BILLOUT)

        result = await orchestrator.checkout(PaymentForm())

        record = backend.records[0]
        assert record.totals.subtotal == 240.0
        assert record.totals.service_charge == 24.0
        assert record.totals.tax == pytest.approx(28.8)
        assert record.totals.payable == pytest.approx(792.8)
        assert record.reservation == reserved_table
        assert record.meta.cashier == "Ana"
        assert record.to_payload()["reserved"]["price"] == 500.0
        assert renderer.jobs[0].sale_id == 42
        assert result.message == "Sale saved (ID: 42)"

    @pytest.mark.asyncio
    async def test_each_attempt_gets_a_fresh_token(self, orchestrator, backend, host, beer_line):
        orchestrator.open(CheckoutFlow.BILLOUT)
        await orchestrator.checkout(PaymentForm())
        host.lines.append(beer_line)
        orchestrator.open(CheckoutFlow.BILLOUT)
        await orchestrator.checkout(PaymentForm())

        tokens = {record.meta.attempt_id for record in backend.records}
        assert len(tokens) == 2


class TestValidation:
    @pytest.mark.asyncio
    async def test_gcash_missing_reference_blocks_before_network(self, orchestrator, backend, host):
        orchestrator.open(CheckoutFlow.PROCEED)
        orchestrator.select_method(PaymentMethod.GCASH)

        result = await orchestrator.checkout(PaymentForm(gcash_number="0917", gcash_ref="   "))

        assert not result.ok
        assert isinstance(result.error, ValidationError)
        assert backend.calls == []
        assert orchestrator.state == CheckoutState.METHOD_SELECTION
        assert len(host.lines) == 1

    @pytest.mark.asyncio
    async def test_billout_does_not_validate_non_cash(self, orchestrator, backend):
        orchestrator.open(CheckoutFlow.BILLOUT)
        orchestrator.select_method(PaymentMethod.BANKCARD)

        result = await orchestrator.checkout(PaymentForm())

        assert result.ok
        assert backend.calls == ["save", "render"]

    @pytest.mark.asyncio
    async def test_empty_cart_is_rejected(self, backend, renderer):
        orchestrator = PaymentOrchestrator(backend, renderer, FakeCartHost([]).collaborators())
        orchestrator.open(CheckoutFlow.BILLOUT)

        result = await orchestrator.checkout(PaymentForm())

        assert isinstance(result.error, EmptyCartError)
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_checkout_without_open_is_rejected(self, orchestrator, backend):
        result = await orchestrator.checkout(PaymentForm())

        assert not result.ok
        assert backend.calls == []

    @pytest.mark.parametrize(
        "payment",
        [
            GCashPayment(number="", reference="ref"),
            BankCardPayment(card_or_bank_label="BPI", reference=""),
        ],
    )
    def test_validate_payment_rejects_blank_fields(self, payment):
        with pytest.raises(ValidationError):
            validate_payment(payment)

    def test_validate_payment_accepts_cash(self):
        validate_payment(CashPayment())


class TestFailures:
    @pytest.mark.asyncio
    async def test_save_failure_aborts(self, orchestrator, backend, host):
        backend.save_error = SaveFailed("Save failed: 500 Internal Server Error", status_code=500, response_body="boom")
        states = []
        orchestrator.subscribe(states.append)
        orchestrator.open(CheckoutFlow.PROCEED)

        result = await orchestrator.checkout(PaymentForm())

        assert not result.ok
        assert not result.saved
        assert backend.calls == ["save"]
        assert len(host.lines) == 1
        assert "boom" in result.message
        assert states[-2:] == [CheckoutState.FAILED, CheckoutState.IDLE]

    @pytest.mark.asyncio
    async def test_stock_failure_still_renders_and_keeps_cart(self, orchestrator, backend, host):
        backend.stock_error = InventoryAdjustFailed("Update stock failed: 500 Internal Server Error")
        orchestrator.open(CheckoutFlow.PROCEED)

        result = await orchestrator.checkout(PaymentForm())

        assert not result.ok
        assert result.saved
        assert result.sale_id == 42
        assert backend.calls == ["save", "stock", "render"]
        assert result.error.sale_id == 42
        assert result.message.startswith("Sale saved (ID: 42) but:")
        assert len(host.lines) == 1
        assert host.renders == 0
        assert orchestrator.state == CheckoutState.IDLE

    @pytest.mark.asyncio
    async def test_render_failure_is_reported_with_sale_id(self, orchestrator, backend, renderer):
        renderer.error = ReceiptRenderFailed("Printer offline")
        orchestrator.open(CheckoutFlow.BILLOUT)

        result = await orchestrator.checkout(PaymentForm())

        assert not result.ok
        assert result.saved
        assert "Printer offline" in result.message
        assert backend.calls == ["save", "render"]


class TestBusyGuard:
    @pytest.mark.asyncio
    async def test_second_attempt_while_saving_is_rejected(self, renderer, host):
        orchestrator_box = {}
        second_results = []

        class ReentrantBackend(FakeBackend):
            async def save_sale(self, record):
                second_results.append(await orchestrator_box["o"].checkout(PaymentForm()))
                return await super().save_sale(record)

        backend = ReentrantBackend()
        orchestrator = PaymentOrchestrator(backend, FakeRenderer(backend.calls), host.collaborators())
        orchestrator_box["o"] = orchestrator
        orchestrator.open(CheckoutFlow.BILLOUT)

        result = await orchestrator.checkout(PaymentForm())

        assert result.ok
        assert not second_results[0].ok
        assert backend.calls.count("save") == 1

    def test_open_while_busy_is_ignored(self, orchestrator):
        orchestrator._state = CheckoutState.SAVING

        orchestrator.open(CheckoutFlow.PROCEED)
        orchestrator.cancel()

        assert orchestrator.state == CheckoutState.SAVING


class TestAbortedAttempt:
    """An attempt that ends without a result still releases the in-flight guard."""

    @pytest.mark.asyncio
    async def test_cancelled_save_returns_to_idle(self, renderer, host):
        class StalledBackend(FakeBackend):
            def __init__(self) -> None:
                super().__init__()
                self.started = asyncio.Event()

            async def save_sale(self, record):
                self.calls.append("save")
                self.started.set()
                await asyncio.sleep(60)

        backend = StalledBackend()
        orchestrator = PaymentOrchestrator(backend, renderer, host.collaborators())
        orchestrator.open(CheckoutFlow.BILLOUT)

        task = asyncio.create_task(orchestrator.checkout(PaymentForm()))
        await backend.started.wait()
        assert orchestrator.busy
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert orchestrator.state == CheckoutState.IDLE
        assert not orchestrator.busy
        orchestrator.open(CheckoutFlow.PROCEED)
        assert orchestrator.state == CheckoutState.METHOD_SELECTION

    @pytest.mark.asyncio
    async def test_unexpected_error_propagates_and_releases_guard(self, orchestrator, backend, host):
        backend.save_error = RuntimeError("driver bug")
        states = []
        orchestrator.subscribe(states.append)
        orchestrator.open(CheckoutFlow.BILLOUT)

        with pytest.raises(RuntimeError):
            await orchestrator.checkout(PaymentForm())

        assert states[-2:] == [CheckoutState.FAILED, CheckoutState.IDLE]
        assert not orchestrator.busy
        assert orchestrator.flow is None
        assert len(host.lines) == 1

    @pytest.mark.asyncio
    async def test_unexpected_render_error_releases_guard(self, orchestrator, backend, renderer):
        renderer.error = OSError("usb gone")
        orchestrator.open(CheckoutFlow.BILLOUT)

        with pytest.raises(OSError):
            await orchestrator.checkout(PaymentForm())

        assert backend.calls == ["save", "render"]
        assert orchestrator.state == CheckoutState.IDLE
