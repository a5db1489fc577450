"""Tests for SaleClient - mocked sale and stock endpoints."""

import json

import httpx
import pytest
import respx

from clubpos.errors import InventoryAdjustFailed, SaveFailed
from clubpos.models import CashPayment, CheckoutFlow, SaleMeta, SaleRecord
from clubpos.sale_client import SaleClient
from clubpos.totals import compute_numbers

BASE_URL = "http://pos.test/ClubTryara"
SAVE_URL = f"{BASE_URL}/api/save_sale.php"
STOCK_URL = f"{BASE_URL}/api/update_stock.php"


@pytest.fixture
def client() -> SaleClient:
    return SaleClient(base_url=BASE_URL)


@pytest.fixture
def record(beer_line, reserved_table) -> SaleRecord:
    return SaleRecord(
        cart=(beer_line,),
        totals=compute_numbers([beer_line], table_price=reserved_table.price),
        reservation=reserved_table,
        payment=CashPayment(amount_received=1000.0),
        meta=SaleMeta(
            flow=CheckoutFlow.BILLOUT,
            cashier="Ana",
            note="",
            timestamp="2026-01-01T00:00:00+00:00",
            attempt_id="abc123",
        ),
    )


class TestSaveSale:
    @pytest.mark.asyncio
    @respx.mock
    async def test_success_returns_sale_id(self, client, record):
        route = respx.post(SAVE_URL).mock(
            return_value=httpx.Response(200, json={"success": True, "saleId": 42, "message": "Saved"})
        )

        reply = await client.save_sale(record)

        assert reply.sale_id == 42
        assert reply.message == "Saved"
        request = route.calls.last.request
        assert request.headers["Idempotency-Key"] == "abc123"
        body = json.loads(request.content)
        assert body["totals"]["payable"] == pytest.approx(792.8)
        assert body["reserved"]["id"] == 7
        assert body["payment"] == {"method": "cash", "amount_received": 1000.0}
        assert body["meta"]["flow"] == "billout"

    @pytest.mark.asyncio
    @respx.mock
    async def test_http_error_carries_status_and_excerpt(self, client, record):
        respx.post(SAVE_URL).mock(return_value=httpx.Response(500, text="e" * 500))

        with pytest.raises(SaveFailed) as exc_info:
            await client.save_sale(record)

        error = exc_info.value
        assert error.message == "Save failed: 500 Internal Server Error"
        assert error.status_code == 500
        assert len(error.response_body) == 201

    @pytest.mark.asyncio
    @respx.mock
    async def test_non_json_reply(self, client, record):
        respx.post(SAVE_URL).mock(return_value=httpx.Response(200, text="<b>Warning</b>"))

        with pytest.raises(SaveFailed) as exc_info:
            await client.save_sale(record)

        assert "not JSON" in exc_info.value.message
        assert exc_info.value.response_body == "<b>Warning</b>"

    @pytest.mark.asyncio
    @respx.mock
    async def test_success_false_uses_server_message(self, client, record):
        respx.post(SAVE_URL).mock(return_value=httpx.Response(200, json={"success": False, "message": "Duplicate"}))

        with pytest.raises(SaveFailed, match="Duplicate"):
            await client.save_sale(record)

    @pytest.mark.asyncio
    @respx.mock
    async def test_success_false_without_message(self, client, record):
        respx.post(SAVE_URL).mock(return_value=httpx.Response(200, json={"success": False}))

        with pytest.raises(SaveFailed, match="Failed to save sale"):
            await client.save_sale(record)

    @pytest.mark.asyncio
    @respx.mock
    async def test_transport_error(self, client, record):
        respx.post(SAVE_URL).mock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(SaveFailed) as exc_info:
            await client.save_sale(record)

        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


class TestUpdateStock:
    @pytest.mark.asyncio
    @respx.mock
    async def test_sends_items_and_derived_key(self, client, record):
        route = respx.post(STOCK_URL).mock(return_value=httpx.Response(200, json={"success": True}))

        await client.update_stock(record.cart, record.totals, record.reservation, "abc123")

        request = route.calls.last.request
        assert request.headers["Idempotency-Key"] == "abc123:stock"
        assert json.loads(request.content)["items"] == [{"id": 1, "qty": 2}]

    @pytest.mark.asyncio
    @respx.mock
    async def test_failure_raises_inventory_error(self, client, record):
        respx.post(STOCK_URL).mock(return_value=httpx.Response(502, text="bad gateway"))

        with pytest.raises(InventoryAdjustFailed):
            await client.update_stock(record.cart, record.totals, None, "abc123")
