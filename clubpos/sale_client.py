"""Sale submission and inventory adjustment client."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

import httpx

from clubpos.config import (
    API_BASE_URL,
    SALE_BODY_EXCERPT_CHARS,
    SAVE_SALE_ENDPOINT,
    UPDATE_STOCK_ENDPOINT,
)
from clubpos.errors import InventoryAdjustFailed, PosError, SaveFailed, excerpt
from clubpos.models import CartLine, ReservationResource, SaleRecord, Totals


@dataclass(frozen=True)
class BackendReply:
    """Parsed `{success, saleId?, message?}` reply."""

    sale_id: int | str | None
    message: str | None


class SaleClient:
    """
    Talk to the sale and stock endpoints.

    Neither call carries a client-side timeout: they run until the backend
    answers or the transport fails.
    """

    def __init__(self, base_url: str = API_BASE_URL, http_client: httpx.AsyncClient | None = None) -> None:
        base = base_url.rstrip("/")
        self.save_url = f"{base}/{SAVE_SALE_ENDPOINT}"
        self.stock_url = f"{base}/{UPDATE_STOCK_ENDPOINT}"
        self._client = http_client or httpx.AsyncClient(timeout=None)
        self._owns_client = http_client is None

    async def close(self) -> None:
        """Close the HTTP client if we own it."""
        if self._owns_client:
            await self._client.aclose()

    async def save_sale(self, record: SaleRecord) -> BackendReply:
        """Persist one sale. Raises SaveFailed for any non-success outcome."""
        return await self._post(
            self.save_url,
            record.to_payload(),
            headers={"Idempotency-Key": record.meta.attempt_id},
            error_cls=SaveFailed,
            label="Save failed",
            default_failure="Failed to save sale",
        )

    async def update_stock(
        self,
        cart: Iterable[CartLine],
        totals: Totals,
        reserved: ReservationResource | None,
        attempt_id: str,
    ) -> BackendReply:
        """Deduct sold quantities. Raises InventoryAdjustFailed for any non-success outcome."""
        payload = {
            "items": [{"id": line.id, "qty": line.qty} for line in cart],
            "totals": totals.to_dict(),
            "reserved": reserved.to_dict() if reserved is not None else None,
        }
        return await self._post(
            self.stock_url,
            payload,
            headers={"Idempotency-Key": f"{attempt_id}:stock"},
            error_cls=InventoryAdjustFailed,
            label="Update stock failed",
            default_failure="Failed to update stock",
        )

    async def _post(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str],
        error_cls: type[PosError],
        label: str,
        default_failure: str,
    ) -> BackendReply:
        try:
            response = await self._client.post(url, json=payload, headers=headers)
        except httpx.RequestError as exc:
            raise error_cls(f"{label}: {exc}") from exc

        body = response.text
        if not response.is_success:
            raise error_cls(
                f"{label}: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
                response_body=excerpt(body, SALE_BODY_EXCERPT_CHARS),
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise error_cls(
                f"{label}: response was not JSON",
                status_code=response.status_code,
                response_body=excerpt(body, SALE_BODY_EXCERPT_CHARS),
            ) from exc

        if not isinstance(data, dict) or not data.get("success"):
            message = data.get("message") if isinstance(data, dict) else None
            raise error_cls(
                str(message or default_failure),
                status_code=response.status_code,
                response_body=excerpt(body, SALE_BODY_EXCERPT_CHARS),
            )

        message = data.get("message")
        return BackendReply(
            sale_id=data.get("saleId"),
            message=str(message) if message is not None else None,
        )
