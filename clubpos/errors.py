"""Error taxonomy for the reservation and checkout flows."""

from __future__ import annotations


def excerpt(text: str | None, limit: int) -> str:
    """Trim a response body for display, marking truncation."""
    if not text:
        return ""
    if len(text) <= limit:
        return text
    return text[:limit] + "…"


class PosError(Exception):
    """Base exception carrying enough context to render a diagnostic message."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.response_body = response_body
        super().__init__(message)

    def diagnostic(self) -> str:
        parts = [self.message]
        if self.status_code is not None:
            parts.append(f"[HTTP {self.status_code}]")
        text = " ".join(parts)
        if self.response_body:
            text = f"{text}: {self.response_body}"
        return text


class NetworkTimeout(PosError):
    """The request did not complete within its bounded wait."""


class NetworkFailure(PosError):
    """Non-success status or transport error."""


class InvalidResponseFormat(PosError):
    """The response body could not be parsed into the expected shape."""


class ValidationError(PosError):
    """Required payment fields are missing."""


class EmptyCartError(PosError):
    """Checkout attempted with nothing in the cart."""


class SaveFailed(PosError):
    """The sale could not be persisted."""


class InventoryAdjustFailed(PosError):
    """Stock deduction failed after the sale was saved."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
        sale_id: int | str | None = None,
    ) -> None:
        super().__init__(message, status_code, response_body)
        self.sale_id = sale_id


class ReceiptRenderFailed(PosError):
    """The receipt could not be produced for an already-saved sale."""
