"""Receipt rendering on the thermal printer."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from clubpos.config import (
    CURRENCY_SYMBOL,
    PRINTER_FONT_PATH,
    PRINTER_FONT_SIZE,
    PRINTER_LEFT_INDENT_PX,
    PRINTER_USB_PRODUCT_ID,
    PRINTER_USB_VENDOR_ID,
    PRINTER_WIDTH_PX,
)
from clubpos.debug_log import log_debug
from clubpos.errors import ReceiptRenderFailed
from clubpos.models import BankCardPayment, CashPayment, GCashPayment, ReceiptJob

RECEIPT_TITLE = "CLUB TRYARA"
_SEPARATOR = "__SEP__"
_SEPARATOR_HEIGHT_PX = 12
_SEPARATOR_THICKNESS_PX = 2
_LINE_EXTRA_PX = 10
_RIGHT_GUTTER_PX = 8
_TAIL_SPACER_PX = 70
_FONT_OVERRIDE_ENV = "RECEIPT_PRINTER_FONT_PATH"
_LINUX_FONT_FALLBACKS = (
    "/usr/share/fonts/TTF/DejaVuSans.ttf",
    "/usr/share/fonts/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/noto/NotoSans-Regular.ttf",
    "/usr/share/fonts/liberation/LiberationSans-Regular.ttf",
)


@dataclass(frozen=True)
class ReceiptLine:
    left: str
    right: str = ""


def _amount(value: float) -> str:
    return f"{value:,.2f}"


def receipt_lines(job: ReceiptJob) -> list[ReceiptLine]:
    """Lay out a receipt as left/right text pairs, separators included."""
    lines = [ReceiptLine(RECEIPT_TITLE)]
    if job.sale_id is not None:
        lines.append(ReceiptLine(f"Sale #{job.sale_id}"))
    lines.append(ReceiptLine(_SEPARATOR))

    for line in job.cart:
        lines.append(ReceiptLine(f"{line.name} x{line.qty}", _amount(line.price * line.qty)))
    lines.append(ReceiptLine(_SEPARATOR))

    totals = job.totals
    lines.append(ReceiptLine("Subtotal", _amount(totals.subtotal)))
    lines.append(ReceiptLine("Service charge", _amount(totals.service_charge)))
    lines.append(ReceiptLine("Tax", _amount(totals.tax)))
    if totals.discount_amount:
        lines.append(ReceiptLine("Discount", f"-{_amount(totals.discount_amount)}"))
    if job.reserved is not None:
        label = job.reserved.table_number or str(job.reserved.id)
        lines.append(ReceiptLine(f"Table {label}", _amount(totals.table_price)))
    lines.append(ReceiptLine("PAYABLE", f"{CURRENCY_SYMBOL}{_amount(totals.payable)}"))
    lines.append(ReceiptLine(_SEPARATOR))

    payment = job.payment
    if isinstance(payment, CashPayment):
        lines.append(ReceiptLine("Cash"))
        if payment.amount_received:
            lines.append(ReceiptLine("Received", _amount(payment.amount_received)))
            change = max(0.0, payment.amount_received - totals.payable)
            lines.append(ReceiptLine("Change", _amount(change)))
    elif isinstance(payment, GCashPayment):
        lines.append(ReceiptLine("GCash", payment.number))
        lines.append(ReceiptLine("Ref", payment.reference))
    elif isinstance(payment, BankCardPayment):
        lines.append(ReceiptLine("Bank/Card", payment.card_or_bank_label))
        lines.append(ReceiptLine("Ref", payment.reference))

    if job.reserved is not None:
        name = job.reserved.name or "—"
        lines.append(ReceiptLine(f"Reserved: {name} (Party: {job.reserved.party_size or '—'})"))
    return lines


def resolve_printer_font_path() -> str:
    """
    Resolve a printer font path with macOS default behavior preserved.

    Resolution order:
    1. RECEIPT_PRINTER_FONT_PATH (if set)
    2. PRINTER_FONT_PATH
    3. Known Linux fallbacks
    """
    env_override = os.environ.get(_FONT_OVERRIDE_ENV, "").strip()
    candidates: list[str] = []
    if env_override:
        candidates.append(env_override)
    candidates.append(PRINTER_FONT_PATH)
    candidates.extend(_LINUX_FONT_FALLBACKS)

    seen: set[str] = set()
    for candidate in candidates:
        if not candidate or candidate in seen:
            continue
        seen.add(candidate)
        if Path(candidate).is_file():
            return candidate

    raise RuntimeError(
        f"No usable printer font found. Set {_FONT_OVERRIDE_ENV} to a valid .ttf/.otf file. "
        f"Tried: {', '.join(seen)}"
    )


def check_printer_dependencies() -> tuple[bool, str]:
    """Check whether printer dependencies are importable."""
    try:
        from escpos.printer import Usb  # noqa: F401
        from PIL import ImageFont

        font_path = resolve_printer_font_path()
        ImageFont.truetype(font_path, PRINTER_FONT_SIZE)
    except (ImportError, OSError, RuntimeError) as exc:
        return (False, f"Printer deps unavailable: {exc}")
    return (True, "Printer ready")


def _render_line(line: ReceiptLine, font: object) -> object:
    from PIL import Image, ImageDraw

    canvas_height = PRINTER_FONT_SIZE + _LINE_EXTRA_PX
    img = Image.new("1", (PRINTER_WIDTH_PX, canvas_height), color=1)
    draw = ImageDraw.Draw(img)

    bbox = draw.textbbox((0, 0), line.left or " ", font=font)
    text_height = bbox[3] - bbox[1]
    # Offset by bbox top so descenders are not clipped.
    y = (canvas_height - text_height) // 2 - bbox[1]
    draw.text((PRINTER_LEFT_INDENT_PX, y), line.left, font=font, fill=0)

    if line.right:
        right_bbox = draw.textbbox((0, 0), line.right, font=font)
        x = PRINTER_WIDTH_PX - _RIGHT_GUTTER_PX - (right_bbox[2] - right_bbox[0]) - right_bbox[0]
        draw.text((x, y), line.right, font=font, fill=0)
    return img


def _render_separator() -> object:
    from PIL import Image, ImageDraw

    img = Image.new("1", (PRINTER_WIDTH_PX, _SEPARATOR_HEIGHT_PX), color=1)
    draw = ImageDraw.Draw(img)
    top = (_SEPARATOR_HEIGHT_PX - _SEPARATOR_THICKNESS_PX) // 2
    draw.rectangle((0, top, PRINTER_WIDTH_PX - 1, top + _SEPARATOR_THICKNESS_PX - 1), fill=0)
    return img


def _render_spacer(height_px: int) -> object:
    from PIL import Image

    return Image.new("1", (PRINTER_WIDTH_PX, max(1, height_px)), color=1)


class ReceiptPrinter:
    """Print receipts on the USB thermal printer."""

    def __init__(
        self,
        vendor_id: int = PRINTER_USB_VENDOR_ID,
        product_id: int = PRINTER_USB_PRODUCT_ID,
    ) -> None:
        self.vendor_id = vendor_id
        self.product_id = product_id

    def render(self, job: ReceiptJob) -> None:
        """Print one receipt and cut. Raises ReceiptRenderFailed on any printer problem."""
        try:
            from escpos.printer import Usb
            from PIL import ImageFont
        except ImportError as exc:
            raise ReceiptRenderFailed(f"Printer dependencies unavailable: {exc}") from exc

        try:
            font = ImageFont.truetype(resolve_printer_font_path(), PRINTER_FONT_SIZE)
            printer = Usb(self.vendor_id, self.product_id)
            for line in receipt_lines(job):
                if line.left == _SEPARATOR:
                    printer.image(_render_separator())
                else:
                    printer.image(_render_line(line, font))
            printer.image(_render_spacer(_TAIL_SPACER_PX))
            printer.cut()
        except Exception as exc:
            log_debug("receipt_print_failed", sale_id=job.sale_id, error=repr(exc))
            raise ReceiptRenderFailed(f"Receipt print failed: {exc}") from exc
        log_debug("receipt_printed", sale_id=job.sale_id)
