"""Runtime configuration defaults for the backend, session state and printing."""

from __future__ import annotations

import os

API_BASE_URL = os.environ.get("CLUBPOS_API_BASE_URL", "http://localhost/ClubTryara").rstrip("/")
TABLES_ENDPOINT = "tables/get_reserved_tables.php"
SAVE_SALE_ENDPOINT = "api/save_sale.php"
UPDATE_STOCK_ENDPOINT = "api/update_stock.php"

DB_PATH = os.environ.get("CLUBPOS_DB_PATH", "data/clubpos.db")
DEBUG_LOG_PATH = os.environ.get("CLUBPOS_DEBUG_LOG", "/tmp/clubpos-debug.log")

# One browsing session per terminal: relaunching from the same shell keeps the selection.
SESSION_ID = os.environ.get("CLUBPOS_SESSION_ID", "") or f"tty-{os.getppid()}"
NAVIGATION = os.environ.get("CLUBPOS_NAVIGATION", "navigate")
SELECTED_TABLE_KEY = "clubtryara:selected_table_v1"

CASHIER_NAME = os.environ.get("CLUBPOS_CASHIER") or None

FETCH_TIMEOUT_SECONDS = 8.0
RECONCILE_DEBOUNCE_SECONDS = 0.1
RECONCILE_COOLDOWN_SECONDS = 0.5
NOTICE_TIMEOUT_SECONDS = 2.4

SERVICE_CHARGE_RATE = 0.10
TAX_RATE = 0.12
CURRENCY_SYMBOL = "₱"

SALE_BODY_EXCERPT_CHARS = 200
LISTING_BODY_EXCERPT_CHARS = 1000

# Values carried over from the thermal printer prototype.
PRINTER_USB_VENDOR_ID = 0x28E9
PRINTER_USB_PRODUCT_ID = 0x0289
PRINTER_WIDTH_PX = 384
PRINTER_FONT_SIZE = 28
PRINTER_FONT_PATH = "/System/Library/Fonts/SFNS.ttf"
PRINTER_LEFT_INDENT_PX = 8
