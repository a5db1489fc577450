"""Append-only debug log shared by the app and its services."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from clubpos import config


def log_debug(event: str, **fields: object) -> None:
    """Append `<utc iso> <event> key=value ...` to the debug log file."""
    try:
        ts = datetime.now(timezone.utc).isoformat()
        details = " ".join(f"{key}={value!r}" for key, value in fields.items())
        line = f"{ts} {event} {details}".rstrip()
        log_path = Path(config.DEBUG_LOG_PATH)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        with log_path.open("a", encoding="utf-8") as fh:
            fh.write(f"{line}\n")
    except OSError:
        # Logging must never interfere with app flow.
        return
