"""Reservation picker modal screen."""

from __future__ import annotations

from typing import Awaitable, Callable

from rich.text import Text
from textual.app import ComposeResult
from textual.containers import Container
from textual.screen import ModalScreen
from textual.widgets import Static

from clubpos.errors import PosError
from clubpos.models import ReservationResource
from clubpos.reconcile import TABLES_MODAL_ID
from clubpos.rendering import describe_fetch_error, format_resource_row

TableLoader = Callable[[], Awaitable[list[ReservationResource]]]


class TablesModal(ModalScreen[ReservationResource | None]):
    """Centered modal listing reservable tables; Enter picks the highlighted one."""

    BINDINGS = [
        ("escape", "close", "Close"),
        ("q", "close", "Close"),
        ("ctrl+c", "close", "Close"),
        ("j", "move_cursor(1)", "Next"),
        ("k", "move_cursor(-1)", "Previous"),
        ("up", "move_cursor(-1)", "Previous"),
        ("down", "move_cursor(1)", "Next"),
        ("enter", "select_current", "Select"),
        ("r", "reload", "Retry"),
    ]

    CSS = """
    TablesModal {
        align: center middle;
        background: $background 60%;
    }

    #tables-dialog {
        width: 72;
        height: auto;
        max-height: 80%;
        border: round $secondary;
        background: $panel;
        padding: 1 2;
    }

    #tables-title {
        text-style: bold;
        margin-bottom: 1;
        color: white;
    }

    #tables-body {
        color: white;
        margin-bottom: 1;
    }

    #tables-help {
        color: #dddddd;
    }
    """

    def __init__(self, loader: TableLoader) -> None:
        super().__init__(id=TABLES_MODAL_ID)
        self.loader = loader
        self.rows: list[ReservationResource] = []
        self.cursor_index = 0
        self.loading = True
        self.error = ""

    def compose(self) -> ComposeResult:
        with Container(id="tables-dialog"):
            yield Static("Choose table", id="tables-title")
            yield Static(id="tables-body")
            yield Static("J/K/↑/↓ move, Enter select, R retry, Esc/q close", id="tables-help")

    def on_mount(self) -> None:
        self.action_reload()

    def action_reload(self) -> None:
        self.loading = True
        self.error = ""
        self._refresh_content()
        self.run_worker(self._load(), exclusive=True, group="tables-load")

    async def _load(self) -> None:
        try:
            rows = await self.loader()
        except PosError as exc:
            self.rows = []
            self.error = describe_fetch_error(exc)
        else:
            self.rows = rows
            self.cursor_index = 0
        self.loading = False
        self._refresh_content()

    def action_close(self) -> None:
        self.dismiss(None)

    def action_move_cursor(self, delta: int) -> None:
        if not self.rows:
            return
        self.cursor_index = (self.cursor_index + delta) % len(self.rows)
        self._refresh_content()

    def action_select_current(self) -> None:
        if self.loading or not self.rows:
            return
        self.dismiss(self.rows[self.cursor_index])

    def _refresh_content(self) -> None:
        body = self.query_one("#tables-body", Static)
        if self.loading:
            body.update("Loading...")
            return
        if self.error:
            body.update(Text(self.error, style="#ffb3b3"))
            return
        if not self.rows:
            body.update("No tables found.")
            return

        if self.cursor_index >= len(self.rows):
            self.cursor_index = 0

        content = Text(style="white")
        for idx, resource in enumerate(self.rows):
            if idx > 0:
                content.append("\n")
            pointer = "➤ " if idx == self.cursor_index else "  "
            style = "bold white" if idx == self.cursor_index else "white"
            content.append(f"{pointer}{format_resource_row(resource)}", style=style)
        body.update(content)
